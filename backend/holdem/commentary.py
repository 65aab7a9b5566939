from __future__ import annotations

import logging
import os
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)

ChatSituation = Literal["fold", "raise", "win"]

OFFLINE_COMMENTARY = "Commentary offline: no Gemini API key configured."
OFFLINE_CHAT = "..."
FAILED_CHAT = "Next hand."
EMPTY_COMMENTARY = "What a hand!"
EMPTY_CHAT = "Interesting."

_SITUATIONS: dict[str, str] = {
    "fold": "you just folded",
    "raise": "you just raised",
    "win": "you just won the pot",
}


def _normalize_api_key(raw: str | None) -> str | None:
    if raw is None:
        return None

    value = raw.strip()
    if not value or value.lower() in {"your_gemini_api_key_here", "changeme", "__replace_me__"}:
        return None
    return value


def failed_commentary(winner_name: str) -> str:
    return f"Congratulations {winner_name}, the pot is yours!"


class Commentator(Protocol):
    async def round_commentary(self, winner_name: str, hand_category: str, pot_size: int, is_human_winner: bool) -> str:
        ...

    async def player_chat(self, actor_name: str, situation: ChatSituation) -> str:
        ...


class StaticCommentator:
    """Offline commentator returning the fixed fallback lines."""

    async def round_commentary(self, winner_name: str, hand_category: str, pot_size: int, is_human_winner: bool) -> str:
        del hand_category, pot_size, is_human_winner
        return failed_commentary(winner_name)

    async def player_chat(self, actor_name: str, situation: ChatSituation) -> str:
        del actor_name, situation
        return OFFLINE_CHAT


class GeminiCommentator:
    """Gemini-backed table talk. Never raises: every failure maps to a fallback line."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        timeout_ms: int,
        retries: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = max(0.5, timeout_ms / 1000.0)
        self.retries = max(0, retries)
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            limits=httpx.Limits(max_connections=16, max_keepalive_connections=8),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_env(cls) -> "GeminiCommentator":
        return cls(
            api_key=_normalize_api_key(os.getenv("GEMINI_API_KEY")),
            model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            timeout_ms=int(os.getenv("LLM_TIMEOUT_MS", "2500")),
            retries=int(os.getenv("LLM_RETRIES", "0")),
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def round_commentary(self, winner_name: str, hand_category: str, pot_size: int, is_human_winner: bool) -> str:
        if not self.api_key:
            return OFFLINE_COMMENTARY

        tone = (
            "The winner is the human player; pay them a compliment."
            if is_human_winner
            else "The winner is a computer player; make a light-hearted joke."
        )
        prompt = (
            "You are the dealer at a Texas Hold'em table.\n"
            f'Player "{winner_name}" just won a pot of {pot_size} chips with {hand_category}.\n'
            f"{tone}\n"
            "Comment on the win in one short sentence (at most 20 words)."
        )
        text = await self._generate(prompt, max_output_tokens=60)
        if text is None:
            return failed_commentary(winner_name)
        return text or EMPTY_COMMENTARY

    async def player_chat(self, actor_name: str, situation: ChatSituation) -> str:
        if not self.api_key:
            return OFFLINE_CHAT

        prompt = (
            f'Play the Texas Hold\'em player "{actor_name}".\n'
            f"Situation: {_SITUATIONS.get(situation, situation)}.\n"
            "Say one short line of table talk (at most 10 words) in the voice of a gambler."
        )
        text = await self._generate(prompt, max_output_tokens=32)
        if text is None:
            return FAILED_CHAT
        return text or EMPTY_CHAT

    async def _generate(self, prompt: str, max_output_tokens: int) -> str | None:
        for attempt in range(self.retries + 1):
            try:
                return (await self._request_text(prompt, max_output_tokens)).strip()
            except Exception as exc:
                logger.warning("Gemini commentary attempt %s failed: %s", attempt + 1, exc)
        return None

    async def _request_text(self, prompt: str, max_output_tokens: int) -> str:
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0.9,
                "maxOutputTokens": max_output_tokens,
                "thinkingConfig": {"thinkingBudget": 0},
            },
        }

        model = self.model.replace("/", "%2F")
        url = f"https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
        response = await self._http.post(url, json=payload, params={"key": self.api_key})
        response.raise_for_status()

        parsed = response.json()
        return (
            parsed.get("candidates", [{}])[0]
            .get("content", {})
            .get("parts", [{}])[0]
            .get("text", "")
        )
