from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Any, Protocol

from .betting import ActionKind, LegalAction


@dataclass(frozen=True)
class BotDecision:
    action_type: str
    amount: int | None = None


class BotPolicy(Protocol):
    async def decide_action(self, game_view: dict[str, Any], legal_actions: list[dict[str, Any]]) -> BotDecision:
        ...


class PassivePolicy:
    """Checks when it can, calls otherwise; never raises."""

    async def decide_action(self, game_view: dict[str, Any], legal_actions: list[dict[str, Any]]) -> BotDecision:
        del game_view
        by_type = {item["type"]: item for item in legal_actions}

        if "check" in by_type:
            return BotDecision(action_type="check")
        if "call" in by_type:
            return BotDecision(action_type="call")
        if "fold" in by_type:
            return BotDecision(action_type="fold")

        raise RuntimeError("No legal actions available for passive policy.")


class HeuristicPolicy:
    """Loose table bot: plays high cards and pairs, otherwise mostly random."""

    def __init__(self, rng: random.Random | None = None, raise_chance: float = 0.2, bluff_chance: float = 0.2) -> None:
        self.rng = rng or random.Random()
        self.raise_chance = raise_chance
        self.bluff_chance = bluff_chance

    async def decide_action(self, game_view: dict[str, Any], legal_actions: list[dict[str, Any]]) -> BotDecision:
        by_type = {item["type"]: item for item in legal_actions}
        to_call = int(game_view.get("to_call", 0))
        chips = int(game_view.get("chips", 0))
        strong = self._is_strong(game_view.get("hole_values", []))
        roll = self.rng.random()

        if to_call == 0:
            if roll < self.raise_chance and "raise" in by_type:
                return BotDecision(action_type="raise", amount=by_type["raise"].get("min_amount"))
            return BotDecision(action_type="check")

        if to_call >= chips:
            if strong or roll > 1.0 - self.bluff_chance:
                return BotDecision(action_type="all_in")
            return BotDecision(action_type="fold")

        if strong and roll > 1.0 - self.raise_chance / 2 and "raise" in by_type:
            return BotDecision(action_type="raise", amount=by_type["raise"].get("min_amount"))
        if strong or roll > 0.4:
            return BotDecision(action_type="call")
        return BotDecision(action_type="fold")

    @staticmethod
    def _is_strong(values: list[int]) -> bool:
        if len(values) != 2:
            return False
        return max(values) > 10 or values[0] == values[1]


def legal_payload(legal_actions: list[LegalAction]) -> list[dict[str, Any]]:
    return [
        {
            "type": item.type.value,
            "min_amount": item.min_amount,
            "max_amount": item.max_amount,
            "to_call": item.to_call,
        }
        for item in legal_actions
    ]


def sanitize_decision(decision: BotDecision, legal_actions: list[LegalAction]) -> BotDecision:
    """Clamp a policy decision onto the legal action set, falling back to a passive choice."""
    legal_by_type = {item.type.value: item for item in legal_actions}
    if decision.action_type not in legal_by_type:
        return fallback_decision(legal_actions)

    legal = legal_by_type[decision.action_type]
    if decision.action_type == ActionKind.RAISE.value:
        low = legal.min_amount
        high = legal.max_amount
        if low is None or high is None:
            return fallback_decision(legal_actions)
        amount = decision.amount if decision.amount is not None else low
        return BotDecision(action_type=decision.action_type, amount=max(low, min(high, int(amount))))

    return BotDecision(action_type=decision.action_type)


def fallback_decision(legal_actions: list[LegalAction]) -> BotDecision:
    by_type = {item.type for item in legal_actions}
    for kind in (ActionKind.CHECK, ActionKind.CALL, ActionKind.FOLD):
        if kind in by_type:
            return BotDecision(action_type=kind.value)
    raise RuntimeError("No legal actions available.")
