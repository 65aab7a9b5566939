from __future__ import annotations

import asyncio
import inspect
import logging
import random
import uuid
from typing import Awaitable

from .betting import InvalidActionError
from .bots import BotPolicy, HeuristicPolicy, fallback_decision, legal_payload, sanitize_decision
from .commentary import ChatSituation, Commentator, GeminiCommentator
from .config import Settings
from .engine import RoundController, TableFlowError, UnknownPlayerError
from .models import ActionRequestModel, CreateTableRequestModel, TableStateModel
from .state import Player, PlayerKind

logger = logging.getLogger(__name__)

HUMAN_PLAYER_ID = "p1"
BOT_NAMES = ["Alpha", "DeepBlue", "Gemini", "Watson", "DeepThought", "Skynet", "Jarvis"]


class SessionNotFoundError(KeyError):
    pass


class TableSession:
    """Single owner of one table's round state.

    Every mutation (human actions, bot turns, cosmetic labels, the next deal)
    happens under ``_lock``. Timed work runs in tasks that re-check the round
    number once they hold the lock, so late arrivals never touch a newer round.
    """

    def __init__(
        self,
        table_id: str,
        controller: RoundController,
        bot_policy: BotPolicy,
        commentator: Commentator,
        settings: Settings,
        human_player_id: str = HUMAN_PLAYER_ID,
        rng: random.Random | None = None,
    ) -> None:
        self.table_id = table_id
        self.controller = controller
        self.bot_policy = bot_policy
        self.commentator = commentator
        self.settings = settings
        self.human_player_id = human_player_id
        self.rng = rng or random.Random()
        self.commentary = ""
        self._lock = asyncio.Lock()
        self._bot_task: asyncio.Task[None] | None = None
        self._next_round_task: asyncio.Task[None] | None = None
        self._decorations: set[asyncio.Task[None]] = set()
        self._closed = False

    @classmethod
    def create(
        cls,
        table_id: str,
        player_name: str,
        settings: Settings,
        bot_policy: BotPolicy,
        commentator: Commentator,
        bot_count: int | None = None,
        rng: random.Random | None = None,
    ) -> "TableSession":
        players = [Player(id=HUMAN_PLAYER_ID, name=player_name, kind=PlayerKind.HUMAN, chips=settings.starting_chips)]
        for index in range(bot_count or settings.bot_count):
            players.append(
                Player(
                    id=f"bot-{index}",
                    name=BOT_NAMES[index % len(BOT_NAMES)],
                    kind=PlayerKind.AUTOMATED,
                    chips=settings.starting_chips,
                )
            )
        controller = RoundController(players, small_blind=settings.small_blind, big_blind=settings.big_blind, rng=rng)
        return cls(table_id, controller, bot_policy, commentator, settings, rng=rng)

    async def start(self, dealer_index: int | None = None) -> TableStateModel:
        async with self._lock:
            if dealer_index is None:
                dealer_index = self.rng.randrange(len(self.controller.players))
            self.controller.initialize_round(dealer_index)
            self._after_transition()
            return self._snapshot()

    async def get_state(self) -> TableStateModel:
        async with self._lock:
            return self._snapshot()

    async def submit_action(self, player_id: str, action_type: str, amount: int | None = None) -> TableStateModel:
        async with self._lock:
            if self.controller.game_over:
                raise TableFlowError("The game is over.")
            player = self.controller.players[self.controller.index_of(player_id)]
            if player.kind != PlayerKind.HUMAN:
                raise InvalidActionError(f"{player.name} is an automated seat.", [])

            self.controller.submit_action(player_id, action_type, amount)
            self._after_transition()
            return self._snapshot()

    async def aclose(self) -> None:
        self._closed = True
        tasks = [task for task in (self._bot_task, self._next_round_task, *self._decorations) if task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _snapshot(self) -> TableStateModel:
        return TableStateModel(
            table_id=self.table_id,
            human_player_id=self.human_player_id,
            small_blind=self.controller.small_blind,
            big_blind=self.controller.big_blind,
            commentary=self.commentary,
            round=self.controller.get_round_state(viewer_id=self.human_player_id),
        )

    def _round_number(self) -> int:
        state = self.controller.state
        return state.round_number if state is not None else 0

    def _after_transition(self) -> None:
        if self._closed:
            return
        if self.controller.round_complete:
            self._cancel_bot_turn()
            self._on_round_complete()
            return

        current = self.controller.current_player()
        if current is not None and current.kind == PlayerKind.AUTOMATED:
            self._schedule_bot_turn(current.id)

    def _schedule_bot_turn(self, player_id: str) -> None:
        self._cancel_bot_turn()
        low = min(self.settings.bot_think_min_ms, self.settings.bot_think_max_ms)
        high = max(self.settings.bot_think_min_ms, self.settings.bot_think_max_ms)
        delay = self.rng.uniform(low, high) / 1000.0
        self._bot_task = asyncio.create_task(self._bot_turn(self._round_number(), player_id, delay))

    def _cancel_bot_turn(self) -> None:
        task = self._bot_task
        self._bot_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _bot_turn(self, round_number: int, player_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            current = self.controller.current_player()
            if self._closed or self._round_number() != round_number or current is None or current.id != player_id:
                return

            legal = self.controller.legal_actions(player_id)
            decision = await self.bot_policy.decide_action(self.controller.game_view(player_id), legal_payload(legal))
            decision = sanitize_decision(decision, legal)
            try:
                self.controller.submit_action(player_id, decision.action_type, decision.amount)
            except InvalidActionError as exc:
                logger.warning("Bot %s decision %s rejected: %s", player_id, decision, exc)
                decision = fallback_decision(legal)
                self.controller.submit_action(player_id, decision.action_type, decision.amount)

            if decision.action_type in {"fold", "raise"} and self.rng.random() < self.settings.bot_chat_probability:
                self._chat(current, decision.action_type)
            self._after_transition()

    def _on_round_complete(self) -> None:
        result = self.controller.result
        if result is None:
            return

        round_number = result.round_number
        winner = self.controller.players[result.winners[0]]
        category = result.category.label if result.category is not None else "an uncontested pot"
        self._decorate(
            round_number,
            None,
            self.commentator.round_commentary(winner.name, category, result.pot, winner.kind == PlayerKind.HUMAN),
        )
        if winner.kind == PlayerKind.AUTOMATED and self.rng.random() < self.settings.bot_chat_probability:
            self._chat(winner, "win")

        if self.controller.game_over:
            game_winner = self.controller.game_winner
            logger.info("Table %s finished; winner=%s", self.table_id, game_winner.id if game_winner else None)
            return

        self._next_round_task = asyncio.create_task(
            self._next_round(round_number, self.settings.next_round_delay_ms / 1000.0)
        )

    async def _next_round(self, round_number: int, delay: float) -> None:
        await asyncio.sleep(delay)
        async with self._lock:
            if self._closed or self._round_number() != round_number or self.controller.game_over:
                return
            self.commentary = ""
            self.controller.end_or_continue()
            self._after_transition()

    def _chat(self, player: Player, situation: ChatSituation) -> None:
        self._decorate(self._round_number(), player.id, self.commentator.player_chat(player.name, situation))

    def _decorate(self, round_number: int, player_id: str | None, text: Awaitable[str]) -> None:
        task = asyncio.create_task(self._apply_decoration(round_number, player_id, text))
        self._decorations.add(task)
        task.add_done_callback(self._decorations.discard)

    async def _apply_decoration(self, round_number: int, player_id: str | None, text: Awaitable[str]) -> None:
        try:
            line = await text
        except Exception as exc:
            logger.warning("Commentary for round %s failed: %s", round_number, exc)
            return

        async with self._lock:
            if self._closed or self._round_number() != round_number:
                logger.debug("Dropping stale commentary for round %s", round_number)
                return
            if player_id is None:
                self.commentary = line
                return
            player = self.controller.players[self.controller.index_of(player_id)]
            player.last_action_label = f'"{line}"'


class SessionManager:
    def __init__(
        self,
        settings: Settings | None = None,
        bot_policy: BotPolicy | None = None,
        commentator: Commentator | None = None,
    ) -> None:
        self._settings = settings or Settings.from_env()
        self._bot_policy = bot_policy or HeuristicPolicy()
        self._commentator = commentator or GeminiCommentator.from_env()
        self._sessions: dict[str, TableSession] = {}
        self._lock = asyncio.Lock()

    @property
    def settings(self) -> Settings:
        return self._settings

    async def aclose(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.aclose()

        close_method = getattr(self._commentator, "aclose", None)
        if close_method is None:
            return
        result = close_method()
        if inspect.isawaitable(result):
            await result

    async def create_table(self, payload: CreateTableRequestModel) -> TableStateModel:
        table_id = uuid.uuid4().hex[:12]
        session = TableSession.create(
            table_id=table_id,
            player_name=payload.player_name.strip() or "Player",
            settings=self._settings,
            bot_policy=self._bot_policy,
            commentator=self._commentator,
            bot_count=payload.bot_count,
        )
        async with self._lock:
            self._sessions[table_id] = session
        logger.info("Created table %s with %s seats", table_id, len(session.controller.players))
        return await session.start(payload.dealer_index)

    async def get_state(self, table_id: str) -> TableStateModel:
        session = await self.get_session(table_id)
        return await session.get_state()

    async def submit_action(self, table_id: str, payload: ActionRequestModel) -> TableStateModel:
        session = await self.get_session(table_id)
        player_id = payload.player_id or session.human_player_id
        return await session.submit_action(player_id, payload.action_type, payload.amount)

    async def get_session(self, table_id: str) -> TableSession:
        async with self._lock:
            session = self._sessions.get(table_id)
        if session is None:
            raise SessionNotFoundError(f"Table not found: {table_id}")
        return session


__all__ = [
    "InvalidActionError",
    "SessionManager",
    "SessionNotFoundError",
    "TableFlowError",
    "TableSession",
    "UnknownPlayerError",
]
