from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .models import LegalActionModel
from .state import Player, PlayerStatus, RoundState


class ActionKind(str, Enum):
    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    RAISE = "raise"
    ALL_IN = "all_in"


@dataclass(frozen=True)
class AwaitingAction:
    player_index: int


@dataclass(frozen=True)
class StreetComplete:
    pass


@dataclass(frozen=True)
class HandComplete:
    sole_player: int


BettingStatus = Union[AwaitingAction, StreetComplete, HandComplete]


@dataclass
class LegalAction:
    type: ActionKind
    min_amount: int | None = None
    max_amount: int | None = None
    to_call: int | None = None

    def to_model(self) -> LegalActionModel:
        return LegalActionModel(
            type=self.type.value,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            to_call=self.to_call,
        )


class InvalidActionError(ValueError):
    def __init__(self, message: str, legal_actions: list[LegalAction]) -> None:
        super().__init__(message)
        self.legal_actions = legal_actions


class BettingRound:
    """One street of betting over a shared ``RoundState``.

    Every player able to act is owed an action when the street opens. Each
    action clears the actor; a raise (or an all-in above the high bet) makes
    every other active player owe an action again. The street is complete
    once nobody is owed an action.
    """

    def __init__(self, players: list[Player], state: RoundState, first_to_act: int) -> None:
        self.players = players
        self.state = state
        self._to_act: set[int] = {index for index, player in enumerate(players) if player.can_act}
        self._status: BettingStatus = StreetComplete()
        self._settle(first_to_act, inclusive=True)

    @property
    def status(self) -> BettingStatus:
        return self._status

    @property
    def is_open(self) -> bool:
        return isinstance(self._status, AwaitingAction)

    def owes_action(self, index: int) -> bool:
        return index in self._to_act

    def legal_actions(self, index: int) -> list[LegalAction]:
        status = self._status
        if not isinstance(status, AwaitingAction) or status.player_index != index:
            return []

        player = self.players[index]
        high = self.state.street_high
        to_call = max(0, high - player.street_bet)
        max_total = player.street_bet + player.chips

        actions = [LegalAction(type=ActionKind.FOLD)]
        if to_call == 0:
            actions.append(LegalAction(type=ActionKind.CHECK))
        else:
            actions.append(LegalAction(type=ActionKind.CALL, to_call=min(to_call, player.chips)))

        if player.chips > to_call:
            min_total = min(high + self.state.min_raise, max_total)
            actions.append(LegalAction(type=ActionKind.RAISE, min_amount=min_total, max_amount=max_total))
        if player.chips > 0:
            actions.append(LegalAction(type=ActionKind.ALL_IN, min_amount=max_total, max_amount=max_total))
        return actions

    def apply(self, index: int, kind: ActionKind, amount: int | None = None) -> int:
        """Validate and apply one action; returns the chips it committed.

        ``amount`` is the new street total for a raise. Nothing is mutated
        when the action is rejected.
        """
        status = self._status
        if not isinstance(status, AwaitingAction):
            raise InvalidActionError("No action is expected on this street.", [])

        player = self.players[index]
        if status.player_index != index:
            raise InvalidActionError(f"It is not {player.name}'s turn.", [])

        legal = self.legal_actions(index)
        if kind not in {item.type for item in legal}:
            raise InvalidActionError(f"Cannot {kind.value} in the current state.", legal)

        high = self.state.street_high

        if kind == ActionKind.FOLD:
            player.status = PlayerStatus.FOLDED
            player.last_action_label = "Fold"
            self._to_act.discard(index)
            paid = 0

        elif kind == ActionKind.CHECK:
            player.last_action_label = "Check"
            self._to_act.discard(index)
            paid = 0

        elif kind == ActionKind.CALL:
            paid = self._commit(player, high - player.street_bet)
            player.last_action_label = "All In!" if player.status == PlayerStatus.ALL_IN else "Call"
            self._to_act.discard(index)

        elif kind == ActionKind.RAISE:
            target = amount if amount is not None else high + self.state.min_raise
            if target <= high:
                raise InvalidActionError(f"A raise must go above {high}.", legal)
            if target - player.street_bet >= player.chips:
                paid = self._all_in(index, player)
            else:
                if target < high + self.state.min_raise:
                    raise InvalidActionError(f"Minimum raise is to {high + self.state.min_raise}.", legal)
                paid = self._commit(player, target - player.street_bet)
                self._raise_to(index, player.street_bet)
                player.last_action_label = f"Raise {player.street_bet}"

        elif kind == ActionKind.ALL_IN:
            paid = self._all_in(index, player)

        else:
            raise InvalidActionError(f"Unsupported action: {kind}", legal)

        self._settle(index, inclusive=False)
        return paid

    def _all_in(self, index: int, player: Player) -> int:
        paid = self._commit(player, player.chips)
        if player.street_bet > self.state.street_high:
            self._raise_to(index, player.street_bet)
        self._to_act.discard(index)
        player.last_action_label = "All In!"
        return paid

    def _commit(self, player: Player, amount: int) -> int:
        paid = player.commit(amount)
        self.state.pot += paid
        return paid

    def _raise_to(self, index: int, new_high: int) -> None:
        increase = new_high - self.state.street_high
        # Short all-ins move the high bet without changing the raise size.
        if increase >= self.state.min_raise:
            self.state.min_raise = increase
        self.state.street_high = new_high
        self._to_act = {seat for seat, player in enumerate(self.players) if player.can_act and seat != index}

    def _settle(self, start: int, inclusive: bool) -> None:
        contenders = [
            index
            for index, player in enumerate(self.players)
            if player.status not in {PlayerStatus.FOLDED, PlayerStatus.BUSTED}
        ]
        if len(contenders) == 1:
            self._finish(HandComplete(sole_player=contenders[0]))
            return

        able = [player for player in self.players if player.can_act]
        nobody_owes = all(player.street_bet >= self.state.street_high for player in able)
        if not self._to_act or (len(able) <= 1 and nobody_owes):
            self._finish(StreetComplete())
            return

        next_index = self._next_to_act(start, inclusive)
        self.state.turn_index = next_index
        self._status = AwaitingAction(player_index=next_index)

    def _finish(self, status: BettingStatus) -> None:
        self._to_act.clear()
        self.state.turn_index = None
        self._status = status

    def _next_to_act(self, start: int, inclusive: bool) -> int:
        seats = len(self.players)
        offset = 0 if inclusive else 1
        for step in range(seats):
            index = (start + offset + step) % seats
            if index in self._to_act:
                return index
        raise RuntimeError("No player is owed an action.")
