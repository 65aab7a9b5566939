from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .cards import Card


class Stage(str, Enum):
    PREFLOP = "preflop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"
    SHOWDOWN = "showdown"


class PlayerKind(str, Enum):
    HUMAN = "human"
    AUTOMATED = "automated"


class PlayerStatus(str, Enum):
    ACTIVE = "active"
    FOLDED = "folded"
    ALL_IN = "all_in"
    BUSTED = "busted"


NEXT_STAGE: dict[Stage, Stage] = {
    Stage.PREFLOP: Stage.FLOP,
    Stage.FLOP: Stage.TURN,
    Stage.TURN: Stage.RIVER,
    Stage.RIVER: Stage.SHOWDOWN,
}

# Community cards revealed when entering each street.
STREET_CARDS: dict[Stage, int] = {
    Stage.FLOP: 3,
    Stage.TURN: 1,
    Stage.RIVER: 1,
}


@dataclass
class Player:
    id: str
    name: str
    kind: PlayerKind
    chips: int
    street_bet: int = 0
    round_commitment: int = 0
    status: PlayerStatus = PlayerStatus.ACTIVE
    hand: list[Card] = field(default_factory=list)
    last_action_label: str = ""

    @property
    def is_live(self) -> bool:
        """Still contesting the pot (may or may not be able to act)."""
        return self.status in {PlayerStatus.ACTIVE, PlayerStatus.ALL_IN}

    @property
    def can_act(self) -> bool:
        return self.status == PlayerStatus.ACTIVE

    def reset_for_round(self) -> None:
        self.street_bet = 0
        self.round_commitment = 0
        self.hand.clear()
        self.last_action_label = ""
        self.status = PlayerStatus.ACTIVE if self.chips > 0 else PlayerStatus.BUSTED

    def reset_for_street(self) -> None:
        self.street_bet = 0
        self.last_action_label = ""

    def commit(self, amount: int) -> int:
        """Move up to ``amount`` chips from the stack into the current bet."""
        if amount <= 0 or self.chips <= 0:
            return 0
        paid = min(amount, self.chips)
        self.chips -= paid
        self.street_bet += paid
        self.round_commitment += paid
        if self.chips == 0:
            self.status = PlayerStatus.ALL_IN
        return paid


@dataclass
class RoundState:
    round_number: int
    dealer_index: int
    stage: Stage = Stage.PREFLOP
    pot: int = 0
    street_high: int = 0
    min_raise: int = 0
    turn_index: int | None = None
    community_cards: list[Card] = field(default_factory=list)
