from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from .betting import (
    ActionKind,
    AwaitingAction,
    BettingRound,
    HandComplete,
    InvalidActionError,
    LegalAction,
    StreetComplete,
)
from .cards import Card, Deck
from .evaluator import HandCategory, HandResult, evaluate_hand
from .models import PlayerStateModel, PotAwardModel, RoundResultModel, RoundStateModel
from .state import NEXT_STAGE, STREET_CARDS, Player, RoundState, Stage

logger = logging.getLogger(__name__)

HandEvaluatorFn = Callable[[Sequence[Card], Sequence[Card]], HandResult]

# Two hole cards per seat plus a five-card board must fit in one deck.
MAX_SEATS = (52 - 5) // 2


class UnknownPlayerError(KeyError):
    pass


class TableFlowError(ValueError):
    pass


@dataclass
class PotAward:
    amount: int
    winners: list[int]
    category: HandCategory | None = None


@dataclass
class RoundResult:
    round_number: int
    pot: int
    by_fold: bool
    awards: list[PotAward]
    hands: dict[int, HandResult] = field(default_factory=dict)

    @property
    def winners(self) -> list[int]:
        ordered: list[int] = []
        for award in self.awards:
            for index in award.winners:
                if index not in ordered:
                    ordered.append(index)
        return ordered

    @property
    def category(self) -> HandCategory | None:
        return self.awards[0].category if self.awards else None


class RoundController:
    """Owns the players, the deck and the round state of one table."""

    def __init__(
        self,
        players: list[Player],
        small_blind: int = 10,
        big_blind: int = 20,
        rng: random.Random | None = None,
        evaluator: HandEvaluatorFn = evaluate_hand,
    ) -> None:
        if not 2 <= len(players) <= MAX_SEATS:
            raise ValueError(f"A table seats between 2 and {MAX_SEATS} players.")
        if len({player.id for player in players}) != len(players):
            raise ValueError("Player ids must be unique.")
        if not 0 < small_blind <= big_blind:
            raise ValueError("Blinds must satisfy 0 < small blind <= big blind.")

        self.players = players
        self.small_blind = small_blind
        self.big_blind = big_blind
        self.rng = rng or random.Random()
        self.evaluator = evaluator
        self.rounds_played = 0
        self.state: RoundState | None = None
        self.deck: Deck | None = None
        self.betting: BettingRound | None = None
        self.result: RoundResult | None = None

    @property
    def round_complete(self) -> bool:
        return self.result is not None

    @property
    def game_over(self) -> bool:
        return self.round_complete and sum(1 for player in self.players if player.chips > 0) < 2

    @property
    def game_winner(self) -> Player | None:
        if not self.game_over:
            return None
        return next((player for player in self.players if player.chips > 0), None)

    def start_round(self, dealer_index: int) -> RoundStateModel:
        self.initialize_round(dealer_index)
        return self.get_round_state()

    def submit_action(
        self,
        player_id: str,
        action_type: ActionKind | str,
        amount: int | None = None,
        viewer_id: str | None = None,
    ) -> RoundStateModel:
        index = self.index_of(player_id)
        betting = self._require_betting()
        try:
            kind = ActionKind(action_type)
        except ValueError as exc:
            raise InvalidActionError(f"Unknown action: {action_type}", betting.legal_actions(index)) from exc

        state = self._require_state()
        paid = betting.apply(index, kind, amount)
        logger.debug(
            "Round %s %s: %s %s (paid %s, pot %s)",
            state.round_number,
            state.stage.value,
            player_id,
            kind.value,
            paid,
            state.pot,
        )
        self._progress()
        return self.get_round_state(viewer_id=viewer_id)

    def legal_actions(self, player_id: str) -> list[LegalAction]:
        index = self.index_of(player_id)
        if self.betting is None:
            return []
        return self.betting.legal_actions(index)

    def index_of(self, player_id: str) -> int:
        for index, player in enumerate(self.players):
            if player.id == player_id:
                return index
        raise UnknownPlayerError(f"Unknown player: {player_id}")

    def current_player(self) -> Player | None:
        state = self.state
        if state is None or state.turn_index is None:
            return None
        return self.players[state.turn_index]

    def initialize_round(self, dealer_index: int) -> None:
        if sum(1 for player in self.players if player.chips > 0) < 2:
            raise TableFlowError("At least two players with chips are required to deal a round.")

        seats = len(self.players)
        dealer_index %= seats
        self.rounds_played += 1
        self.deck = Deck.create(self.rng)
        self.result = None
        for player in self.players:
            player.reset_for_round()

        state = RoundState(round_number=self.rounds_played, dealer_index=dealer_index, min_raise=self.big_blind)
        self.state = state

        order = [index for index in self._seats_from(dealer_index + 1) if self.players[index].is_live]
        for _ in range(2):
            for index in order:
                self.players[index].hand.append(self.deck.draw())

        small_blind_index, big_blind_index = order[0], order[1]
        self._post_blind(small_blind_index, self.small_blind, "Small Blind")
        self._post_blind(big_blind_index, self.big_blind, "Big Blind")
        # A short big blind still prices the street at the full big blind.
        state.street_high = max(self.big_blind, max(player.street_bet for player in self.players))

        first_to_act = order[2 % len(order)]
        logger.info(
            "Round %s started: dealer=%s small_blind=%s big_blind=%s pot=%s",
            state.round_number,
            self.players[dealer_index].id,
            self.players[small_blind_index].id,
            self.players[big_blind_index].id,
            state.pot,
        )
        self.betting = BettingRound(self.players, state, first_to_act)
        self._progress()

    def advance_street(self) -> None:
        state = self._require_state()
        betting = self._require_betting()
        if self.round_complete:
            raise TableFlowError("The round is already settled.")
        if not isinstance(betting.status, StreetComplete):
            raise TableFlowError("The current street is still being played.")

        if state.stage == Stage.RIVER:
            self.showdown()
            return

        next_stage = NEXT_STAGE[state.stage]
        for player in self.players:
            player.reset_for_street()
        state.community_cards.extend(self._require_deck().draw_many(STREET_CARDS[next_stage]))
        state.stage = next_stage
        state.street_high = 0
        state.min_raise = self.big_blind

        first_to_act = next(
            (index for index in self._seats_from(state.dealer_index + 1) if self.players[index].is_live),
            state.dealer_index,
        )
        self.betting = BettingRound(self.players, state, first_to_act)

    def showdown(self) -> RoundResult:
        state = self._require_state()
        if self.round_complete:
            raise TableFlowError("The round is already settled.")
        state.stage = Stage.SHOWDOWN
        state.turn_index = None

        contenders = [index for index in self._seats_from(state.dealer_index + 1) if self.players[index].is_live]
        hands = {index: self.evaluator(self.players[index].hand, state.community_cards) for index in contenders}

        pot = state.pot
        awards = self._build_pots(contenders, hands)
        for award in awards:
            share, odd_chips = divmod(award.amount, len(award.winners))
            # Odd chips go to the tied winners closest to the dealer's left.
            for position, index in enumerate(award.winners):
                self.players[index].chips += share + (1 if position < odd_chips else 0)
        state.pot = 0

        result = RoundResult(round_number=state.round_number, pot=pot, by_fold=False, awards=awards, hands=hands)
        label = "Split Pot" if len(awards[0].winners) > 1 else "Winner"
        for index in result.winners:
            self.players[index].last_action_label = label
        self.result = result

        logger.info(
            "Round %s showdown: %s win %s with %s",
            state.round_number,
            [self.players[index].id for index in result.winners],
            pot,
            result.category.label if result.category is not None else "-",
        )
        return result

    def award_pot(self, winner: Player) -> RoundResult:
        state = self._require_state()
        if self.round_complete:
            raise TableFlowError("The round is already settled.")
        index = self.index_of(winner.id)
        pot = state.pot

        winner.chips += pot
        winner.last_action_label = "Winner"
        state.pot = 0
        state.stage = Stage.SHOWDOWN
        state.turn_index = None

        self.result = RoundResult(
            round_number=state.round_number,
            pot=pot,
            by_fold=True,
            awards=[PotAward(amount=pot, winners=[index])],
        )
        logger.info("Round %s: %s wins %s uncontested", state.round_number, winner.id, pot)
        return self.result

    def end_or_continue(self) -> Player | None:
        """Deal the next round, or return the game winner once fewer than two stacks remain."""
        state = self._require_state()
        if not self.round_complete:
            raise TableFlowError("The current round has not finished.")

        if self.game_over:
            winner = self.game_winner
            logger.info("Game over after %s rounds; winner=%s", self.rounds_played, winner.id if winner else None)
            return winner

        self.initialize_round((state.dealer_index + 1) % len(self.players))
        return None

    def get_round_state(self, viewer_id: str | None = None) -> RoundStateModel:
        state = self._require_state()
        showdown = self.result is not None and not self.result.by_fold

        players = []
        for seat, player in enumerate(self.players):
            visible = viewer_id is None or player.id == viewer_id or (showdown and player.is_live)
            players.append(
                PlayerStateModel(
                    id=player.id,
                    name=player.name,
                    kind=player.kind.value,
                    seat=seat,
                    chips=player.chips,
                    street_bet=player.street_bet,
                    status=player.status.value,
                    hand=[card.label for card in player.hand] if visible else ["??"] * len(player.hand),
                    cards_visible=visible,
                    is_dealer=seat == state.dealer_index,
                    last_action_label=player.last_action_label,
                )
            )

        turn_player = self.current_player()
        legal_actions: list[LegalAction] = []
        if turn_player is not None and (viewer_id is None or turn_player.id == viewer_id):
            legal_actions = self.legal_actions(turn_player.id)

        if self.game_over:
            status = "game_over"
        elif self.round_complete:
            status = "round_complete"
        else:
            status = "in_progress"

        winner = self.game_winner
        return RoundStateModel(
            round_number=state.round_number,
            stage=state.stage.value,
            pot=state.pot,
            community_cards=[card.label for card in state.community_cards],
            players=players,
            dealer_index=state.dealer_index,
            turn_index=state.turn_index,
            turn_player_id=turn_player.id if turn_player else None,
            street_high=state.street_high,
            min_raise=state.min_raise,
            legal_actions=[item.to_model() for item in legal_actions],
            status=status,
            result=self._result_model(),
            game_winner_id=winner.id if winner else None,
        )

    def game_view(self, player_id: str) -> dict[str, Any]:
        """Compact view of the table from one seat, handed to automated policies."""
        state = self._require_state()
        player = self.players[self.index_of(player_id)]
        return {
            "round": state.round_number,
            "stage": state.stage.value,
            "pot": state.pot,
            "board": [card.label for card in state.community_cards],
            "hole_cards": [card.label for card in player.hand],
            "hole_values": [card.value for card in player.hand],
            "chips": player.chips,
            "street_bet": player.street_bet,
            "street_high": state.street_high,
            "to_call": max(0, state.street_high - player.street_bet),
            "min_raise": state.min_raise,
            "big_blind": self.big_blind,
        }

    def _progress(self) -> None:
        while self.result is None:
            status = self._require_betting().status
            if isinstance(status, AwaitingAction):
                return
            if isinstance(status, HandComplete):
                self.award_pot(self.players[status.sole_player])
            elif isinstance(status, StreetComplete):
                self.advance_street()
            else:
                raise TableFlowError(f"Unhandled betting status: {status!r}")

    def _post_blind(self, index: int, amount: int, label: str) -> None:
        player = self.players[index]
        paid = player.commit(amount)
        self._require_state().pot += paid
        player.last_action_label = label

    def _build_pots(self, contenders: list[int], hands: dict[int, HandResult]) -> list[PotAward]:
        state = self._require_state()
        levels = sorted({self.players[index].round_commitment for index in contenders} - {0})

        awards: list[PotAward] = []
        previous = 0
        for level in levels:
            amount = sum(
                min(player.round_commitment, level) - min(player.round_commitment, previous)
                for player in self.players
            )
            eligible = [index for index in contenders if self.players[index].round_commitment >= level]
            best = max(hands[index].score for index in eligible)
            winners = [index for index in eligible if hands[index].score == best]
            if awards and awards[-1].winners == winners:
                awards[-1].amount += amount
            else:
                awards.append(PotAward(amount=amount, winners=winners, category=hands[winners[0]].category))
            previous = level

        if not awards:
            best = max(hands[index].score for index in contenders)
            winners = [index for index in contenders if hands[index].score == best]
            awards.append(PotAward(amount=0, winners=winners, category=hands[winners[0]].category))

        # Chips folded above every live commitment stay with the last pot.
        awards[-1].amount += state.pot - sum(award.amount for award in awards)
        return awards

    def _result_model(self) -> RoundResultModel | None:
        result = self.result
        if result is None:
            return None
        winners = result.winners
        return RoundResultModel(
            winner_ids=[self.players[index].id for index in winners],
            winner_names=[self.players[index].name for index in winners],
            hand_category=result.category.label if result.category is not None else None,
            pot=result.pot,
            by_fold=result.by_fold,
            awards=[
                PotAwardModel(
                    amount=award.amount,
                    winner_ids=[self.players[index].id for index in award.winners],
                    hand_category=award.category.label if award.category is not None else None,
                )
                for award in result.awards
            ],
        )

    def _seats_from(self, start: int) -> list[int]:
        seats = len(self.players)
        return [(start + offset) % seats for offset in range(seats)]

    def _require_state(self) -> RoundState:
        if self.state is None:
            raise TableFlowError("No round has been started.")
        return self.state

    def _require_betting(self) -> BettingRound:
        if self.betting is None:
            raise TableFlowError("No round has been started.")
        return self.betting

    def _require_deck(self) -> Deck:
        if self.deck is None:
            raise TableFlowError("No round has been started.")
        return self.deck


__all__ = [
    "InvalidActionError",
    "PotAward",
    "RoundController",
    "RoundResult",
    "TableFlowError",
    "UnknownPlayerError",
]
