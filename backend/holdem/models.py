from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


Stage = Literal["preflop", "flop", "turn", "river", "showdown"]
ActionType = Literal["fold", "check", "call", "raise", "all_in"]
PlayerKind = Literal["human", "automated"]
PlayerStatus = Literal["active", "folded", "all_in", "busted"]
RoundStatus = Literal["in_progress", "round_complete", "game_over"]


def to_camel(value: str) -> str:
    parts = value.split("_")
    return parts[0] + "".join(part.capitalize() for part in parts[1:])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class LegalActionModel(CamelModel):
    type: ActionType
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    to_call: Optional[int] = None


class PlayerStateModel(CamelModel):
    id: str
    name: str
    kind: PlayerKind
    seat: int
    chips: int
    street_bet: int
    status: PlayerStatus
    hand: List[str]
    cards_visible: bool
    is_dealer: bool
    last_action_label: str


class PotAwardModel(CamelModel):
    amount: int
    winner_ids: List[str]
    hand_category: Optional[str] = None


class RoundResultModel(CamelModel):
    winner_ids: List[str]
    winner_names: List[str]
    hand_category: Optional[str] = None
    pot: int
    by_fold: bool
    awards: List[PotAwardModel]


class RoundStateModel(CamelModel):
    round_number: int
    stage: Stage
    pot: int
    community_cards: List[str]
    players: List[PlayerStateModel]
    dealer_index: int
    turn_index: Optional[int] = None
    turn_player_id: Optional[str] = None
    street_high: int
    min_raise: int
    legal_actions: List[LegalActionModel]
    status: RoundStatus
    result: Optional[RoundResultModel] = None
    game_winner_id: Optional[str] = None


class TableStateModel(CamelModel):
    table_id: str
    human_player_id: str
    small_blind: int
    big_blind: int
    commentary: str
    round: RoundStateModel


class CreateTableRequestModel(CamelModel):
    player_name: str = Field(default="Player", min_length=1, max_length=40)
    bot_count: Optional[int] = Field(default=None, ge=1, le=7)
    dealer_index: Optional[int] = Field(default=None, ge=0)


class ActionRequestModel(CamelModel):
    action_type: ActionType
    amount: Optional[int] = None
    player_id: Optional[str] = None
