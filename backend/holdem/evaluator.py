"""Best-hand evaluation for 2-7 cards.

Scores are plain integers: ``category * 15**5`` plus the category-defining
ranks followed by the kickers, packed in base 15. Every category therefore
resolves kicker ties completely (two flushes, two quads or two full houses of
the same primary rank are ordered by their remaining cards). Only hands that
use exactly the same ranks compare equal, which is what a split pot needs.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Sequence

from .cards import SUIT_ORDER, Card

SCORE_BASE = 15
CATEGORY_OFFSET = SCORE_BASE**5
WHEEL_HIGH = 5


class HandCategory(IntEnum):
    HIGH_CARD = 0
    PAIR = 1
    TWO_PAIR = 2
    THREE_OF_A_KIND = 3
    STRAIGHT = 4
    FLUSH = 5
    FULL_HOUSE = 6
    FOUR_OF_A_KIND = 7
    STRAIGHT_FLUSH = 8

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").lower()


@dataclass(frozen=True)
class HandResult:
    category: HandCategory
    score: int
    best_five: tuple[Card, ...]

    @property
    def label(self) -> str:
        return self.category.label


def category_floor(category: HandCategory) -> int:
    return int(category) * CATEGORY_OFFSET


def evaluate_hand(hole_cards: Sequence[Card], community_cards: Iterable[Card] = ()) -> HandResult:
    cards = [*hole_cards, *community_cards]
    if not 2 <= len(cards) <= 7:
        raise ValueError(f"Expected between 2 and 7 cards, got {len(cards)}.")
    if len(set(cards)) != len(cards):
        raise ValueError("Duplicate cards cannot be evaluated.")

    ordered = sorted(cards, key=lambda card: (card.value, SUIT_ORDER[card.suit]), reverse=True)
    by_value: dict[int, list[Card]] = {}
    for card in ordered:
        by_value.setdefault(card.value, []).append(card)
    suit_counts = Counter(card.suit for card in ordered)

    flush_suit = next((suit for suit, count in suit_counts.items() if count >= 5), None)
    suited = [card for card in ordered if card.suit == flush_suit] if flush_suit else []

    if suited:
        straight_flush = _find_straight(suited)
        if straight_flush:
            high, run = straight_flush
            return _result(HandCategory.STRAIGHT_FLUSH, run, (high,))

    groups = sorted(by_value.items(), key=lambda item: (len(item[1]), item[0]), reverse=True)
    top_value, top_cards = groups[0]

    if len(top_cards) == 4:
        kickers = _kickers(ordered, {top_value}, 1)
        return _result(HandCategory.FOUR_OF_A_KIND, top_cards + kickers, (top_value, *_values(kickers)))

    if len(top_cards) == 3:
        pair_values = [value for value, group in groups[1:] if len(group) >= 2]
        if pair_values:
            pair_value = max(pair_values)
            best = top_cards + by_value[pair_value][:2]
            return _result(HandCategory.FULL_HOUSE, best, (top_value, pair_value))

    if suited:
        best = suited[:5]
        return _result(HandCategory.FLUSH, best, _values(best))

    straight = _find_straight(ordered)
    if straight:
        high, run = straight
        return _result(HandCategory.STRAIGHT, run, (high,))

    if len(top_cards) == 3:
        kickers = _kickers(ordered, {top_value}, 2)
        return _result(HandCategory.THREE_OF_A_KIND, top_cards + kickers, (top_value, *_values(kickers)))

    pairs = [value for value, group in groups if len(group) == 2]
    if len(pairs) >= 2:
        high_pair, low_pair = pairs[0], pairs[1]
        kickers = _kickers(ordered, {high_pair, low_pair}, 1)
        best = by_value[high_pair] + by_value[low_pair] + kickers
        return _result(HandCategory.TWO_PAIR, best, (high_pair, low_pair, *_values(kickers)))

    if pairs:
        kickers = _kickers(ordered, {pairs[0]}, 3)
        return _result(HandCategory.PAIR, by_value[pairs[0]] + kickers, (pairs[0], *_values(kickers)))

    best = ordered[:5]
    return _result(HandCategory.HIGH_CARD, best, _values(best))


def _find_straight(cards: list[Card]) -> tuple[int, list[Card]] | None:
    """Return the highest straight in ``cards`` (sorted high to low), wheel included."""
    first_by_value: dict[int, Card] = {}
    for card in cards:
        first_by_value.setdefault(card.value, card)
    if 14 in first_by_value:
        first_by_value[1] = first_by_value[14]

    if len(first_by_value) < 5:
        return None

    for high in range(14, WHEEL_HIGH - 1, -1):
        run = range(high, high - 5, -1)
        if all(value in first_by_value for value in run):
            return high, [first_by_value[value] for value in run]
    return None


def _kickers(ordered: list[Card], excluded: set[int], count: int) -> list[Card]:
    return [card for card in ordered if card.value not in excluded][:count]


def _values(cards: Iterable[Card]) -> tuple[int, ...]:
    return tuple(card.value for card in cards)


def _result(category: HandCategory, best: list[Card], ranks: tuple[int, ...]) -> HandResult:
    score = category_floor(category)
    for position, rank in enumerate(ranks[:5]):
        score += rank * SCORE_BASE ** (4 - position)
    return HandResult(category=category, score=score, best_five=tuple(best[:5]))
