from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum


class Suit(str, Enum):
    HEARTS = "♥"
    DIAMONDS = "♦"
    CLUBS = "♣"
    SPADES = "♠"


class Rank(str, Enum):
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"


RANK_VALUES: dict[Rank, int] = {rank: index + 2 for index, rank in enumerate(Rank)}
SUIT_ORDER: dict[Suit, int] = {suit: index for index, suit in enumerate(Suit)}
_ASCII_SUITS = {"h": Suit.HEARTS.value, "d": Suit.DIAMONDS.value, "c": Suit.CLUBS.value, "s": Suit.SPADES.value}


class DeckExhaustedError(RuntimeError):
    pass


@dataclass(frozen=True)
class Card:
    suit: Suit
    rank: Rank

    @property
    def value(self) -> int:
        return RANK_VALUES[self.rank]

    @property
    def label(self) -> str:
        return f"{self.rank.value}{self.suit.value}"

    def __str__(self) -> str:
        return self.label


def parse_card(label: str) -> Card:
    """Parse labels such as ``"10♠"`` or ``"Ah"`` (ASCII suit letters are accepted)."""
    text = label.strip()
    if len(text) < 2:
        raise ValueError(f"Invalid card label: {label!r}")

    rank_text, suit_text = text[:-1].upper(), text[-1]
    if rank_text == "T":
        rank_text = "10"
    suit_text = _ASCII_SUITS.get(suit_text.lower(), suit_text)

    try:
        return Card(suit=Suit(suit_text), rank=Rank(rank_text))
    except ValueError as exc:
        raise ValueError(f"Invalid card label: {label!r}") from exc


def parse_cards(labels: str | list[str]) -> list[Card]:
    if isinstance(labels, str):
        labels = labels.split()
    return [parse_card(label) for label in labels]


class Deck:
    """Shuffled 52-card stack; cards are drawn from the end."""

    def __init__(self, cards: list[Card]) -> None:
        self._cards = list(cards)

    @classmethod
    def create(cls, rng: random.Random | None = None) -> "Deck":
        cards = [Card(suit=suit, rank=rank) for suit in Suit for rank in Rank]
        (rng or random.Random()).shuffle(cards)
        return cls(cards)

    def __len__(self) -> int:
        return len(self._cards)

    @property
    def cards(self) -> tuple[Card, ...]:
        return tuple(self._cards)

    def draw(self) -> Card:
        if not self._cards:
            raise DeckExhaustedError("Cannot draw from an empty deck.")
        return self._cards.pop()

    def draw_many(self, count: int) -> list[Card]:
        if count > len(self._cards):
            raise DeckExhaustedError(f"Cannot draw {count} cards, only {len(self._cards)} left.")
        return [self._cards.pop() for _ in range(count)]
