"""Memory cards: the unit of play stored inside a match document.

Cards live in JSON columns on the match row, so they are plain frozen
dataclasses with explicit ``to_dict``/``from_dict`` rather than ORM rows.
"""

import enum
from dataclasses import dataclass
from typing import Any

from app.data.game_config import PointValues


class Authenticity(str, enum.Enum):
    authentic = "authentic"
    corrupted = "corrupted"
    fatal_glitch = "fatal_glitch"


def point_value(authenticity: Authenticity, point_values: PointValues) -> int:
    """Return the integrity change a card of this authenticity is worth."""
    return getattr(point_values, authenticity.value)


@dataclass(frozen=True)
class Card:
    memory: str
    authenticity: Authenticity
    value: int

    @property
    def is_authentic(self) -> bool:
        return self.authenticity == Authenticity.authentic

    def to_dict(self) -> dict[str, Any]:
        return {
            "memory": self.memory,
            "authenticity": self.authenticity.value,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Card":
        return cls(
            memory=data["memory"],
            authenticity=Authenticity(data["authenticity"]),
            value=int(data["value"]),
        )


def cards_to_dicts(cards: list[Card]) -> list[dict[str, Any]]:
    return [c.to_dict() for c in cards]


def cards_from_dicts(data: list[dict[str, Any]] | None) -> list[Card]:
    return [Card.from_dict(d) for d in data or []]
