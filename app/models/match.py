"""Match model: the shared document two clients play a game through.

One row per room.  The room code is the primary key.  Nested structures
(players, deck, table, current card) are JSON columns; typed access goes
through the ``deck``/``table``/``card_in_play`` properties, which convert
to and from ``Card``.

Every UPDATE is version-checked (``version_id_col``), so a write based on a
stale read fails with ``StaleDataError`` instead of overwriting a concurrent
transition.  JSON columns are never mutated in place: assign a new value so
the change is tracked.
"""

import copy
import enum
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.card import Card, cards_from_dicts, cards_to_dicts


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MatchStatus(str, enum.Enum):
    waiting = "waiting"
    intro = "intro"
    playing = "playing"
    finished = "finished"


class TurnState(str, enum.Enum):
    draw = "draw"
    decide = "decide"
    opponent_decide = "opponent_decide"


class WinReason(str, enum.Enum):
    reached_upper_threshold = "reached_upper_threshold"
    opponent_defeated = "opponent_defeated"
    deck_exhausted = "deck_exhausted"
    opponent_left = "opponent_left"


class Match(Base):
    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    status: Mapped[MatchStatus] = mapped_column(
        Enum(MatchStatus), nullable=False, default=MatchStatus.waiting
    )
    # player_id -> {"integrity": int, "items": list}
    players: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    order_players: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    turn: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    turn_state: Mapped[TurnState] = mapped_column(
        Enum(TurnState), nullable=False, default=TurnState.draw
    )

    memory_deck: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    cards_drawn: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    table_cards: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    current_card: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True, default=None)
    selected_card_index: Mapped[int | None] = mapped_column(Integer, nullable=True, default=None)
    card_initiator: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)
    current_multiplier: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Append-only log of authentic memories revealed during play
    revealed_memories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    winner: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)
    win_reason: Mapped[WinReason | None] = mapped_column(
        Enum(WinReason), nullable=True, default=None
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_update: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # ------------------------------------------------------------------
    # Typed views over the JSON columns
    # ------------------------------------------------------------------

    @property
    def deck(self) -> list[Card]:
        return cards_from_dicts(self.memory_deck)

    @deck.setter
    def deck(self, cards: list[Card]) -> None:
        self.memory_deck = cards_to_dicts(cards)

    @property
    def table(self) -> list[Card]:
        return cards_from_dicts(self.table_cards)

    @table.setter
    def table(self, cards: list[Card]) -> None:
        self.table_cards = cards_to_dicts(cards)

    @property
    def card_in_play(self) -> Card | None:
        if self.current_card is None:
            return None
        return Card.from_dict(self.current_card)

    @card_in_play.setter
    def card_in_play(self, card: Card | None) -> None:
        self.current_card = card.to_dict() if card is not None else None

    @property
    def current_player_id(self) -> str | None:
        """The player whose turn it is, or None when nobody is seated."""
        if 0 <= self.turn < len(self.order_players):
            return self.order_players[self.turn]
        return None

    def integrity_of(self, player_id: str) -> int:
        return self.players[player_id]["integrity"]

    def to_document(self) -> dict[str, Any]:
        """Detached plain-dict snapshot of the match (used by the rules layer)."""
        return {
            "id": self.id,
            "status": self.status.value if self.status is not None else None,
            "players": copy.deepcopy(self.players),
            "order_players": list(self.order_players),
            "turn": self.turn,
            "turn_state": self.turn_state.value if self.turn_state is not None else None,
            "memory_deck": copy.deepcopy(self.memory_deck),
            "cards_drawn": self.cards_drawn,
            "table_cards": copy.deepcopy(self.table_cards),
            "current_card": copy.deepcopy(self.current_card),
            "selected_card_index": self.selected_card_index,
            "card_initiator": self.card_initiator,
            "current_multiplier": self.current_multiplier,
            "revealed_memories": list(self.revealed_memories),
            "winner": self.winner,
            "win_reason": self.win_reason.value if self.win_reason is not None else None,
            "created_at": self.created_at,
            "last_update": self.last_update,
            "finished_at": self.finished_at,
        }
