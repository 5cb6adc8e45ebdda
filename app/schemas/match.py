from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.models.match import Match, MatchStatus, TurnState, WinReason


class FaceDownCard(BaseModel):
    """A card as the players see it: the memory text only.

    Authenticity and value stay hidden until the card is resolved.
    """

    memory: str


class PlayerState(BaseModel):
    player_id: str
    integrity: int
    items: list[Any] = Field(default_factory=list)


class MatchResponse(BaseModel):
    id: str
    status: MatchStatus
    players: list[PlayerState]
    order_players: list[str]
    turn: int
    current_player_id: str | None
    turn_state: TurnState
    table_cards: list[FaceDownCard]
    supply_remaining: int
    current_card: FaceDownCard | None
    selected_card_index: int | None
    card_initiator: str | None
    current_multiplier: int
    revealed_memories: list[str]
    winner: str | None
    win_reason: WinReason | None
    created_at: datetime
    last_update: datetime
    finished_at: datetime | None

    @classmethod
    def from_match(cls, match: Match) -> "MatchResponse":
        current = match.current_card
        return cls(
            id=match.id,
            status=match.status,
            players=[
                PlayerState(player_id=p, **match.players[p]) for p in match.order_players
            ],
            order_players=list(match.order_players),
            turn=match.turn,
            current_player_id=match.current_player_id,
            turn_state=match.turn_state,
            table_cards=[FaceDownCard(memory=c["memory"]) for c in match.table_cards],
            supply_remaining=max(len(match.memory_deck) - match.cards_drawn, 0),
            current_card=FaceDownCard(memory=current["memory"]) if current else None,
            selected_card_index=match.selected_card_index,
            card_initiator=match.card_initiator,
            current_multiplier=match.current_multiplier,
            revealed_memories=list(match.revealed_memories),
            winner=match.winner,
            win_reason=match.win_reason,
            created_at=match.created_at,
            last_update=match.last_update,
            finished_at=match.finished_at,
        )


class StandingEntry(BaseModel):
    player_id: str
    integrity: int


class MatchSummaryResponse(BaseModel):
    id: str
    status: MatchStatus
    winner: str | None
    win_reason: WinReason | None
    standings: list[StandingEntry]
    cards_remaining: int
    revealed_memories: list[str]
    finished_at: datetime | None


class LeaveResponse(BaseModel):
    match_id: str
    deleted: bool
    match: MatchResponse | None = None


class SelectCardRequest(BaseModel):
    # Range is checked against the live table by the turn engine
    index: int
