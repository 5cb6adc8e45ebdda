"""Turn engine: the five transitions that move a match from turn to turn.

    draw --select--> decide --claim--------------------------> draw (next turn)
                            --reject--> opponent_decide --opponent_claim------> draw
                                                        --opponent_reject_back-> draw

Every transition runs through ``match_store.atomic_update``: preconditions are
checked against a fresh read of the match, and a failed check raises before
anything is written.  Resolving transitions (claim, opponent claim, reject
back) then apply points, refresh the table, log authentic memories, check
victory, and either finish the match or pass the turn.
"""

import copy
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.data.game_config import GameConfig
from app.errors import (
    GameError,
    InitiatorCannotRespondError,
    InvalidIndexError,
    InvalidPhaseError,
    MatchNotPlayingError,
    NoCurrentCardError,
    NoInitiatorError,
    NotCardInitiatorError,
    NotEnoughPlayersError,
    NotInMatchError,
    NotYourTurnError,
)
from app.models.card import Card
from app.models.match import Match, MatchStatus, TurnState, utcnow
from app.services.match_store import Mutation, atomic_update
from app.services.table_service import can_continue, refresh_table
from app.services.victory_service import VictoryCheck, evaluate_exhaustion, evaluate_victory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Precondition helpers
# ---------------------------------------------------------------------------


def _require_playing(match: Match) -> None:
    if match.status != MatchStatus.playing:
        raise MatchNotPlayingError()


def _require_full_match(match: Match, config: GameConfig) -> None:
    # A match abandoned under keep_waiting stays playing but is suspended
    if len(match.order_players) < config.max_players:
        raise NotEnoughPlayersError(config.max_players, len(match.order_players), "play")


def _require_turn_state(match: Match, expected: TurnState, action: str) -> None:
    if match.turn_state != expected:
        raise InvalidPhaseError(action, match.turn_state.value)


def _require_card(match: Match) -> Card:
    card = match.card_in_play
    if card is None or match.selected_card_index is None:
        raise NoCurrentCardError()
    return card


def _require_opponent(match: Match, player_id: str) -> None:
    if match.card_initiator == player_id:
        raise InitiatorCannotRespondError()
    if player_id not in match.players:
        raise NotInMatchError()


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _clear_card(match: Match) -> None:
    match.card_in_play = None
    match.selected_card_index = None
    match.card_initiator = None
    match.current_multiplier = 1


def _finish(match: Match, result: VictoryCheck) -> None:
    match.status = MatchStatus.finished
    match.winner = result.winner_id
    match.win_reason = result.reason
    match.finished_at = utcnow()


def _resolve(match: Match, card: Card, target_id: str, config: GameConfig) -> int:
    """Apply the card in play to ``target_id`` and close the turn.

    Order matters: points, table refresh, memory log, then the victory check
    on the updated integrity.  Returns the points applied.
    """
    points = card.value * match.current_multiplier

    players = copy.deepcopy(match.players)
    players[target_id]["integrity"] += points
    match.players = players

    deck = match.deck
    table, cards_drawn = refresh_table(match.table, match.selected_card_index, deck, match.cards_drawn)
    match.table = table
    match.cards_drawn = cards_drawn

    if card.is_authentic:
        match.revealed_memories = [*match.revealed_memories, card.memory]

    result = evaluate_victory(players, match.order_players, config)
    if not result.has_winner and not can_continue(table, deck, cards_drawn):
        result = evaluate_exhaustion(players, match.order_players)

    _clear_card(match)
    if result.has_winner:
        _finish(match, result)
    else:
        match.turn = (match.turn + 1) % len(match.order_players)
        match.turn_state = TurnState.draw
    return points


async def _transition(
    db: AsyncSession,
    match_id: str,
    player_id: str,
    action: str,
    mutate: Mutation,
    config: GameConfig,
) -> Match:
    try:
        match = await atomic_update(db, match_id, player_id, mutate, config=config)
    except GameError as e:
        logger.warning("%s rejected on match %s for %s: %s", action, match_id, player_id, e)
        raise
    logger.info(
        "%s on match %s by %s -> status=%s turn=%d state=%s",
        action,
        match_id,
        player_id,
        match.status.value,
        match.turn,
        match.turn_state.value,
    )
    return match


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def select_card(
    db: AsyncSession,
    match_id: str,
    player_id: str,
    card_index: int,
    config: GameConfig | None = None,
) -> Match:
    """DRAW: the player whose turn it is picks a face-down card from the table."""
    config = config or settings.game

    def mutate(match: Match) -> None:
        _require_playing(match)
        _require_full_match(match, config)
        _require_turn_state(match, TurnState.draw, "select a card")
        if match.current_player_id != player_id:
            raise NotYourTurnError()
        table = match.table
        if card_index < 0 or card_index >= len(table):
            raise InvalidIndexError(card_index, len(table))

        match.card_in_play = table[card_index]
        match.selected_card_index = card_index
        match.card_initiator = player_id
        match.turn_state = TurnState.decide
        match.current_multiplier = 1

    return await _transition(db, match_id, player_id, "select", mutate, config)


async def claim_card(
    db: AsyncSession, match_id: str, player_id: str, config: GameConfig | None = None
) -> Match:
    """DECIDE: the initiator keeps the card and takes its points."""
    config = config or settings.game

    def mutate(match: Match) -> None:
        _require_playing(match)
        _require_full_match(match, config)
        _require_turn_state(match, TurnState.decide, "claim a card")
        if match.card_initiator != player_id:
            raise NotCardInitiatorError()
        card = _require_card(match)
        points = _resolve(match, card, player_id, config)
        logger.debug("Match %s: %s claimed %+d", match.id, player_id, points)

    return await _transition(db, match_id, player_id, "claim", mutate, config)


async def reject_card(
    db: AsyncSession, match_id: str, player_id: str, config: GameConfig | None = None
) -> Match:
    """DECIDE: the initiator passes the card, unseen, to the opponent at triple stakes."""
    config = config or settings.game

    def mutate(match: Match) -> None:
        _require_playing(match)
        _require_full_match(match, config)
        _require_turn_state(match, TurnState.decide, "reject a card")
        if match.card_initiator != player_id:
            raise NotCardInitiatorError()
        _require_card(match)

        match.turn_state = TurnState.opponent_decide
        match.current_multiplier = config.reject_multiplier

    return await _transition(db, match_id, player_id, "reject", mutate, config)


async def opponent_claim_card(
    db: AsyncSession, match_id: str, player_id: str, config: GameConfig | None = None
) -> Match:
    """OPPONENT_DECIDE: the opponent accepts the rejected card blind."""
    config = config or settings.game

    def mutate(match: Match) -> None:
        _require_playing(match)
        _require_full_match(match, config)
        _require_turn_state(match, TurnState.opponent_decide, "claim a rejected card")
        _require_opponent(match, player_id)
        card = _require_card(match)
        points = _resolve(match, card, player_id, config)
        logger.debug("Match %s: %s claimed rejected card for %+d", match.id, player_id, points)

    return await _transition(db, match_id, player_id, "opponent_claim", mutate, config)


async def opponent_reject_back(
    db: AsyncSession, match_id: str, player_id: str, config: GameConfig | None = None
) -> Match:
    """OPPONENT_DECIDE: the opponent forces the card back on the initiator."""
    config = config or settings.game

    def mutate(match: Match) -> None:
        _require_playing(match)
        _require_full_match(match, config)
        _require_turn_state(match, TurnState.opponent_decide, "reject a card back")
        _require_opponent(match, player_id)
        card = _require_card(match)
        initiator = match.card_initiator
        if initiator is None or initiator not in match.players:
            raise NoInitiatorError()
        points = _resolve(match, card, initiator, config)
        logger.debug(
            "Match %s: %s forced card back on %s for %+d", match.id, player_id, initiator, points
        )

    return await _transition(db, match_id, player_id, "opponent_reject_back", mutate, config)
