"""Match lifecycle: rooms being created, joined, left, started and set up.

    waiting --start--> intro --complete_intro--> playing --(turn engine)--> finished

The acting user's ``current_match_id`` is written in the same transaction as
the match, so a user always points at the room they are actually seated in.
"""

import copy
import logging
import random
import secrets

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import AbandonPolicy, settings
from app.data.game_config import GameConfig
from app.errors import (
    AlreadyInMatchError,
    InvalidStatusError,
    MatchFullError,
    MatchNotFoundError,
    NotEnoughPlayersError,
    NotInMatchError,
    NotMatchCreatorError,
    RoomCodeExhaustedError,
)
from app.models.match import Match, MatchStatus, TurnState, WinReason, utcnow
from app.models.user import User
from app.services.deck_generator import generate_deck
from app.services.match_rules import check_create
from app.services.match_store import WriteAction, atomic_update, get_match, read_match
from app.services.memory_pool import PoolCache, get_text_pool
from app.services.table_service import initialize_table, remaining_count
from app.services.victory_service import get_standings

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes can be read out loud
ROOM_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"
ROOM_CODE_LENGTH = 6
ROOM_CODE_ATTEMPTS = 3

ACTIVE_STATUSES = (MatchStatus.intro, MatchStatus.playing)


def generate_room_code(length: int = ROOM_CODE_LENGTH) -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def _fresh_record(config: GameConfig) -> dict:
    return {"integrity": config.starting_integrity, "items": []}


async def create_match(
    db: AsyncSession, creator: User, config: GameConfig | None = None
) -> Match:
    config = config or settings.game
    player_id = creator.player_id

    for _ in range(ROOM_CODE_ATTEMPTS):
        code = generate_room_code()
        if await get_match(db, code) is None:
            break
        logger.debug("Room code %s already taken", code)
    else:
        logger.error("Could not find a free room code after %d attempts", ROOM_CODE_ATTEMPTS)
        raise RoomCodeExhaustedError()

    now = utcnow()
    match = Match(
        id=code,
        status=MatchStatus.waiting,
        players={player_id: _fresh_record(config)},
        order_players=[player_id],
        turn=0,
        turn_state=TurnState.draw,
        memory_deck=[],
        cards_drawn=0,
        table_cards=[],
        current_card=None,
        selected_card_index=None,
        card_initiator=None,
        current_multiplier=1,
        revealed_memories=[],
        winner=None,
        win_reason=None,
        created_at=now,
        last_update=now,
        finished_at=None,
    )
    check_create(match.to_document(), player_id, config)

    db.add(match)
    creator.current_match_id = code
    await db.commit()
    logger.info("Match %s created by %s", code, player_id)
    return match


async def join_match(
    db: AsyncSession, match_id: str, user: User, config: GameConfig | None = None
) -> Match:
    config = config or settings.game
    player_id = user.player_id

    def mutate(match: Match) -> None:
        if match.status != MatchStatus.waiting:
            raise InvalidStatusError("join", match.status.value)
        if player_id in match.players:
            raise AlreadyInMatchError()
        if len(match.order_players) >= config.max_players:
            raise MatchFullError()

        players = copy.deepcopy(match.players)
        players[player_id] = _fresh_record(config)
        match.players = players
        match.order_players = [*match.order_players, player_id]
        user.current_match_id = match.id

    match = await atomic_update(db, match_id, player_id, mutate, related=[user], config=config)
    logger.info("%s joined match %s (%d players)", player_id, match_id, len(match.order_players))
    return match


async def leave_match(
    db: AsyncSession,
    match_id: str,
    user: User,
    config: GameConfig | None = None,
    policy: AbandonPolicy | None = None,
) -> Match | None:
    """Remove ``user`` from the match.

    A waiting match whose last player leaves is deleted (returns None).  An
    active match with nobody left is finished without a winner.  When one
    player is left in an active match, ``policy`` decides: ``keep_waiting``
    suspends the match (every transition is refused; the remaining player can
    only leave),
    ``forfeit`` hands the remaining player the win.  A card left pending by
    the leaver is put back and the turn returns to the draw phase.
    """
    config = config or settings.game
    policy = policy or settings.abandon_policy
    player_id = user.player_id

    def mutate(match: Match) -> WriteAction | None:
        if player_id not in match.players:
            raise NotInMatchError()
        if user.current_match_id == match.id:
            user.current_match_id = None

        remaining = [p for p in match.order_players if p != player_id]
        if match.status == MatchStatus.waiting and not remaining:
            return WriteAction.delete

        leaving_index = match.order_players.index(player_id)
        turn = match.turn - 1 if leaving_index < match.turn else match.turn

        players = copy.deepcopy(match.players)
        del players[player_id]
        match.players = players
        match.order_players = remaining
        match.turn = turn % len(remaining) if remaining else 0

        if match.status not in ACTIVE_STATUSES:
            return None
        if match.turn_state in (TurnState.decide, TurnState.opponent_decide):
            match.card_in_play = None
            match.selected_card_index = None
            match.card_initiator = None
            match.current_multiplier = 1
            match.turn_state = TurnState.draw
        if not remaining:
            match.status = MatchStatus.finished
            match.finished_at = utcnow()
            logger.info("Match %s abandoned by every player", match.id)
        elif policy == AbandonPolicy.forfeit:
            match.status = MatchStatus.finished
            match.winner = remaining[0]
            match.win_reason = WinReason.opponent_left
            match.finished_at = utcnow()
            logger.info("Match %s forfeited by %s, %s wins", match.id, player_id, remaining[0])
        return None

    try:
        match = await atomic_update(db, match_id, player_id, mutate, related=[user], config=config)
    except MatchNotFoundError:
        if user.current_match_id == match_id:
            user.current_match_id = None
            await db.commit()
        logger.info("%s left missing match %s", player_id, match_id)
        return None

    logger.info("%s left match %s", player_id, match_id)
    return match


async def start_match(
    db: AsyncSession, match_id: str, user: User, config: GameConfig | None = None
) -> Match:
    config = config or settings.game
    player_id = user.player_id

    def mutate(match: Match) -> None:
        if match.status != MatchStatus.waiting:
            raise InvalidStatusError("start", match.status.value)
        if player_id not in match.players:
            raise NotInMatchError()
        if match.order_players[0] != player_id:
            raise NotMatchCreatorError()
        if len(match.order_players) != config.max_players:
            raise NotEnoughPlayersError(config.max_players, len(match.order_players))
        match.status = MatchStatus.intro

    match = await atomic_update(db, match_id, player_id, mutate, config=config)
    logger.info("Match %s started by %s", match_id, player_id)
    return match


async def complete_intro(
    db: AsyncSession,
    match_id: str,
    user: User,
    cache: PoolCache | None = None,
    config: GameConfig | None = None,
    rng: random.Random | None = None,
) -> Match:
    """Generate the deck, deal the table and open the first turn.

    Either player may call this; once the match is playing further calls
    return it unchanged.
    """
    config = config or settings.game
    player_id = user.player_id

    current = await read_match(db, match_id)
    if player_id not in current.players:
        raise NotInMatchError()
    if current.status == MatchStatus.playing:
        return current
    if current.status != MatchStatus.intro:
        raise InvalidStatusError("complete the intro", current.status.value)
    if len(current.order_players) < config.max_players:
        raise NotEnoughPlayersError(config.max_players, len(current.order_players), "play")

    pool = await get_text_pool(db, cache)
    deck = generate_deck(pool, config, rng)
    table, cards_drawn = initialize_table(deck, config.table_size)

    def mutate(match: Match) -> WriteAction | None:
        if player_id not in match.players:
            raise NotInMatchError()
        if match.status == MatchStatus.playing:
            return WriteAction.skip
        if match.status != MatchStatus.intro:
            raise InvalidStatusError("complete the intro", match.status.value)
        if len(match.order_players) < config.max_players:
            raise NotEnoughPlayersError(config.max_players, len(match.order_players), "play")

        match.deck = deck
        match.table = table
        match.cards_drawn = cards_drawn
        match.turn = 0
        match.turn_state = TurnState.draw
        match.current_multiplier = 1
        match.card_in_play = None
        match.selected_card_index = None
        match.card_initiator = None
        match.status = MatchStatus.playing
        return None

    match = await atomic_update(db, match_id, player_id, mutate, config=config)
    logger.info("Match %s is playing, %s goes first", match_id, match.current_player_id)
    return match


async def get_match_for_user(db: AsyncSession, user: User) -> Match | None:
    """Return the match the user is seated in, if any."""
    if user.current_match_id is None:
        return None
    match = await get_match(db, user.current_match_id)
    if match is None or user.player_id not in match.players:
        return None
    return match


async def get_match_summary(db: AsyncSession, match_id: str) -> dict:
    match = await read_match(db, match_id)
    return {
        "id": match.id,
        "status": match.status,
        "winner": match.winner,
        "win_reason": match.win_reason,
        "standings": get_standings(match.players, match.order_players),
        "cards_remaining": remaining_count(match.table, match.deck, match.cards_drawn),
        "revealed_memories": list(match.revealed_memories),
        "finished_at": match.finished_at,
    }
