"""Match persistence: fresh reads and atomic read-modify-write.

``atomic_update`` is the only way a stored match changes.  Each attempt:

  1. reads the match row fresh (never trusting an identity-map copy),
  2. snapshots it and applies the caller's ``mutate`` function, which
     re-validates its preconditions against that fresh row,
  3. has the rules layer re-check the before/after documents,
  4. commits with a version-checked UPDATE.

If another writer committed between the read and the UPDATE, the version no
longer matches, SQLAlchemy raises ``StaleDataError`` and the attempt is
retried from step 1.  After ``settings.transition_max_attempts`` lost races a
``MatchConflictError`` is raised.  Any other failure leaves the stored match
and the in-session objects as they were before the call.
"""

import enum
import logging
from typing import Any, Callable, Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.data.game_config import GameConfig
from app.errors import GameError, MatchConflictError, MatchNotFoundError
from app.models.match import Match, utcnow
from app.services.match_rules import check_write

logger = logging.getLogger(__name__)


class WriteAction(str, enum.Enum):
    update = "update"
    delete = "delete"
    # Nothing to do; no write is attempted
    skip = "skip"


# A mutation edits the match in place; returning WriteAction.delete removes it,
# WriteAction.skip leaves it as read
Mutation = Callable[[Match], WriteAction | None]


async def get_match(db: AsyncSession, match_id: str) -> Match | None:
    result = await db.execute(
        select(Match)
        .where(Match.id == match_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def read_match(db: AsyncSession, match_id: str) -> Match:
    """Return the current stored state of a match or raise MatchNotFoundError."""
    match = await get_match(db, match_id)
    if match is None:
        raise MatchNotFoundError(match_id)
    return match


async def atomic_update(
    db: AsyncSession,
    match_id: str,
    actor_id: str,
    mutate: Mutation,
    related: Iterable[Any] = (),
    config: GameConfig | None = None,
    max_attempts: int | None = None,
) -> Match | None:
    """Apply ``mutate`` to the freshest copy of the match and commit atomically.

    ``related`` lists other ORM objects the mutation touches (e.g. the acting
    user); they are committed in the same transaction and reloaded if the
    attempt has to be thrown away.  Returns the committed match, or None if
    the mutation deleted it.
    """
    config = config or settings.game
    attempts = max_attempts or settings.transition_max_attempts
    related = list(related)

    for attempt in range(1, attempts + 1):
        match = await read_match(db, match_id)
        before = match.to_document()
        try:
            action = mutate(match) or WriteAction.update
            if action == WriteAction.skip:
                return match
            after = match.to_document() if action == WriteAction.update else None
            check_write(before, after, actor_id, config)
            if action == WriteAction.delete:
                await db.delete(match)
            else:
                match.last_update = utcnow()
            await db.commit()
        except StaleDataError:
            await db.rollback()
            for obj in related:
                await db.refresh(obj)
            logger.warning(
                "Concurrent write on match %s (attempt %d/%d), retrying",
                match_id,
                attempt,
                attempts,
            )
            continue
        except GameError:
            # Nothing was flushed: reload to drop the in-memory edits
            with db.no_autoflush:
                await db.refresh(match)
                for obj in related:
                    await db.refresh(obj)
            raise
        except Exception:
            await db.rollback()
            raise

        if action == WriteAction.delete:
            logger.info("Match %s deleted by %s", match_id, actor_id)
            return None
        return match

    logger.warning("Giving up on match %s after %d conflicting attempts", match_id, attempts)
    raise MatchConflictError(match_id, attempts)
