"""Memory pool: the shared collection of memory texts that decks are built from.

The pool lives in the ``memory_pool`` table and changes rarely (only when it
is re-seeded), so reads go through ``PoolCache``, a small TTL cache with an
injectable clock.  The cache is separate from the fetch so each can be tested
on its own.
"""

import logging
import time
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import EmptyPoolError
from app.models.memory_pool import MemoryPoolEntry

logger = logging.getLogger(__name__)


class PoolCache:
    """Holds one fetched pool for ``ttl_seconds`` of ``clock`` time."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._values: list[str] | None = None
        self._stored_at = 0.0

    def get(self) -> list[str] | None:
        """Return the cached pool, or None if empty or expired."""
        if self._values is None:
            return None
        age = self._clock() - self._stored_at
        if age >= self.ttl_seconds:
            logger.debug("Memory pool cache expired (age %.1fs)", age)
            self._values = None
            return None
        logger.debug("Using cached memory pool (age %.1fs, %d entries)", age, len(self._values))
        return list(self._values)

    def set(self, values: list[str]) -> None:
        self._values = list(values)
        self._stored_at = self._clock()

    def invalidate(self) -> None:
        self._values = None


# Process-wide cache used by the HTTP layer
pool_cache = PoolCache(ttl_seconds=settings.pool_cache_ttl_seconds)


async def fetch_text_pool(db: AsyncSession) -> list[str]:
    """Read every memory text in the pool.  Raises EmptyPoolError if none exist."""
    result = await db.execute(select(MemoryPoolEntry.memory).order_by(MemoryPoolEntry.id))
    memories = list(result.scalars().all())
    if not memories:
        logger.error("Memory pool is empty; seed it before starting matches")
        raise EmptyPoolError()
    logger.info("Fetched %d memories from pool", len(memories))
    return memories


async def get_text_pool(db: AsyncSession, cache: PoolCache | None = None) -> list[str]:
    """Return the pool from ``cache`` while fresh, otherwise fetch and cache it."""
    cache = cache if cache is not None else pool_cache
    cached = cache.get()
    if cached is not None:
        return cached
    memories = await fetch_text_pool(db)
    cache.set(memories)
    return memories


async def seed_memory_pool(db: AsyncSession, memories: list[str]) -> int:
    """Add new memories to the pool, skipping blanks and duplicates.

    Returns the number of entries added.
    """
    result = await db.execute(select(MemoryPoolEntry.memory))
    existing = set(result.scalars().all())

    added = 0
    for raw in memories:
        memory = raw.strip()
        if not memory or memory in existing:
            continue
        db.add(MemoryPoolEntry(memory=memory))
        existing.add(memory)
        added += 1

    await db.commit()
    pool_cache.invalidate()
    logger.info("Seeded memory pool: %d added, %d total", added, len(existing))
    return added
