import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import EmptyPoolError
from app.models.memory_pool import MemoryPoolEntry
from app.services.memory_pool import (
    PoolCache,
    fetch_text_pool,
    get_text_pool,
    seed_memory_pool,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestPoolCache:
    def test_empty_cache_misses(self):
        assert PoolCache(ttl_seconds=60, clock=FakeClock()).get() is None

    def test_hit_while_fresh(self):
        clock = FakeClock()
        cache = PoolCache(ttl_seconds=60, clock=clock)
        cache.set(["a", "b"])
        clock.advance(59.9)
        assert cache.get() == ["a", "b"]

    def test_expires_at_ttl(self):
        clock = FakeClock()
        cache = PoolCache(ttl_seconds=60, clock=clock)
        cache.set(["a"])
        clock.advance(60)
        assert cache.get() is None

    def test_returned_list_is_a_copy(self):
        cache = PoolCache(ttl_seconds=60, clock=FakeClock())
        cache.set(["a"])
        cache.get().append("b")
        assert cache.get() == ["a"]

    def test_invalidate(self):
        cache = PoolCache(ttl_seconds=60, clock=FakeClock())
        cache.set(["a"])
        cache.invalidate()
        assert cache.get() is None


class TestFetchTextPool:
    async def test_empty_pool_raises(self, db_session: AsyncSession):
        with pytest.raises(EmptyPoolError):
            await fetch_text_pool(db_session)

    async def test_returns_memories_in_insertion_order(self, db_session: AsyncSession):
        db_session.add_all([MemoryPoolEntry(memory="first"), MemoryPoolEntry(memory="second")])
        await db_session.commit()
        assert await fetch_text_pool(db_session) == ["first", "second"]


class TestGetTextPool:
    async def test_uses_cache_until_expired(self, db_session: AsyncSession):
        clock = FakeClock()
        cache = PoolCache(ttl_seconds=300, clock=clock)
        await seed_memory_pool(db_session, ["one", "two"])

        assert await get_text_pool(db_session, cache) == ["one", "two"]

        # New rows are not visible while the cached pool is fresh
        await seed_memory_pool(db_session, ["three"])
        assert await get_text_pool(db_session, cache) == ["one", "two"]

        clock.advance(300)
        assert await get_text_pool(db_session, cache) == ["one", "two", "three"]

    async def test_empty_pool_is_not_cached(self, db_session: AsyncSession):
        cache = PoolCache(ttl_seconds=300, clock=FakeClock())
        with pytest.raises(EmptyPoolError):
            await get_text_pool(db_session, cache)
        assert cache.get() is None


class TestSeedMemoryPool:
    async def test_skips_blanks_and_duplicates(self, db_session: AsyncSession):
        added = await seed_memory_pool(db_session, ["  alpha ", "", "beta", "alpha", "   "])
        assert added == 2
        assert await fetch_text_pool(db_session) == ["alpha", "beta"]

    async def test_reseeding_only_adds_new(self, db_session: AsyncSession):
        await seed_memory_pool(db_session, ["alpha", "beta"])
        added = await seed_memory_pool(db_session, ["beta", "gamma"])
        assert added == 1
        assert await fetch_text_pool(db_session) == ["alpha", "beta", "gamma"]
