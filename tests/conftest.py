import itertools
import os
import tempfile

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.data.game_config import GameConfig
from app.database import get_db
from app.main import app
from app.models.base import Base
from app.models.card import Authenticity, Card
from app.models.match import MatchStatus, TurnState
from app.models.user import User
from app.services.match_service import create_match, join_match, start_match
from app.services.match_store import read_match
from app.services.memory_pool import pool_cache
from app.services.table_service import initialize_table

LABELS = {
    "A": Authenticity.authentic,
    "C": Authenticity.corrupted,
    "F": Authenticity.fatal_glitch,
}
DEFAULT_VALUES = {"A": 1, "C": -1, "F": -10}


def build_deck(pattern: str, values: dict[str, int] | None = None) -> list[Card]:
    """Build a deck from a label string, e.g. "AACF" -> authentic, authentic, corrupted, fatal."""
    values = {**DEFAULT_VALUES, **(values or {})}
    return [
        Card(memory=f"memory {i}", authenticity=LABELS[ch], value=values[ch])
        for i, ch in enumerate(pattern)
    ]


@pytest.fixture
async def db_engine():
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)
    test_db_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(test_db_url, connect_args={"check_same_thread": False})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def fresh_pool_cache():
    """The process-wide pool cache must not leak memories between test databases."""
    pool_cache.invalidate()
    yield
    pool_cache.invalidate()


@pytest.fixture
def config() -> GameConfig:
    return GameConfig()


@pytest.fixture
def make_deck():
    return build_deck


@pytest.fixture
def make_user(db_session: AsyncSession):
    counter = itertools.count(1)

    async def _make(name: str | None = None) -> User:
        name = name or f"player{next(counter)}"
        user = User(email=f"{name}@example.com", username=name, hashed_password="x")
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def playing_match(db_session: AsyncSession, make_user, config: GameConfig):
    """Factory: alice and bob in a playing match dealt from a fixed deck.

    Returns ``(match_id, alice_id, bob_id)``; alice moves first.
    """

    async def _start(deck: list[Card]) -> tuple[str, str, str]:
        alice = await make_user("alice")
        bob = await make_user("bob")
        match = await create_match(db_session, alice, config)
        await join_match(db_session, match.id, bob, config)
        await start_match(db_session, match.id, alice, config)

        # Deal a known deck directly instead of going through complete_intro
        match = await read_match(db_session, match.id)
        table, cards_drawn = initialize_table(deck, config.table_size)
        match.deck = deck
        match.table = table
        match.cards_drawn = cards_drawn
        match.turn = 0
        match.turn_state = TurnState.draw
        match.status = MatchStatus.playing
        await db_session.commit()
        return match.id, alice.player_id, bob.player_id

    return _start


@pytest.fixture
async def client() -> AsyncClient:
    """HTTP client that does NOT override the DB (for endpoints that don't need DB)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_client(db_session: AsyncSession) -> AsyncClient:
    """HTTP client with DB dependency overridden to use the test SQLite DB."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
