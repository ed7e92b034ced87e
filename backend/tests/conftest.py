"""Pytest configuration and fixtures for testing."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

import competition_engine.models  # noqa: F401  (registers tables on Base.metadata)
from competition_engine.core.clock import to_db_time
from competition_engine.core.database import Base
from competition_engine.models import Competition, CompetitionStatus, Participant
from competition_engine.schemas.competition import CompetitionCreate
from competition_engine.services.competition_service import build_competition

# Fixed reference time: Wednesday 2025-01-15 12:00 UTC
NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()

    # Mock common Redis operations
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.lpush = AsyncMock(return_value=1)
    redis.llen = AsyncMock(return_value=0)
    redis.eval = AsyncMock(return_value=1)

    # register_script is sync and returns an awaitable script object
    release_script = AsyncMock(return_value=1)
    redis.register_script = MagicMock(return_value=release_script)

    return redis


@pytest.fixture
def now() -> datetime:
    return NOW


# Factory for detached participant rows (no session needed)
@pytest.fixture
def make_participant() -> Callable[..., Participant]:
    def factory(
        score: float,
        is_active: bool = True,
        enrolled_offset: int = 0,
        competition_id=None,
    ) -> Participant:
        return Participant(
            id=uuid4(),
            competition_id=competition_id or uuid4(),
            user_id=uuid4(),
            total_score=Decimal(str(score)),
            overall_rank=None,
            category_scores={},
            category_ranks={},
            is_active=is_active,
            auto_enrolled=False,
            enrolled_at=to_db_time(NOW) + timedelta(seconds=enrolled_offset),
        )

    return factory


def competition_data(
    name: str = "custom_test",
    start: datetime = NOW - timedelta(days=7),
    end: datetime = NOW - timedelta(hours=1),
    rewards: dict | None = None,
    **overrides,
) -> CompetitionCreate:
    """Creation request for a competition that, by default, has already ended."""
    if rewards is None:
        rewards = {
            "tiers": [
                {"place": 1, "reward": "Gold Trophy", "type": "trophy", "value": 500},
                {"place": 2, "reward": "Silver Medal", "type": "medal", "value": 300},
                {"place": [3, 5], "reward": "Top 5 Badge", "type": "badge", "value": 100},
            ],
            "participation": {"reward": "Participant Badge", "type": "badge", "value": 10},
        }
    return CompetitionCreate(
        name=name,
        display_name=overrides.pop("display_name", "Test Cup"),
        start_date=start,
        end_date=end,
        rewards=rewards,
        **overrides,
    )


async def store_competition(session_factory, status=CompetitionStatus.ACTIVE, **kwargs) -> Competition:
    """Insert a competition built from competition_data() with the given status."""
    async with session_factory() as session:
        competition = build_competition(competition_data(**kwargs))
        competition.status = status.value
        session.add(competition)
        await session.commit()
        return competition


# =============================================================================
# SQLite-backed store for integration tests
# =============================================================================

@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed aiosqlite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'competitions.db'}")

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def ended_competition(session_factory) -> Competition:
    """ACTIVE competition that ended an hour before NOW, with four participants.

    Scores: 50 (A), 90 (B), 10 (C), and 70 for a participant who left.
    """
    async with session_factory() as session:
        competition = build_competition(competition_data())
        competition.status = CompetitionStatus.ACTIVE.value
        session.add(competition)
        await session.flush()

        for offset, (score, active) in enumerate([(50, True), (90, True), (10, True), (70, False)]):
            session.add(
                Participant(
                    competition_id=competition.id,
                    user_id=uuid4(),
                    total_score=Decimal(score),
                    is_active=active,
                    enrolled_at=to_db_time(NOW - timedelta(days=6)) + timedelta(minutes=offset),
                )
            )
        await session.commit()
        return competition
