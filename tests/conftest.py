"""
Pytest Configuration and Fixtures for Capture Stats Tests
=========================================================

Purpose
-------
Centralized fixtures for the test suite.

Responsibilities
----------------
- Manual clock and in-memory store for unit tests
- StatsCoordinator wired to the in-memory store
- DatabaseService + SqlStatsStore against a SQLite file (aiosqlite)
- PostgreSQL testcontainer for the same integration tests, skipped when
  Docker is not available

Architecture Notes
------------------
- Unit tests never touch a database; they run against InMemoryStatsStore.
- Integration tests get a fresh database per test: a new SQLite file, or
  dropped and recreated tables on the shared PostgreSQL container.
- asyncio_mode = "auto" (pyproject.toml), so async tests need no marker.
"""

from __future__ import annotations

import os
import uuid
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from capture_stats.core.config.config import Config
from capture_stats.core.config.settings import StatsSettings
from capture_stats.core.database.service import DatabaseService
from capture_stats.core.logging.logger import get_logger
from capture_stats.database.models import Base
from capture_stats.modules.stats.coordinator import StatsCoordinator
from capture_stats.modules.stats.sql_store import SqlStatsStore
from tests.fakes import FakeClock, InMemoryStatsStore

logger = get_logger(__name__)


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure test environment."""
    os.environ.setdefault("LOG_LEVEL", "DEBUG")
    os.environ.setdefault("LOG_JSON", "false")
    Config.load()


# ============================================================================
# UNIT FIXTURES
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryStatsStore:
    return InMemoryStatsStore()


@pytest.fixture
def settings() -> StatsSettings:
    """Short debounce so tests that wait for it stay fast."""
    return StatsSettings(
        player_stats_ttl=300.0,
        leaderboard_refresh_interval=60.0,
        leaderboard_max_size=10,
        leaderboard_refresh_delay=0.05,
    )


@pytest_asyncio.fixture
async def coordinator(
    store: InMemoryStatsStore,
    settings: StatsSettings,
    clock: FakeClock,
) -> AsyncGenerator[StatsCoordinator, None]:
    coordinator = StatsCoordinator(store, settings=settings, clock=clock)
    yield coordinator
    await coordinator.close()


@pytest.fixture
def player_a() -> uuid.UUID:
    return uuid.UUID("00000000-0000-0000-0000-00000000000a")


@pytest.fixture
def player_b() -> uuid.UUID:
    return uuid.UUID("00000000-0000-0000-0000-00000000000b")


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    PostgreSQL testcontainer shared by the whole session.

    Skips dependent tests when Docker is not reachable.
    """
    logger.info("Starting PostgreSQL testcontainer...")
    container = PostgresContainer(image="postgres:17-alpine", driver="asyncpg")
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"PostgreSQL testcontainer unavailable: {exc}")

    logger.info("PostgreSQL testcontainer started: %s", container.get_connection_url())
    yield container

    logger.info("Stopping PostgreSQL testcontainer...")
    container.stop()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'capture_stats.db'}"


@pytest_asyncio.fixture
async def sqlite_database(sqlite_url: str) -> AsyncGenerator[DatabaseService, None]:
    db = DatabaseService(url=sqlite_url, settings=StatsSettings(connection_pool_size=5))
    await db.initialize()
    await db.run_schema(Base.metadata.create_all)
    yield db
    await db.shutdown()


@pytest_asyncio.fixture(params=["sqlite", "postgresql"])
async def database(request, sqlite_url: str) -> AsyncGenerator[DatabaseService, None]:
    """An initialized DatabaseService with empty stats tables, per backend."""
    settings = StatsSettings(connection_pool_size=5)
    if request.param == "sqlite":
        url = sqlite_url
    else:
        container = request.getfixturevalue("postgres_container")
        url = container.get_connection_url()

    db = DatabaseService(url=url, settings=settings)
    await db.initialize()
    await db.run_schema(Base.metadata.drop_all)
    await db.run_schema(Base.metadata.create_all)
    yield db
    await db.shutdown()


@pytest_asyncio.fixture
async def sql_store(database: DatabaseService) -> SqlStatsStore:
    store = SqlStatsStore(database)
    await store.create_schema()
    return store
