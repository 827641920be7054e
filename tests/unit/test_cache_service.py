"""Tests for CacheService.

Tests the TTL cache over the ``voltagent_cache`` table: round trips,
freshness against an injected clock, upserts and failure handling.
"""

import asyncio
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from jobscout.config import Settings
from jobscout.core.database import Database
from jobscout.core.exceptions import PersistenceError
from jobscout.core.result import Err, Ok
from jobscout.repositories.cache_entry import CacheEntryRepository
from jobscout.services.cache import DEFAULT_TTL, CacheService
from tests.conftest import FakeClock

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def cache_service(database: Database, clock: FakeClock) -> CacheService:
    """Create CacheService over the test database."""
    return CacheService(database, clock=clock)


@pytest.fixture
def broken_database() -> MagicMock:
    """Database whose sessions cannot be opened."""
    database = MagicMock(spec=Database)
    database.session.side_effect = RuntimeError("connection refused")
    return database


# =============================================================================
# Round Trip Tests
# =============================================================================


class TestRoundTrip:
    """Tests for put followed by get."""

    @pytest.mark.asyncio
    async def test_put_then_get_returns_fresh_entry(
        self, cache_service: CacheService
    ) -> None:
        payload = {"text": "hello", "nested": {"a": [1, 2]}}

        result = await cache_service.put("u1", "research", "h1", payload, 60)
        entry = await cache_service.get("u1", "research", "h1")

        assert isinstance(result, Ok)
        assert entry is not None
        assert entry.payload == payload
        assert entry.ttl_seconds == 60
        assert cache_service.is_fresh(entry)

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, cache_service: CacheService) -> None:
        assert await cache_service.get("u1", "research", "nope") is None

    @pytest.mark.asyncio
    async def test_default_ttl(self, cache_service: CacheService) -> None:
        await cache_service.put("u1", "research", "h1", {"text": "x"})
        entry = await cache_service.get("u1", "research", "h1")

        assert entry is not None
        assert entry.ttl_seconds == DEFAULT_TTL == 86400

    @pytest.mark.asyncio
    async def test_upsert_overwrites_single_row(
        self, cache_service: CacheService, database: Database, clock: FakeClock
    ) -> None:
        await cache_service.put("u1", "research", "h1", {"text": "old"}, 60)
        clock.advance(30)
        await cache_service.put("u1", "research", "h1", {"text": "new"}, 120)

        async with database.session() as session:
            count = await CacheEntryRepository(session).count()
        entry = await cache_service.get("u1", "research", "h1")

        assert count == 1
        assert entry is not None
        assert entry.payload == {"text": "new"}
        assert entry.ttl_seconds == 120

    @pytest.mark.asyncio
    async def test_keys_are_scoped_by_user_and_endpoint(
        self, cache_service: CacheService
    ) -> None:
        await cache_service.put("u1", "research", "h1", {"text": "x"})

        assert await cache_service.get("u2", "research", "h1") is None
        assert await cache_service.get("u1", "project-generator", "h1") is None


# =============================================================================
# Freshness Tests
# =============================================================================


class TestFreshness:
    """Tests for TTL expiry with a simulated clock."""

    @pytest.mark.asyncio
    async def test_entry_goes_stale_after_ttl(
        self, cache_service: CacheService, clock: FakeClock
    ) -> None:
        await cache_service.put("u1", "research", "h1", {"text": "x"}, 60)
        entry = await cache_service.get("u1", "research", "h1")
        assert entry is not None

        clock.advance(59)
        assert cache_service.is_fresh(entry)

        clock.advance(1)
        assert not cache_service.is_fresh(entry)

    @pytest.mark.asyncio
    async def test_get_fresh_ignores_stale_entries(
        self, cache_service: CacheService, clock: FakeClock
    ) -> None:
        await cache_service.put("u1", "research", "h1", {"text": "x"}, 60)
        clock.advance(61)

        assert await cache_service.get_fresh("u1", "research", "h1") is None
        # The row still exists; it is only ignored
        assert await cache_service.get("u1", "research", "h1") is not None

    @pytest.mark.asyncio
    async def test_rewrite_refreshes_created_at(
        self, cache_service: CacheService, clock: FakeClock
    ) -> None:
        await cache_service.put("u1", "research", "h1", {"text": "x"}, 60)
        clock.advance(61)
        await cache_service.put("u1", "research", "h1", {"text": "y"}, 60)

        entry = await cache_service.get_fresh("u1", "research", "h1")

        assert entry is not None
        assert entry.payload == {"text": "y"}


# =============================================================================
# Concurrent Write Tests
# =============================================================================


@pytest.fixture
async def file_database(
    test_settings: Settings, tmp_path: Path
) -> AsyncGenerator[Database, None]:
    """File-backed SQLite so each session gets its own connection."""
    settings = test_settings.model_copy(
        update={"database_url": f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}"}
    )
    db = Database.from_settings(settings)
    await db.create_all()
    yield db
    await db.dispose()


class TestConcurrentWrites:
    """Tests for racing writers on one cache key."""

    @pytest.mark.asyncio
    async def test_racing_puts_both_succeed(
        self, file_database: Database, clock: FakeClock
    ) -> None:
        service = CacheService(file_database, clock=clock)

        first, second = await asyncio.gather(
            service.put("u1", "research", "h1", {"text": "first"}, 60),
            service.put("u1", "research", "h1", {"text": "second"}, 120),
        )
        entry = await service.get("u1", "research", "h1")

        assert isinstance(first, Ok)
        assert isinstance(second, Ok)
        assert entry is not None
        assert (entry.payload, entry.ttl_seconds) in [
            ({"text": "first"}, 60),
            ({"text": "second"}, 120),
        ]
        async with file_database.session() as session:
            assert await CacheEntryRepository(session).count() == 1

    @pytest.mark.asyncio
    async def test_last_write_wins(
        self, file_database: Database, clock: FakeClock
    ) -> None:
        service = CacheService(file_database, clock=clock)

        for text in ["a", "b", "c"]:
            assert isinstance(
                await service.put("u1", "research", "h1", {"text": text}), Ok
            )
        entry = await service.get("u1", "research", "h1")

        assert entry is not None
        assert entry.payload == {"text": "c"}


# =============================================================================
# Failure Tests
# =============================================================================


class TestFailures:
    """Tests for degraded behaviour when the store is down."""

    @pytest.mark.asyncio
    async def test_get_failure_is_a_miss(
        self, broken_database: MagicMock, clock: FakeClock
    ) -> None:
        service = CacheService(broken_database, clock=clock)
        assert await service.get("u1", "research", "h1") is None

    @pytest.mark.asyncio
    async def test_put_failure_returns_err(
        self, broken_database: MagicMock, clock: FakeClock
    ) -> None:
        service = CacheService(broken_database, clock=clock)

        result = await service.put("u1", "research", "h1", {"text": "x"})

        assert isinstance(result, Err)
        assert not result.ok
        assert isinstance(result.error, PersistenceError)
        assert "connection refused" in str(result.error.details["error"])
