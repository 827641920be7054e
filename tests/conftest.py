"""Pytest configuration and fixtures for JobScout gateway tests.

This module provides reusable fixtures for:
- Async test client
- Test database (in-memory SQLite)
- A controllable clock
- A mocked chat completion provider
- Settings overrides
"""

import json
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from jobscout.config import Settings
from jobscout.core.database import Database
from jobscout.core.retry import RetryOptions
from jobscout.dependencies import get_database, get_gateway, get_provider
from jobscout.main import create_app
from jobscout.services.cache import CacheService
from jobscout.services.executions import ExecutionLogger
from jobscout.services.gateway import AgentGateway, GatewayPolicy
from jobscout.services.provider import ProviderClient
from jobscout.services.rate_limiter import RateLimiter
from tests.mocks.openai_responses import RESEARCH_RESPONSE

PROVIDER_BASE_URL = "https://provider.test"


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Create test-specific settings.

    Overrides production settings with test-appropriate values.
    """
    return Settings(
        app_env="development",  # type: ignore[arg-type]
        debug=False,
        log_level="DEBUG",  # type: ignore[arg-type]
        log_format="console",  # type: ignore[arg-type]
        database_url="sqlite+aiosqlite:///:memory:",
        openai_api_key="sk-test-key",  # type: ignore[arg-type]
        openai_base_url=PROVIDER_BASE_URL,
        rate_limit_capacity=30,
        rate_limit_window_seconds=300,
    )


# =============================================================================
# Clock and Sleep Fixtures
# =============================================================================


class FakeClock:
    """Clock whose time only moves when a test says so."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock shared by the rate limiter, cache and log."""
    return FakeClock()


@pytest.fixture
def sleeps() -> list[float]:
    """Seconds passed to the retry sleep, in call order."""
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]) -> Callable[[float], Any]:
    """Sleep replacement that records instead of waiting."""

    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, None]:
    """In-memory SQLite database with the gateway tables created."""
    db = Database.from_settings(test_settings)
    await db.create_all()
    yield db
    await db.dispose()


# =============================================================================
# Provider Fixtures
# =============================================================================


class ProviderStub:
    """Scripted stand-in for the chat completion API.

    Queue responses (or exceptions) with ``push``; once the queue is empty
    every call gets ``default``. Each request body is kept in ``calls``.
    """

    def __init__(self) -> None:
        self.queue: list[httpx.Response | Exception] = []
        self.default: httpx.Response | Exception = httpx.Response(
            200, json=RESEARCH_RESPONSE
        )
        self.calls: list[dict[str, Any]] = []
        self.headers: list[httpx.Headers] = []

    def push(self, *outcomes: httpx.Response | Exception) -> None:
        self.queue.extend(outcomes)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(json.loads(request.content))
        self.headers.append(request.headers)
        outcome = self.queue.pop(0) if self.queue else self.default
        if isinstance(outcome, Exception):
            raise outcome
        # Fresh copy so the default response can be served more than once
        return httpx.Response(
            outcome.status_code, headers=outcome.headers, content=outcome.content
        )


@pytest.fixture
def provider_stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
async def provider(
    provider_stub: ProviderStub, fake_sleep: Callable[[float], Any]
) -> AsyncGenerator[ProviderClient, None]:
    """ProviderClient talking to the stub through httpx.MockTransport."""
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(provider_stub.handler),
        base_url=PROVIDER_BASE_URL,
    )
    client = ProviderClient(
        http_client,
        "sk-test-key",
        retry=RetryOptions(retries=2, sleep=fake_sleep),
    )
    yield client
    await client.aclose()


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def gateway(
    test_settings: Settings,
    database: Database,
    provider: ProviderClient,
    clock: FakeClock,
) -> AgentGateway:
    """Gateway wired to the test database, stub provider and fake clock."""
    return AgentGateway(
        rate_limiter=RateLimiter(
            database,
            capacity=test_settings.rate_limit_capacity,
            window_seconds=test_settings.rate_limit_window_seconds,
            clock=clock,
        ),
        cache=CacheService(database, clock=clock),
        executions=ExecutionLogger(database, clock=clock),
        provider=provider,
        policy=GatewayPolicy.from_settings(test_settings),
        clock=clock,
    )


# =============================================================================
# Application Fixtures
# =============================================================================


@pytest.fixture
def app(
    test_settings: Settings,
    database: Database,
    provider: ProviderClient,
    gateway: AgentGateway,
) -> FastAPI:
    """Create a test FastAPI application with injected collaborators.

    ASGITransport does not run the lifespan, so the objects it would build
    are supplied through dependency overrides instead.
    """
    application = create_app(settings=test_settings)
    application.dependency_overrides[get_database] = lambda: database
    application.dependency_overrides[get_provider] = lambda: provider
    application.dependency_overrides[get_gateway] = lambda: gateway
    return application


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing.

    This client makes requests to the test app without starting a server.

    Usage:
        async def test_endpoint(async_client: AsyncClient):
            response = await async_client.get("/health/live")
            assert response.status_code == 200
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def research_body() -> dict[str, Any]:
    """Minimal valid research request."""
    return {
        "userId": "u1",
        "endpoint": "research",
        "input": {"query": "funding"},
    }


@pytest.fixture
def email_input() -> dict[str, Any]:
    """Valid email-outreach input."""
    return {
        "company": {
            "name": "Acme",
            "one_liner": "Payments infrastructure for marketplaces",
            "industries": ["Fintech"],
            "batch": "W21",
        },
        "project": {
            "title": "Ledger Reconciliation CLI",
            "description": "Reconciles ledgers against bank exports",
            "github_url": "https://github.com/example/ledger",
            "status": "completed",
        },
        "userProfile": {"full_name": "Sam Lee", "skills": ["Python", "SQL"]},
        "tone_preference": "friendly",
    }
