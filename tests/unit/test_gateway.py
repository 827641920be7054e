"""Tests for AgentGateway.

Runs the full request pipeline against the in-memory database, the
scripted provider and a fake clock.
"""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from jobscout.agents import get_agent
from jobscout.core.database import Database
from jobscout.core.exceptions import (
    PersistenceError,
    RateLimitExceededError,
    ValidationError,
)
from jobscout.core.hashing import stable_hash
from jobscout.core.result import Err
from jobscout.repositories.execution_log import ExecutionLogRepository
from jobscout.schemas.agent import AgentRequest
from jobscout.schemas.stream import SSEMessage
from jobscout.services.cache import CacheService
from jobscout.services.executions import ExecutionLogger
from jobscout.services.gateway import AgentGateway, GatewayPolicy
from jobscout.services.provider import Completion, ProviderClient
from jobscout.services.rate_limiter import RateLimiter
from tests.conftest import FakeClock, ProviderStub
from tests.mocks.openai_responses import (
    PROJECT_IDEAS,
    PROJECT_IDEAS_RESPONSE,
    RESEARCH_TEXT,
    SERVER_ERROR,
)

# =============================================================================
# Helpers
# =============================================================================


def _request(**overrides: Any) -> AgentRequest:
    body: dict[str, Any] = {"userId": "u1", "input": {"query": "funding"}}
    body.update(overrides)
    return AgentRequest.model_validate(body)


async def _run(
    gateway: AgentGateway, request: AgentRequest, endpoint: str = "research"
) -> list[SSEMessage]:
    agent = get_agent(endpoint)
    assert agent is not None
    stream = await gateway.open_stream(agent, request)
    return [message async for message in stream]


def _fingerprint() -> str:
    return stable_hash(_request().fingerprint_source("research"))


def _types(messages: list[SSEMessage]) -> list[str]:
    return [m.type for m in messages]


async def _executions(database: Database, user_id: str = "u1") -> list[Any]:
    async with database.session() as session:
        return await ExecutionLogRepository(session).list_for_user(user_id)


# =============================================================================
# Live Path Tests
# =============================================================================


class TestLiveStream:
    """Tests for requests answered by the provider."""

    @pytest.mark.asyncio
    async def test_event_sequence(self, gateway: AgentGateway) -> None:
        messages = await _run(gateway, _request())

        assert _types(messages) == ["progress", "chunk", "done"]
        assert messages[0].message == "started"
        assert messages[1].data == {"text": RESEARCH_TEXT}

    @pytest.mark.asyncio
    async def test_success_is_cached_and_logged(
        self, gateway: AgentGateway, database: Database
    ) -> None:
        await _run(gateway, _request())

        rows = await _executions(database)

        assert len(rows) == 1
        assert rows[0].agent_name == "research"
        assert rows[0].success is True
        assert rows[0].cache_hit is False
        assert rows[0].model == "gpt-4o-mini"
        assert rows[0].input == {"query": "funding"}
        assert rows[0].output == {"text": RESEARCH_TEXT}

    @pytest.mark.asyncio
    async def test_request_options_reach_provider(
        self, gateway: AgentGateway, provider_stub: ProviderStub
    ) -> None:
        await _run(gateway, _request(maxTokens=50, temperature=0.9))

        body = provider_stub.calls[0]
        assert body["max_tokens"] == 50
        assert body["temperature"] == 0.9
        assert body["messages"][1] == {"role": "user", "content": "Query: funding"}

    @pytest.mark.asyncio
    async def test_project_generator_payload(
        self, gateway: AgentGateway, provider_stub: ProviderStub
    ) -> None:
        provider_stub.push(httpx.Response(200, json=PROJECT_IDEAS_RESPONSE))
        request = _request(input={"skills": ["Python"]})

        messages = await _run(gateway, request, "project-generator")

        assert messages[1].data["ideas"] == PROJECT_IDEAS


# =============================================================================
# Cache Tests
# =============================================================================


class TestCache:
    """Tests for cache hits, misses and regeneration."""

    @pytest.mark.asyncio
    async def test_second_request_served_from_cache(
        self,
        gateway: AgentGateway,
        provider_stub: ProviderStub,
        database: Database,
    ) -> None:
        first = await _run(gateway, _request())
        second = await _run(gateway, _request())

        assert _types(second) == ["progress", "chunk", "done"]
        assert second[0].message == "cache"
        assert second[1].data == first[1].data
        assert len(provider_stub.calls) == 1

        rows = await _executions(database)
        cached = [r for r in rows if r.cache_hit]
        assert len(cached) == 1
        assert cached[0].agent_name == "research(cache)"
        assert cached[0].model is None

    @pytest.mark.asyncio
    async def test_regeneration_skips_cache_read(
        self, gateway: AgentGateway, provider_stub: ProviderStub
    ) -> None:
        await _run(gateway, _request())

        messages = await _run(gateway, _request(options={"regeneration": True}))

        assert messages[0].message == "started"
        assert len(provider_stub.calls) == 2

    @pytest.mark.asyncio
    async def test_stale_entry_is_refetched(
        self,
        gateway: AgentGateway,
        provider_stub: ProviderStub,
        clock: FakeClock,
    ) -> None:
        await _run(gateway, _request(cacheTTLSeconds=60))
        clock.advance(61)

        messages = await _run(gateway, _request())

        assert messages[0].message == "started"
        assert len(provider_stub.calls) == 2

    @pytest.mark.asyncio
    async def test_different_input_misses(
        self, gateway: AgentGateway, provider_stub: ProviderStub
    ) -> None:
        await _run(gateway, _request())
        await _run(gateway, _request(input={"query": "hiring"}))

        assert len(provider_stub.calls) == 2

    @pytest.mark.asyncio
    async def test_options_do_not_change_fingerprint(
        self, gateway: AgentGateway, provider_stub: ProviderStub
    ) -> None:
        await _run(gateway, _request())

        messages = await _run(gateway, _request(temperature=0.9))

        assert messages[0].message == "cache"
        assert len(provider_stub.calls) == 1


# =============================================================================
# Rejection Tests
# =============================================================================


class TestRejections:
    """Tests for failures raised before a stream opens."""

    @pytest.mark.asyncio
    async def test_endpoint_mismatch(self, gateway: AgentGateway) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await _run(gateway, _request(endpoint="email-outreach"))

        assert exc_info.value.details == {"field": "endpoint"}

    @pytest.mark.asyncio
    async def test_invalid_input(
        self, gateway: AgentGateway, provider_stub: ProviderStub
    ) -> None:
        with pytest.raises(ValidationError, match="input.query is required"):
            await _run(gateway, _request(input={}))

        assert provider_stub.calls == []

    @pytest.mark.asyncio
    async def test_rate_limit_exceeded(
        self,
        database: Database,
        provider: ProviderClient,
        clock: FakeClock,
    ) -> None:
        gateway = AgentGateway(
            rate_limiter=RateLimiter(
                database, capacity=1, window_seconds=60, clock=clock
            ),
            cache=CacheService(database, clock=clock),
            executions=ExecutionLogger(database, clock=clock),
            provider=provider,
            policy=GatewayPolicy(rate_limit_capacity=1, rate_limit_window_seconds=60),
            clock=clock,
        )
        await _run(gateway, _request())
        clock.advance(15)

        with pytest.raises(RateLimitExceededError) as exc_info:
            await _run(gateway, _request())

        assert exc_info.value.retry_after_ms == 45_000
        assert exc_info.value.headers == {"Retry-After": "45"}

    @pytest.mark.asyncio
    async def test_cache_hits_still_consume_tokens(
        self,
        database: Database,
        provider: ProviderClient,
        clock: FakeClock,
    ) -> None:
        gateway = AgentGateway(
            rate_limiter=RateLimiter(database, clock=clock),
            cache=CacheService(database, clock=clock),
            executions=ExecutionLogger(database, clock=clock),
            provider=provider,
            policy=GatewayPolicy(rate_limit_capacity=2, rate_limit_window_seconds=60),
            clock=clock,
        )
        await _run(gateway, _request())
        await _run(gateway, _request())

        with pytest.raises(RateLimitExceededError):
            await _run(gateway, _request())


# =============================================================================
# In-Stream Failure Tests
# =============================================================================


class TestStreamFailures:
    """Tests for failures reported inside the stream."""

    @pytest.mark.asyncio
    async def test_upstream_error_then_done(
        self,
        gateway: AgentGateway,
        provider_stub: ProviderStub,
        database: Database,
    ) -> None:
        provider_stub.default = httpx.Response(500, json=SERVER_ERROR)

        messages = await _run(gateway, _request())

        assert _types(messages) == ["progress", "error", "done"]
        assert messages[1].message.startswith("Provider error: 500")

        rows = await _executions(database)
        assert len(rows) == 1
        assert rows[0].success is False
        assert rows[0].error == messages[1].message
        assert rows[0].output == {"error": messages[1].message}

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(
        self, gateway: AgentGateway, provider_stub: ProviderStub
    ) -> None:
        provider_stub.push(*[httpx.Response(500, json=SERVER_ERROR)] * 3)
        await _run(gateway, _request())

        messages = await _run(gateway, _request())

        assert _types(messages) == ["progress", "chunk", "done"]
        assert messages[0].message == "started"

    @pytest.mark.asyncio
    async def test_missing_api_key(
        self,
        gateway: AgentGateway,
        provider: ProviderClient,
        provider_stub: ProviderStub,
    ) -> None:
        provider.reconfigure(None)

        messages = await _run(gateway, _request())

        assert _types(messages) == ["progress", "error", "done"]
        assert messages[1].message == "Missing OPENAI_API_KEY"
        assert provider_stub.calls == []

    @pytest.mark.asyncio
    async def test_deadline_exceeded(
        self, database: Database, clock: FakeClock
    ) -> None:
        async def slow_complete(**kwargs: Any) -> Completion:
            await asyncio.sleep(5)
            return Completion(text="late", model="gpt-4o-mini")

        provider = MagicMock(spec=ProviderClient)
        provider.complete = AsyncMock(side_effect=slow_complete)
        gateway = AgentGateway(
            rate_limiter=RateLimiter(database, clock=clock),
            cache=CacheService(database, clock=clock),
            executions=ExecutionLogger(database, clock=clock),
            provider=provider,
            policy=GatewayPolicy(request_deadline_seconds=0.05),
            clock=clock,
        )

        messages = await _run(gateway, _request())

        assert _types(messages) == ["progress", "error", "done"]
        assert messages[1].message == "Request timed out after 0.05s"

    @pytest.mark.asyncio
    async def test_store_outage_does_not_change_events(
        self, database: Database, provider: ProviderClient, clock: FakeClock
    ) -> None:
        cache = MagicMock(spec=CacheService)
        cache.get_fresh = AsyncMock(return_value=None)
        cache.put = AsyncMock(return_value=Err(PersistenceError("cache_put")))
        executions = MagicMock(spec=ExecutionLogger)
        executions.record = AsyncMock(
            return_value=Err(PersistenceError("execution_log"))
        )
        gateway = AgentGateway(
            rate_limiter=RateLimiter(database, clock=clock),
            cache=cache,
            executions=executions,
            provider=provider,
            clock=clock,
        )

        messages = await _run(gateway, _request())

        assert _types(messages) == ["progress", "chunk", "done"]
        cache.put.assert_awaited_once()
        executions.record.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cache_write_uses_request_ttl(
        self, gateway: AgentGateway, database: Database
    ) -> None:
        await _run(gateway, _request(options={"cacheTTLSeconds": 120}))

        entry = await gateway.cache.get("u1", "research", _fingerprint())

        assert entry is not None
        assert entry.ttl_seconds == 120


