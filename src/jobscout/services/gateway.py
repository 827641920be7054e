"""AgentGateway - shared request pipeline for every agent endpoint.

Per request, strictly in order:

    validate -> fingerprint -> rate check -> cache check -> provider call
             -> chunk -> cache write -> execution log -> done

Validation and rate-limit failures raise before any stream exists, so the
route can answer 400/429. Everything after that is reported inside the
stream: the returned iterator always ends with exactly one ``done``.

Cache writes and execution logs are best-effort. They return ``Ok``/``Err``
and an ``Err`` is only logged.

Usage:
    messages = await gateway.open_stream(get_agent("research"), request)
    return sse_response(messages)
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from jobscout.agents.base import AgentEndpoint
from jobscout.config import Settings
from jobscout.core.clock import Clock, utc_now
from jobscout.core.exceptions import RateLimitExceededError, ValidationError
from jobscout.core.hashing import stable_hash
from jobscout.core.logging import agent_log_context, carry_log_context, get_logger
from jobscout.core.result import Err, Result
from jobscout.schemas.agent import AgentRequest
from jobscout.schemas.stream import SSEMessage
from jobscout.services.cache import DEFAULT_TTL, CacheService
from jobscout.services.executions import ExecutionLogger
from jobscout.services.provider import ProviderClient
from jobscout.services.rate_limiter import RateLimiter

logger = get_logger(__name__)


@dataclass(frozen=True)
class GatewayPolicy:
    """Defaults applied when neither the agent nor the request overrides them."""

    rate_limit_capacity: int = 30
    rate_limit_window_seconds: int = 300
    cache_ttl_seconds: int = DEFAULT_TTL
    request_deadline_seconds: float = 90.0
    default_model: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayPolicy":
        return cls(
            rate_limit_capacity=settings.rate_limit_capacity,
            rate_limit_window_seconds=settings.rate_limit_window_seconds,
            cache_ttl_seconds=settings.cache_default_ttl_seconds,
            request_deadline_seconds=settings.request_deadline_seconds,
            default_model=settings.openai_model,
        )


@dataclass(frozen=True)
class _Call:
    """Everything the stream needs to know about one accepted request."""

    agent: AgentEndpoint
    request: AgentRequest
    input_hash: str
    started_at: datetime

    @property
    def user_id(self) -> str:
        return self.request.user_id


class AgentGateway:
    """Runs agent requests through rate limiting, caching and the provider."""

    def __init__(
        self,
        *,
        rate_limiter: RateLimiter,
        cache: CacheService,
        executions: ExecutionLogger,
        provider: ProviderClient,
        policy: GatewayPolicy | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.executions = executions
        self.provider = provider
        self.policy = policy or GatewayPolicy()
        self.clock = clock

    async def open_stream(
        self, agent: AgentEndpoint, request: AgentRequest
    ) -> AsyncIterator[SSEMessage]:
        """Accept a request and return its event stream.

        Args:
            agent: Endpoint named by the route
            request: Parsed request envelope

        Returns:
            Lazy iterator of SSE messages (cached or live)

        Raises:
            ValidationError: Endpoint mismatch or invalid ``input``
            RateLimitExceededError: Token bucket exhausted
        """
        if request.endpoint is not None and request.endpoint != agent.name:
            raise ValidationError(
                f"endpoint '{request.endpoint}' does not match route '{agent.name}'",
                field="endpoint",
            )
        data = agent.parse_input(request.input)

        input_hash = stable_hash(request.fingerprint_source(agent.name))

        with agent_log_context(
            endpoint=agent.name, user_id=request.user_id, input_hash=input_hash
        ):
            check = await self.rate_limiter.check(
                request.user_id,
                agent.name,
                window_seconds=(
                    agent.rate_limit_window_seconds
                    or self.policy.rate_limit_window_seconds
                ),
                capacity=agent.rate_limit_capacity or self.policy.rate_limit_capacity,
            )
            if not check.allowed:
                raise RateLimitExceededError(check.reset_ms, endpoint=agent.name)

            call = _Call(
                agent=agent,
                request=request,
                input_hash=input_hash,
                started_at=self.clock(),
            )

            if not request.options.regeneration:
                entry = await self.cache.get_fresh(
                    request.user_id, agent.name, input_hash
                )
                if entry is not None:
                    logger.info("agent_cache_hit")
                    return carry_log_context(self._cached_stream(call, entry.payload))

            logger.info(
                "agent_stream_opened",
                regeneration=request.options.regeneration,
                remaining=check.remaining,
            )
            return carry_log_context(self._live_stream(call, data))

    # -------------------------------------------------------------------------
    # Streams
    # -------------------------------------------------------------------------

    async def _cached_stream(
        self, call: _Call, payload: dict[str, Any]
    ) -> AsyncIterator[SSEMessage]:
        yield SSEMessage.progress("cache")
        yield SSEMessage.chunk(payload)
        yield SSEMessage.done()

        await self._record(
            call,
            agent_name=f"{call.agent.name}(cache)",
            output=payload,
            success=True,
            cache_hit=True,
        )

    async def _live_stream(
        self, call: _Call, data: BaseModel
    ) -> AsyncIterator[SSEMessage]:
        agent = call.agent
        options = call.request.options
        params = agent.resolve_params(options, self.policy.default_model)

        yield SSEMessage.progress("started")

        try:
            async with asyncio.timeout(self.policy.request_deadline_seconds):
                completion = await self.provider.complete(
                    messages=agent.build_messages(data),
                    model=params.model,
                    temperature=params.temperature,
                    max_tokens=params.max_tokens,
                )
            payload = agent.build_payload(completion.text)
        except TimeoutError:
            error = f"Request timed out after {self.policy.request_deadline_seconds:g}s"
        except Exception as e:
            error = str(e) or type(e).__name__
        else:
            error = None

        if error is not None:
            yield SSEMessage.error(error)
            await self._record_failure(call, error, model=params.model)
            yield SSEMessage.done()
            return

        yield SSEMessage.chunk(payload)

        ttl = options.cache_ttl_seconds or self.policy.cache_ttl_seconds
        cached = await self.cache.put(
            call.user_id, agent.name, call.input_hash, payload, ttl
        )
        self._warn_on_err(cached, "cache_write_skipped")

        await self._record(
            call,
            agent_name=agent.name,
            output=payload,
            success=True,
            model=completion.model,
        )
        yield SSEMessage.done()

    # -------------------------------------------------------------------------
    # Side effects
    # -------------------------------------------------------------------------

    async def _record_failure(self, call: _Call, message: str, *, model: str) -> None:
        logger.warning("agent_request_failed", error=message)
        await self._record(
            call,
            agent_name=call.agent.name,
            output={"error": message},
            success=False,
            error=message,
            model=model,
        )

    async def _record(
        self,
        call: _Call,
        *,
        agent_name: str,
        output: dict[str, Any],
        success: bool,
        error: str | None = None,
        model: str | None = None,
        cache_hit: bool = False,
    ) -> None:
        result = await self.executions.record(
            user_id=call.user_id,
            agent_name=agent_name,
            input=call.request.input,
            output=output,
            success=success,
            started_at=call.started_at,
            error=error,
            request_hash=call.input_hash,
            model=model,
            cache_hit=cache_hit,
        )
        self._warn_on_err(result, "execution_log_skipped")

    @staticmethod
    def _warn_on_err(result: Result[Any], event: str) -> None:
        if isinstance(result, Err):
            logger.warning(event, error=str(result.error))
