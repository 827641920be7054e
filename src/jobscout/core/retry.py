"""Retrying HTTP sends with exponential backoff, jitter, and Retry-After.

Retry policy:
    - Retry when the response status is >= 500 or 429, or when the send
      raises a transport error. Both are overridable with ``should_retry``.
    - Delay for attempt ``n`` (0-based) is
      ``min(max_delay_ms, min_delay_ms * 2**n + jitter)`` with jitter drawn
      from ``[0, 200)`` ms.
    - A ``Retry-After`` header on the failing response wins when it asks for
      a longer wait. The server hint is not capped by ``max_delay_ms``.

Attempts are driven by ``tenacity.AsyncRetrying``.

Exhaustion is asymmetric: if the final attempt produced a response (even an
error response) it is returned so callers can report the upstream status; if
the final attempt raised with no response, the exception propagates.

Usage:
    response = await fetch_with_retry(client, request, RetryOptions(retries=2))
"""

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
)
from tenacity.retry import retry_base

from jobscout.core.logging import get_logger

logger = get_logger(__name__)

JITTER_MS = 200

ShouldRetry = Callable[[httpx.Response | None, Exception | None], bool]
Sleep = Callable[[float], Awaitable[None]]


def default_should_retry(
    response: httpx.Response | None, error: Exception | None
) -> bool:
    """Retry on 5xx, 429, and transport-level failures."""
    if response is not None:
        return response.status_code >= 500 or response.status_code == 429
    return isinstance(error, httpx.TransportError)


@dataclass
class RetryOptions:
    """Tunables for ``fetch_with_retry``.

    Attributes:
        retries: Retries after the first attempt (total attempts = retries + 1)
        min_delay_ms: Base delay for the first retry
        max_delay_ms: Ceiling for the computed backoff
        should_retry: Predicate deciding whether an outcome is retryable
        sleep: Awaitable sleep taking seconds (injectable for tests)
    """

    retries: int = 3
    min_delay_ms: float = 300
    max_delay_ms: float = 2000
    should_retry: ShouldRetry = default_should_retry
    sleep: Sleep = field(default=asyncio.sleep)


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Convert a Retry-After header into milliseconds.

    Accepts delta-seconds ("2") or an HTTP-date. Returns None when the
    header is absent or unparseable.
    """
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            when = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if when.tzinfo is None:
            when = when.replace(tzinfo=UTC)
        seconds = (when - (now or datetime.now(UTC))).total_seconds()
    if seconds < 0:
        return 0.0
    return seconds * 1000


def backoff_delay_ms(
    attempt: int,
    options: RetryOptions,
    response: httpx.Response | None = None,
) -> float:
    """Compute the wait before the next attempt."""
    delay = min(
        options.max_delay_ms,
        options.min_delay_ms * (2**attempt) + random.uniform(0, JITTER_MS),
    )
    if response is not None:
        hinted = parse_retry_after(response.headers.get("retry-after"))
        if hinted is not None:
            delay = max(delay, hinted)
    return delay


def _retry_condition(options: RetryOptions) -> retry_base:
    """Build the tenacity predicate from ``options.should_retry``."""
    return retry_if_result(
        lambda response: options.should_retry(response, None)
    ) | retry_if_exception(lambda error: options.should_retry(None, error))


def _last_response(retry_state: RetryCallState) -> httpx.Response | None:
    outcome = retry_state.outcome
    if outcome is None or outcome.failed:
        return None
    return outcome.result()


def _wait(options: RetryOptions) -> Callable[[RetryCallState], float]:
    """Backoff for tenacity, in seconds."""

    def wait(retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number - 1
        return backoff_delay_ms(attempt, options, _last_response(retry_state)) / 1000

    return wait


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    response = _last_response(retry_state)
    error = outcome.exception() if outcome is not None and outcome.failed else None
    request: httpx.Request = retry_state.args[0]
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "upstream_retry",
        url=str(request.url),
        attempt=retry_state.attempt_number,
        status_code=response.status_code if response is not None else None,
        error=str(error) if error is not None else None,
        delay_ms=round(delay * 1000, 1),
    )


def _on_exhausted(retry_state: RetryCallState) -> httpx.Response:
    """Return the last response, or re-raise the last send error."""
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


async def fetch_with_retry(
    client: httpx.AsyncClient,
    request: httpx.Request,
    options: RetryOptions | None = None,
) -> httpx.Response:
    """Send a request, retrying retryable outcomes.

    Args:
        client: HTTP client used to send the request
        request: Prepared request (re-sent unchanged on each attempt)
        options: Retry tunables

    Returns:
        The first non-retryable response, or the last response once
        retries are exhausted

    Raises:
        Exception: The last send error when no attempt produced a response,
            or any send error the predicate declines to retry
    """
    options = options or RetryOptions()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.retries + 1),
        wait=_wait(options),
        retry=_retry_condition(options),
        before_sleep=_log_retry,
        retry_error_callback=_on_exhausted,
        sleep=options.sleep,
    )
    return await retrying(client.send, request)
