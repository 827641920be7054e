"""RateLimiter - coarse per-user, per-endpoint token bucket.

The bucket lives in the ``rate_limits`` table so limits survive restarts and
are shared across workers. The refill is coarse: instead of a
continuous refill, the whole bucket is refilled once a full window has
elapsed since ``last_refill``.

Per call:
    1. Load the row; a missing row is a full bucket refilled "now".
    2. If a full window has elapsed, refill and consume one token.
    3. Otherwise consume one token if any remain, else reject.
    4. Persist the new state.

Concurrent calls for the same key may race (read-modify-write without a
lock); a few extra requests slipping through is acceptable.

A store failure fails open: the request is allowed and a warning is logged.
"""

from dataclasses import dataclass

from jobscout.core.clock import Clock, elapsed_ms, utc_now
from jobscout.core.database import Database
from jobscout.core.logging import get_logger
from jobscout.repositories.rate_limit import RateLimitRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateCheck:
    """Outcome of one rate-limit check.

    Attributes:
        allowed: Whether the request may proceed
        remaining: Tokens left after this call
        reset_ms: Milliseconds until the bucket refills
    """

    allowed: bool
    remaining: int
    reset_ms: int


class RateLimiter:
    """Token bucket persisted through ``RateLimitRepository``."""

    def __init__(
        self,
        database: Database,
        *,
        capacity: int = 30,
        window_seconds: int = 300,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the limiter.

        Args:
            database: Database holding the ``rate_limits`` table
            capacity: Default tokens per window
            window_seconds: Default window length
            clock: Source of "now" (injectable for tests)
        """
        self.database = database
        self.capacity = capacity
        self.window_seconds = window_seconds
        self.clock = clock

    async def check(
        self,
        user_id: str,
        endpoint: str,
        window_seconds: int | None = None,
        capacity: int | None = None,
    ) -> RateCheck:
        """Consume one token for ``(user_id, endpoint)`` if available.

        Args:
            user_id: Requesting user
            endpoint: Agent endpoint name
            window_seconds: Override the default window
            capacity: Override the default capacity

        Returns:
            RateCheck describing the decision
        """
        window = window_seconds or self.window_seconds
        cap = capacity or self.capacity
        window_ms = window * 1000

        try:
            async with self.database.session() as session:
                repo = RateLimitRepository(session)
                now = self.clock()
                state = await repo.get(user_id, endpoint)

                if state is None:
                    tokens, last_refill = cap, now
                else:
                    tokens, last_refill = min(state.tokens, cap), state.last_refill

                elapsed = elapsed_ms(last_refill, now)
                if state is not None and elapsed >= window_ms:
                    tokens = cap - 1
                    last_refill = now
                    allowed = True
                    reset_ms = window_ms
                else:
                    allowed = tokens > 0
                    if allowed:
                        tokens -= 1
                    reset_ms = int(max(0, window_ms - elapsed))

                await repo.save(
                    user_id=user_id,
                    endpoint=endpoint,
                    tokens=tokens,
                    window_seconds=window,
                    last_refill=last_refill,
                )
        except Exception as e:
            logger.warning(
                "rate_limit_store_failed",
                user_id=user_id,
                endpoint=endpoint,
                error=str(e),
            )
            return RateCheck(allowed=True, remaining=cap, reset_ms=window_ms)

        if not allowed:
            logger.info(
                "rate_limit_exceeded",
                user_id=user_id,
                endpoint=endpoint,
                reset_ms=reset_ms,
            )
        return RateCheck(allowed=allowed, remaining=tokens, reset_ms=reset_ms)
