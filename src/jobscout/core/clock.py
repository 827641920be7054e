"""Time helpers shared by the cache and rate limiter.

Services take a ``Clock`` so tests can move time forward without sleeping.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def elapsed_ms(since: datetime, now: datetime) -> float:
    """Milliseconds between two datetimes."""
    return (as_utc(now) - as_utc(since)).total_seconds() * 1000
