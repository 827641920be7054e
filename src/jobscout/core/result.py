"""Explicit outcome type for best-effort side effects.

Cache writes and execution logs must never break the user-visible stream.
Instead of swallowing exceptions inside those calls, they return ``Ok`` or
``Err`` and the caller decides what to do with a failure (usually: log it).

Usage:
    result = await cache.put(...)
    if isinstance(result, Err):
        logger.warning("cache_write_skipped", error=str(result.error))
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Err:
    """Failed outcome carrying the exception that caused it."""

    error: Exception

    @property
    def ok(self) -> bool:
        return False


Result = Ok[T] | Err
