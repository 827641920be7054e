"""Services package for the JobScout gateway.

This module exports the service classes that the gateway composes. The
gateway itself lives in ``jobscout.services.gateway`` and is imported from
there directly, since it depends on the agent endpoints.
"""

from jobscout.services.cache import DEFAULT_TTL, CacheService
from jobscout.services.executions import ExecutionLogger
from jobscout.services.provider import (
    ChatMessage,
    Completion,
    ProviderClient,
)
from jobscout.services.rate_limiter import RateCheck, RateLimiter

__all__ = [
    # Cache
    "DEFAULT_TTL",
    "CacheService",
    # Execution log
    "ExecutionLogger",
    # Provider
    "ChatMessage",
    "Completion",
    "ProviderClient",
    # Rate limiting
    "RateCheck",
    "RateLimiter",
]
