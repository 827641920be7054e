"""Models package for the JobScout gateway.

This module exports the Base class and all model classes. Importing it
registers every table on ``Base.metadata``.
"""

from jobscout.models.base import Base, UUIDPrimaryKeyMixin
from jobscout.models.cache_entry import CacheEntry
from jobscout.models.execution_log import ExecutionLog
from jobscout.models.rate_limit import RateLimitState

__all__ = [
    # Base and Mixins
    "Base",
    "UUIDPrimaryKeyMixin",
    # Gateway tables
    "CacheEntry",
    "RateLimitState",
    "ExecutionLog",
]
