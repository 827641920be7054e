"""Repository pattern package for the JobScout gateway.

This module exports the base repository class and concrete repositories.
"""

from jobscout.repositories.base import BaseRepository
from jobscout.repositories.cache_entry import CacheEntryRepository
from jobscout.repositories.execution_log import ExecutionLogRepository
from jobscout.repositories.rate_limit import RateLimitRepository

__all__ = [
    "BaseRepository",
    "CacheEntryRepository",
    "ExecutionLogRepository",
    "RateLimitRepository",
]
