"""CacheService - TTL cache of agent payloads backed by ``voltagent_cache``.

Entries are keyed by ``(user_id, endpoint, input_hash)`` and carry their own
TTL. Nothing is ever deleted: stale entries are treated as misses and are
overwritten by the next successful upstream call.

Failure policy:
    - Reads degrade to a miss and log ``cache_get_failed``.
    - Writes return ``Err`` so the gateway can log and carry on.
"""

from typing import Any

from jobscout.core.clock import Clock, elapsed_ms, utc_now
from jobscout.core.database import Database
from jobscout.core.exceptions import PersistenceError
from jobscout.core.logging import get_logger
from jobscout.core.result import Err, Ok, Result
from jobscout.models.cache_entry import CacheEntry
from jobscout.repositories.cache_entry import CacheEntryRepository

logger = get_logger(__name__)

DEFAULT_TTL = 86400  # 24 hours


class CacheService:
    """Read-through / write-behind cache for agent responses.

    Usage:
        ```python
        entry = await cache.get(user_id, "research", input_hash)
        if entry is not None and cache.is_fresh(entry):
            return entry.payload
        ```
    """

    def __init__(self, database: Database, clock: Clock = utc_now) -> None:
        """Initialize the cache service.

        Args:
            database: Database used for the cache table
            clock: Source of "now" (injectable for tests)
        """
        self.database = database
        self.clock = clock

    async def get(
        self,
        user_id: str,
        endpoint: str,
        input_hash: str,
    ) -> CacheEntry | None:
        """Fetch the entry for a fingerprint, fresh or not.

        Returns:
            The entry, or None when absent or when the store is unavailable
        """
        try:
            async with self.database.session() as session:
                return await CacheEntryRepository(session).get_by_key(
                    user_id, endpoint, input_hash
                )
        except Exception as e:
            logger.warning(
                "cache_get_failed",
                endpoint=endpoint,
                input_hash=input_hash,
                error=str(e),
            )
            return None

    async def put(
        self,
        user_id: str,
        endpoint: str,
        input_hash: str,
        payload: dict[str, Any],
        ttl_seconds: int = DEFAULT_TTL,
    ) -> Result[CacheEntry]:
        """Upsert a payload with ``created_at = now``.

        Args:
            user_id: Owner of the entry
            endpoint: Agent endpoint name
            input_hash: Request fingerprint
            payload: JSON payload that was streamed to the client
            ttl_seconds: Freshness window for the entry

        Returns:
            ``Ok(entry)`` on success, ``Err(PersistenceError)`` otherwise
        """
        try:
            async with self.database.session() as session:
                entry = await CacheEntryRepository(session).upsert(
                    user_id=user_id,
                    endpoint=endpoint,
                    input_hash=input_hash,
                    payload=payload,
                    ttl_seconds=ttl_seconds,
                    created_at=self.clock(),
                )
            logger.debug(
                "cache_set", endpoint=endpoint, input_hash=input_hash, ttl=ttl_seconds
            )
            return Ok(entry)
        except Exception as e:
            return Err(PersistenceError("cache_put", error=str(e)))

    def is_fresh(self, entry: CacheEntry) -> bool:
        """Whether the entry is younger than its TTL."""
        return elapsed_ms(entry.created_at, self.clock()) < entry.ttl_seconds * 1000

    async def get_fresh(
        self,
        user_id: str,
        endpoint: str,
        input_hash: str,
    ) -> CacheEntry | None:
        """Fetch the entry only if it is still fresh."""
        entry = await self.get(user_id, endpoint, input_hash)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry
