"""CacheEntryRepository - lookup and upsert of cached agent payloads."""

from datetime import datetime
from typing import Any

from sqlalchemy import select

from jobscout.models.cache_entry import CacheEntry
from jobscout.repositories.base import BaseRepository

CACHE_KEY = ("user_id", "endpoint", "input_hash")


class CacheEntryRepository(BaseRepository[CacheEntry]):
    """Repository for the ``voltagent_cache`` table."""

    async def get_by_key(
        self,
        user_id: str,
        endpoint: str,
        input_hash: str,
    ) -> CacheEntry | None:
        """Find the entry for a request fingerprint.

        Args:
            user_id: Owner of the entry
            endpoint: Agent endpoint name
            input_hash: Request fingerprint

        Returns:
            The entry if one was ever written, regardless of freshness
        """
        result = await self.session.execute(
            select(CacheEntry)
            .where(CacheEntry.user_id == user_id)
            .where(CacheEntry.endpoint == endpoint)
            .where(CacheEntry.input_hash == input_hash)
        )
        return result.scalar_one_or_none()

    async def upsert(
        self,
        *,
        user_id: str,
        endpoint: str,
        input_hash: str,
        payload: dict[str, Any],
        ttl_seconds: int,
        created_at: datetime,
    ) -> CacheEntry:
        """Insert the entry or overwrite the existing one (last write wins).

        Returns:
            The written entry
        """
        return await self.upsert_on_conflict(
            {
                "user_id": user_id,
                "endpoint": endpoint,
                "input_hash": input_hash,
                "payload": payload,
                "ttl_seconds": ttl_seconds,
                "created_at": created_at,
            },
            conflict_on=CACHE_KEY,
            update=("payload", "ttl_seconds", "created_at"),
        )
