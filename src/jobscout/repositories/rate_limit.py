"""RateLimitRepository - persisted token buckets."""

from datetime import datetime

from sqlalchemy import select

from jobscout.models.rate_limit import RateLimitState
from jobscout.repositories.base import BaseRepository


class RateLimitRepository(BaseRepository[RateLimitState]):
    """Repository for the ``rate_limits`` table."""

    async def get(self, user_id: str, endpoint: str) -> RateLimitState | None:
        """Load the bucket for a user and endpoint, if one exists."""
        result = await self.session.execute(
            select(RateLimitState)
            .where(RateLimitState.user_id == user_id)
            .where(RateLimitState.endpoint == endpoint)
        )
        return result.scalar_one_or_none()

    async def save(
        self,
        *,
        user_id: str,
        endpoint: str,
        tokens: int,
        window_seconds: int,
        last_refill: datetime,
    ) -> RateLimitState:
        """Upsert the bucket state.

        Returns:
            The persisted state
        """
        return await self.upsert_on_conflict(
            {
                "user_id": user_id,
                "endpoint": endpoint,
                "tokens": tokens,
                "window_seconds": window_seconds,
                "last_refill": last_refill,
            },
            conflict_on=("user_id", "endpoint"),
            update=("tokens", "window_seconds", "last_refill"),
        )
