"""CacheEntry model - previous agent responses keyed by request fingerprint.

One row per ``(user_id, endpoint, input_hash)``. Rows are upserted after
each successful upstream call and never deleted; entries older than their
TTL are simply ignored and overwritten on the next write.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jobscout.models.base import Base, UUIDPrimaryKeyMixin


class CacheEntry(UUIDPrimaryKeyMixin, Base):
    """Cached agent payload.

    Attributes:
        user_id: Owner of the cached response
        endpoint: Agent endpoint name (e.g. "research")
        input_hash: Stable hash of endpoint, input and user
        payload: JSON payload streamed as the ``chunk`` event
        ttl_seconds: Freshness window for this entry
        created_at: When the payload was written (last upsert)
    """

    __tablename__ = "voltagent_cache"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    endpoint: Mapped[str] = mapped_column(String(64), nullable=False)
    input_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    ttl_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=86400)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "endpoint", "input_hash", name="uq_voltagent_cache_key"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CacheEntry(user_id='{self.user_id}', endpoint='{self.endpoint}', "
            f"hash='{self.input_hash[:12]}', ttl={self.ttl_seconds})>"
        )
