"""RateLimitState model - one token bucket per user and endpoint."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from jobscout.models.base import Base


class RateLimitState(Base):
    """Persisted token bucket.

    Attributes:
        user_id: Bucket owner
        endpoint: Agent endpoint the bucket throttles
        tokens: Remaining tokens in the current window, within [0, capacity]
        window_seconds: Refill window the bucket was last checked with
        last_refill: Start of the current window
    """

    __tablename__ = "rate_limits"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    endpoint: Mapped[str] = mapped_column(String(64), primary_key=True)
    tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    window_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    last_refill: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<RateLimitState(user_id='{self.user_id}', endpoint='{self.endpoint}', "
            f"tokens={self.tokens}, window={self.window_seconds}s)>"
        )
