"""ExecutionLog model - append-only audit trail of agent requests.

One row per attempt, including cache hits (``agent_name`` suffixed with
``(cache)``). Rows are never updated after insert.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobscout.models.base import Base, UUIDPrimaryKeyMixin


class ExecutionLog(UUIDPrimaryKeyMixin, Base):
    """Audit record for one agent invocation.

    Attributes:
        user_id: Requesting user
        agent_name: Endpoint name, e.g. "research" or "research(cache)"
        input: Request input as received
        output: Streamed payload, or ``{"error": ...}`` on failure
        success: Whether the client received a chunk
        error: Error text for failed attempts
        started_at: When the gateway began handling the request
        finished_at: When the outcome was known
        elapsed_ms: Wall time between the two
        request_hash: Fingerprint shared with the cache row
        model: Provider model used (None for cache hits)
        cache_hit: Whether the payload came from the cache
    """

    __tablename__ = "voltagent_executions"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    agent_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    input: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    output: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    elapsed_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    request_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cache_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<ExecutionLog(id={self.id}, agent='{self.agent_name}', "
            f"success={self.success}, cache_hit={self.cache_hit})>"
        )
