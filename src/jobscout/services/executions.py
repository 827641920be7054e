"""ExecutionLogger - best-effort audit trail for agent requests."""

from datetime import datetime
from typing import Any

from jobscout.core.clock import Clock, elapsed_ms, utc_now
from jobscout.core.database import Database
from jobscout.core.exceptions import PersistenceError
from jobscout.core.result import Err, Ok, Result
from jobscout.models.execution_log import ExecutionLog
from jobscout.repositories.execution_log import ExecutionLogRepository


class ExecutionLogger:
    """Appends one ``ExecutionLog`` row per attempt.

    Failures are returned as ``Err`` rather than raised so a broken audit
    table never interrupts a stream.
    """

    def __init__(self, database: Database, clock: Clock = utc_now) -> None:
        self.database = database
        self.clock = clock

    async def record(
        self,
        *,
        user_id: str,
        agent_name: str,
        input: dict[str, Any] | None,
        output: dict[str, Any] | None,
        success: bool,
        started_at: datetime,
        error: str | None = None,
        request_hash: str | None = None,
        model: str | None = None,
        cache_hit: bool = False,
    ) -> Result[ExecutionLog]:
        """Insert an audit row.

        Args:
            user_id: Requesting user
            agent_name: Endpoint name, suffixed with "(cache)" for cache hits
            input: Request input as received
            output: Payload streamed to the client, or ``{"error": ...}``
            success: Whether a chunk was delivered
            started_at: When handling began
            error: Error text for failures
            request_hash: Request fingerprint
            model: Provider model used
            cache_hit: Whether the payload came from the cache

        Returns:
            ``Ok(row)`` on success, ``Err(PersistenceError)`` otherwise
        """
        finished_at = self.clock()
        entry = ExecutionLog(
            user_id=user_id,
            agent_name=agent_name,
            input=input,
            output=output,
            success=success,
            error=error,
            started_at=started_at,
            finished_at=finished_at,
            elapsed_ms=int(elapsed_ms(started_at, finished_at)),
            request_hash=request_hash,
            model=model,
            cache_hit=cache_hit,
        )
        try:
            async with self.database.session() as session:
                await ExecutionLogRepository(session).append(entry)
            return Ok(entry)
        except Exception as e:
            return Err(PersistenceError("execution_log", error=str(e)))
