"""ExecutionLogRepository - append-only audit rows."""

from sqlalchemy import select

from jobscout.models.execution_log import ExecutionLog
from jobscout.repositories.base import BaseRepository


class ExecutionLogRepository(BaseRepository[ExecutionLog]):
    """Repository for the ``voltagent_executions`` table.

    Only inserts and reads are exposed; audit rows are never mutated.
    """

    async def append(self, entry: ExecutionLog) -> ExecutionLog:
        """Insert one audit row."""
        return await self.create(entry)

    async def list_for_user(
        self,
        user_id: str,
        *,
        agent_name: str | None = None,
        limit: int = 50,
    ) -> list[ExecutionLog]:
        """Most recent executions for a user, newest first.

        Args:
            user_id: Requesting user
            agent_name: Optional filter, e.g. "research(cache)"
            limit: Maximum rows to return
        """
        query = (
            select(ExecutionLog)
            .where(ExecutionLog.user_id == user_id)
            .order_by(ExecutionLog.started_at.desc())
            .limit(limit)
        )
        if agent_name:
            query = query.where(ExecutionLog.agent_name == agent_name)

        result = await self.session.execute(query)
        return list(result.scalars().all())
