"""Generic base repository with async CRUD operations.

This module provides a generic repository pattern for SQLAlchemy models:
- BaseRepository[T]: Generic class for standard operations
- All methods are async and use SQLAlchemy 2.0 style

Repositories never commit; the caller owns the transaction through
``Database.session()``.

Usage:
    from jobscout.repositories.base import BaseRepository
    from jobscout.models.execution_log import ExecutionLog

    class ExecutionLogRepository(BaseRepository[ExecutionLog]):
        pass

    async with database.session() as session:
        repo = ExecutionLogRepository(session)
        total = await repo.count()
"""

from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from jobscout.models.base import Base

# Type variable for model classes
T = TypeVar("T", bound=Base)

_UPSERT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}

class BaseRepository(Generic[T]):
    """Generic repository providing async CRUD operations.

    Type Parameters:
        T: The SQLAlchemy model class

    Attributes:
        session: The async database session
        model_class: The model class for this repository
    """

    model_class: type[T]

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository with a database session.

        Args:
            session: Async database session
        """
        self.session = session

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Extract model class from Generic type parameter."""
        super().__init_subclass__(**kwargs)
        for base in cls.__orig_bases__:  # type: ignore[attr-defined]
            if hasattr(base, "__args__"):
                cls.model_class = base.__args__[0]
                break

    async def count(self) -> int:
        """Count total entities."""
        result = await self.session.execute(
            select(func.count()).select_from(self.model_class)
        )
        return result.scalar_one()

    async def create(self, entity: T) -> T:
        """Insert a new entity.

        Args:
            entity: The entity to create

        Returns:
            The created entity with generated fields populated
        """
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def upsert_on_conflict(
        self,
        values: dict[str, Any],
        *,
        conflict_on: Sequence[str],
        update: Sequence[str],
    ) -> T:
        """Insert a row, or overwrite ``update`` columns when the key exists.

        Runs as one ``INSERT ... ON CONFLICT DO UPDATE`` statement, so
        concurrent writers to the same key all succeed and the last one wins.

        Args:
            values: Column values for the row
            conflict_on: Columns of the unique key that detects the conflict
            update: Columns overwritten on conflict

        Returns:
            The row as stored after the statement
        """
        dialect = self.session.get_bind().dialect.name
        try:
            insert = _UPSERT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"upsert is not supported on {dialect}") from None

        stmt = insert(self.model_class).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=list(conflict_on),
            set_={name: stmt.excluded[name] for name in update},
        ).returning(self.model_class)
        result = await self.session.scalars(
            stmt, execution_options={"populate_existing": True}
        )
        return result.one()
