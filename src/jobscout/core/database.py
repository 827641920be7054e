"""Async database engine and session management.

This module provides the core database infrastructure:
- Async SQLAlchemy engine with connection pooling
- Async session factory for operation-scoped sessions
- Database lifecycle management (connect/dispose)

The ``Database`` object is constructed once at startup and injected into
the services that need it, rather than living in module globals.

Usage:
    from jobscout.core.database import Database

    # At startup
    database = Database.from_settings(settings)
    await database.create_all()  # optional, dev/tests

    # In services
    async with database.session() as session:
        ...

    # At shutdown
    await database.dispose()
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from jobscout.config import Settings
from jobscout.core.logging import get_logger

logger = get_logger(__name__)


class Database:
    """Owns the async engine and hands out sessions."""

    def __init__(self, engine: AsyncEngine) -> None:
        """Initialize with an already-created engine.

        Args:
            engine: Async SQLAlchemy engine
        """
        self.engine = engine
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Create the engine with pool settings suited to the backend.

        Args:
            settings: Application settings containing database configuration
        """
        logger.info(
            "Initializing database",
            database_url=_mask_password(settings.database_url),
        )

        engine_kwargs: dict[str, Any] = {
            "echo": settings.debug,
        }

        if settings.database_url.startswith("sqlite"):
            # In-memory SQLite only exists on one connection, so share it
            if ":memory:" in settings.database_url:
                engine_kwargs["poolclass"] = StaticPool
            else:
                engine_kwargs["poolclass"] = NullPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_size"] = settings.database_pool_min
            engine_kwargs["max_overflow"] = (
                settings.database_pool_max - settings.database_pool_min
            )
            engine_kwargs["pool_pre_ping"] = True

        engine = create_async_engine(settings.database_url, **engine_kwargs)
        logger.info("Database initialized successfully")
        return cls(engine)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session that commits on success and rolls back on error."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create the gateway tables if they do not exist."""
        from jobscout.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured")

    async def check_connection(self) -> bool:
        """Check if the database connection is working.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False

    async def dispose(self) -> None:
        """Close the engine and all pooled connections."""
        logger.info("Closing database connections")
        await self.engine.dispose()
        logger.info("Database connections closed")


def _mask_password(url: str) -> str:
    """Mask password in database URL for logging.

    Args:
        url: Database URL

    Returns:
        URL with password masked
    """
    if "://" in url and "@" in url:
        prefix = url.split("://")[0] + "://"
        rest = url.split("://")[1]
        if "@" in rest:
            creds, host = rest.split("@", 1)
            if ":" in creds:
                user = creds.split(":")[0]
                return f"{prefix}{user}:****@{host}"
    return url
