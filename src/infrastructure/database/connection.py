# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

Memories, conversation sessions and learner profiles share one database.
The DatabaseManager owns the engine and sessionmaker; a module-level
instance is created at worker startup with init_database().

Uses SQLAlchemy 2.0 async API with the asyncpg driver in production.
Tests pass an aiosqlite URL instead.

Example:
    from src.infrastructure.database.connection import init_database

    db = await init_database(settings)

    async with db.get_session() as session:
        result = await session.execute(select(LearnerMemory))
        memories = result.scalars().all()
"""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from src.core.config.settings import DatabaseSettings, Settings

logger = logging.getLogger(__name__)

# Module-level manager, set by init_database()
_database: Optional["DatabaseManager"] = None


class DatabaseError(Exception):
    """Base exception for database operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or database error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize the database error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class DatabaseManager:
    """Owns the async engine and hands out transactional sessions.

    Attributes:
        engine: SQLAlchemy async engine.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        """Initialize the manager around an existing engine.

        Args:
            engine: SQLAlchemy async engine.
        """
        self.engine = engine
        self._sessionmaker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: "DatabaseSettings", echo: bool = False) -> "DatabaseManager":
        """Create a manager with a pooled engine built from settings.

        Args:
            settings: Database settings.
            echo: Echo SQL statements.

        Returns:
            A new DatabaseManager.

        Raises:
            DatabaseError: If engine creation fails.
        """
        url = settings.url
        engine_kwargs: dict = {"echo": echo, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=settings.pool_size,
                max_overflow=settings.max_overflow,
                pool_recycle=1800,
            )

        try:
            engine = create_async_engine(url, **engine_kwargs)
        except SQLAlchemyError as e:
            raise DatabaseError("Failed to initialize database connection", e) from e

        return cls(engine)

    @property
    def sessionmaker(self) -> async_sessionmaker[AsyncSession]:
        """The sessionmaker bound to this manager's engine."""
        return self._sessionmaker

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Get an async session with a managed transaction.

        The session is committed on success and rolled back on any
        exception, including task cancellation.

        Yields:
            AsyncSession for database operations.

        Raises:
            DatabaseError: If a database operation fails.
        """
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise DatabaseError("Database operation failed", e) from e
            except BaseException:
                await session.rollback()
                raise

    async def check_connection(self) -> bool:
        """Check if the database is reachable.

        Returns:
            True if the database is reachable, False otherwise.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Database connectivity check failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()


async def init_database(settings: "Settings") -> DatabaseManager:
    """Initialize the module-level database manager.

    Calling it again returns the existing manager.

    Args:
        settings: Application settings containing database configuration.

    Returns:
        The initialized DatabaseManager.

    Raises:
        DatabaseError: If connection pool creation fails.
    """
    global _database

    if _database is None:
        _database = DatabaseManager.from_settings(settings.database, echo=False)
        logger.info("Database initialized: %s", settings.database.host)
    return _database


def get_database() -> DatabaseManager:
    """Get the module-level database manager.

    Returns:
        The DatabaseManager created by init_database().

    Raises:
        DatabaseError: If the database has not been initialized.
    """
    if _database is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _database


async def close_database() -> None:
    """Dispose the module-level database manager, if any."""
    global _database

    if _database is not None:
        await _database.dispose()
        _database = None
