# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for database connection management."""

import asyncio
import uuid

import pytest
from sqlalchemy import select, text

from src.core.config.settings import DatabaseSettings, Settings
from src.infrastructure.database import (
    DatabaseError,
    DatabaseManager,
    close_database,
    get_database,
    init_database,
)
from src.infrastructure.database.models import LearnerProfile


@pytest.mark.unit
class TestDatabaseManager:
    """Test cases for DatabaseManager sessions."""

    @pytest.mark.asyncio
    async def test_session_commits_on_success(self, database: DatabaseManager) -> None:
        learner_id = uuid.uuid4()

        async with database.get_session() as session:
            session.add(LearnerProfile(id=uuid.uuid4(), learner_id=learner_id))

        async with database.get_session() as session:
            result = await session.execute(
                select(LearnerProfile).where(LearnerProfile.learner_id == learner_id)
            )
            assert result.scalar_one_or_none() is not None

    @pytest.mark.asyncio
    async def test_session_rolls_back_on_error(self, database: DatabaseManager) -> None:
        learner_id = uuid.uuid4()

        with pytest.raises(RuntimeError):
            async with database.get_session() as session:
                session.add(LearnerProfile(id=uuid.uuid4(), learner_id=learner_id))
                await session.flush()
                raise RuntimeError("abort")

        async with database.get_session() as session:
            result = await session.execute(
                select(LearnerProfile).where(LearnerProfile.learner_id == learner_id)
            )
            assert result.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_session_rolls_back_on_cancellation(self, database: DatabaseManager) -> None:
        learner_id = uuid.uuid4()

        with pytest.raises(asyncio.CancelledError):
            async with database.get_session() as session:
                session.add(LearnerProfile(id=uuid.uuid4(), learner_id=learner_id))
                await session.flush()
                raise asyncio.CancelledError()

        async with database.get_session() as session:
            result = await session.execute(
                select(LearnerProfile).where(LearnerProfile.learner_id == learner_id)
            )
            assert result.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_sqlalchemy_errors_are_wrapped(self, database: DatabaseManager) -> None:
        with pytest.raises(DatabaseError) as exc_info:
            async with database.get_session() as session:
                await session.execute(text("SELECT * FROM missing_table"))

        assert exc_info.value.original_error is not None
        assert "Database operation failed" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_check_connection(self, database: DatabaseManager) -> None:
        assert await database.check_connection() is True


@pytest.mark.unit
class TestModuleDatabase:
    """Test cases for the module-level database lifecycle."""

    @pytest.mark.asyncio
    async def test_init_get_close(self, tmp_path) -> None:
        settings = Settings(database=DatabaseSettings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/x.db"))

        try:
            db = await init_database(settings)
            assert get_database() is db
            assert await init_database(settings) is db
        finally:
            await close_database()

        with pytest.raises(DatabaseError):
            get_database()
