# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the memory store on PostgreSQL.

These tests require a running PostgreSQL instance.
Run with: pytest tests/integration/test_postgres_connection.py -m integration -v

Prerequisites:
    - PostgreSQL reachable through the DATABASE_* settings
    - The configured user may create and drop tables
"""

import uuid

import pytest
import pytest_asyncio

from src.core.config.settings import Settings, clear_settings_cache
from src.core.memory.store import MemoryStore
from src.infrastructure.database import (
    close_database,
    get_database,
    init_database,
)
from src.infrastructure.database.models import Base
from src.models.memory import MemoryCategory


@pytest.fixture
def settings() -> Settings:
    """Provide fresh settings for each test."""
    clear_settings_cache()
    return Settings()


@pytest_asyncio.fixture
async def initialized_database(settings: Settings):
    """Initialize the database with a fresh schema and clean up afterwards."""
    db = await init_database(settings)
    if not await db.check_connection():
        await close_database()
        pytest.skip("PostgreSQL is not reachable")

    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_database()


@pytest.mark.integration
class TestPostgresMemoryStore:
    """Tests for the memory store against PostgreSQL."""

    @pytest.mark.asyncio
    async def test_connection(self, initialized_database) -> None:
        assert get_database() is initialized_database
        assert await initialized_database.check_connection() is True

    @pytest.mark.asyncio
    async def test_supersede_round_trip(self, initialized_database) -> None:
        store = MemoryStore(initialized_database)
        learner_id = uuid.uuid4()

        old = await store.create(learner_id, MemoryCategory.CURRENT_FOCUS, "Learning Go")
        new = await store.create(learner_id, MemoryCategory.CURRENT_FOCUS, "Learning Rust")
        await store.supersede(old.id, new.id)

        active = await store.get_active(learner_id)

        assert [m.id for m in active] == [new.id]
