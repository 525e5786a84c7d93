# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests with mocked collaborators
- Store and pipeline tests against a file-backed SQLite database
"""

import os
import uuid
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

# Actors must bind to the in-memory broker; set before any task import
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")

import pytest
import pytest_asyncio

from src.infrastructure.database import DatabaseManager
from src.infrastructure.database.models import Base
from src.models.memory import MemoryCategory, MemoryResponse
from src.utils.datetime import utc_now


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (requires services)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncIterator[DatabaseManager]:
    """Provide a DatabaseManager on a fresh SQLite schema.

    A file database is used so concurrent sessions see the same data.
    """
    from sqlalchemy.ext.asyncio import create_async_engine

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/memory.db")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    db = DatabaseManager(engine)
    yield db
    await db.dispose()


# =============================================================================
# Helper Fixtures
# =============================================================================


@pytest.fixture
def sample_learner_id() -> uuid.UUID:
    """Provide a sample learner ID for testing."""
    return uuid.UUID("550e8400-e29b-41d4-a716-446655440001")


@pytest.fixture
def sample_extraction_payload() -> dict[str, Any]:
    """Provide a well-formed extraction response payload."""
    return {
        "topics_discussed": ["Dependency injection", "Clean architecture"],
        "concepts_explained": ["Inversion of control"],
        "struggles_identified": ["Async/await error handling"],
        "strengths_demonstrated": ["Strong SQL fundamentals"],
        "questions_asked": ["When should I use a service locator?"],
        "current_focus": "Building a payments API",
        "preferred_examples": None,
        "importance_notes": {
            "Async/await error handling": 5,
            "Dependency injection": 4,
        },
    }


@pytest.fixture
def memory_factory():
    """Provide a builder of MemoryResponse objects for database-free tests."""

    def _make(
        learner_id: uuid.UUID | None = None,
        category: MemoryCategory = MemoryCategory.TOPIC_DISCUSSED,
        content: str = "Dependency injection",
        importance: int = 3,
        embedding: bytes | None = None,
        created_at: datetime | None = None,
        superseded_by_id: uuid.UUID | None = None,
    ) -> MemoryResponse:
        return MemoryResponse(
            id=uuid.uuid4(),
            learner_id=learner_id or uuid.uuid4(),
            category=category,
            content=content,
            importance=importance,
            embedding=embedding,
            superseded_by_id=superseded_by_id,
            created_at=created_at or utc_now(),
        )

    return _make


@pytest.fixture
def conversation_factory(database: DatabaseManager):
    """Provide a builder that stores a session with its messages.

    Messages are (role, content) pairs. The builder returns the session id
    and the message ids in insertion order.
    """
    from src.infrastructure.database.models import ConversationMessage, ConversationSession

    async def _make(
        learner_id: uuid.UUID,
        messages: list[tuple[str, str]],
        created_at: datetime | None = None,
    ) -> tuple[uuid.UUID, list[int]]:
        async with database.get_session() as session:
            conversation = ConversationSession(
                id=uuid.uuid4(),
                learner_id=learner_id,
                created_at=created_at or utc_now(),
            )
            session.add(conversation)
            await session.flush()

            rows = [
                ConversationMessage(
                    session_id=conversation.id,
                    role=role,
                    content=content,
                    created_at=created_at or utc_now(),
                )
                for role, content in messages
            ]
            session.add_all(rows)
            await session.flush()
            return conversation.id, [row.id for row in rows]

    return _make
