# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for MemoryStore against SQLite."""

import uuid
from datetime import timedelta

import pytest

from src.core.memory.store import MemoryIntegrityError, MemoryStore
from src.infrastructure.database import DatabaseManager
from src.models.memory import MemoryCategory, MessageRole
from src.utils.datetime import utc_now


@pytest.fixture
def store(database: DatabaseManager) -> MemoryStore:
    return MemoryStore(database)


@pytest.mark.unit
class TestMemoryWrites:
    """Test cases for create, supersede and reinforce."""

    @pytest.mark.asyncio
    async def test_create_returns_active_memory(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        memory = await store.create(
            learner_id=sample_learner_id,
            category=MemoryCategory.TOPIC_DISCUSSED,
            content="Dependency injection",
            importance=4,
            embedding=b"\x00\x00\x80\x3f",
        )

        assert memory.is_active
        assert memory.occurrence_count == 1
        assert memory.importance == 4
        assert memory.has_embedding
        assert memory.created_at.tzinfo is not None
        assert await store.get_by_id(memory.id) == memory

    @pytest.mark.asyncio
    async def test_create_clamps_importance(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        high = await store.create(sample_learner_id, "topic_discussed", "a", importance=9)
        low = await store.create(sample_learner_id, "topic_discussed", "b", importance=0)

        assert high.importance == 5
        assert low.importance == 1

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_content(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        with pytest.raises(ValueError):
            await store.create(sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "  ")
        with pytest.raises(ValueError):
            await store.create(sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "x" * 1001)

    @pytest.mark.asyncio
    async def test_supersede_hides_old_memory(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        old = await store.create(sample_learner_id, MemoryCategory.CURRENT_FOCUS, "Learning Go")
        new = await store.create(sample_learner_id, MemoryCategory.CURRENT_FOCUS, "Learning Rust")

        superseded = await store.supersede(old.id, new.id)

        assert superseded.superseded_by_id == new.id
        assert superseded.superseded_at is not None
        active = await store.find_active_by_category(
            sample_learner_id, MemoryCategory.CURRENT_FOCUS
        )
        assert active is not None and active.id == new.id
        assert [m.id for m in await store.get_active(sample_learner_id)] == [new.id]

    @pytest.mark.asyncio
    async def test_supersede_integrity_errors(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        old = await store.create(sample_learner_id, MemoryCategory.CURRENT_FOCUS, "A")
        new = await store.create(sample_learner_id, MemoryCategory.CURRENT_FOCUS, "B")
        await store.supersede(old.id, new.id)

        with pytest.raises(MemoryIntegrityError):
            await store.supersede(old.id, new.id)
        with pytest.raises(MemoryIntegrityError):
            await store.supersede(new.id, new.id)
        with pytest.raises(MemoryIntegrityError):
            await store.supersede(uuid.uuid4(), new.id)

    @pytest.mark.asyncio
    async def test_reinforce_increments_and_keeps_max_importance(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        memory = await store.create(
            sample_learner_id, MemoryCategory.STRUGGLE_IDENTIFIED, "Recursion", importance=4
        )

        once = await store.reinforce(memory.id, importance=2)
        twice = await store.reinforce(memory.id, importance=5)

        assert once.occurrence_count == 2
        assert once.importance == 4
        assert twice.occurrence_count == 3
        assert twice.importance == 5

    @pytest.mark.asyncio
    async def test_reinforce_superseded_memory_fails(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        old = await store.create(sample_learner_id, MemoryCategory.CURRENT_FOCUS, "A")
        new = await store.create(sample_learner_id, MemoryCategory.CURRENT_FOCUS, "B")
        await store.supersede(old.id, new.id)

        with pytest.raises(MemoryIntegrityError):
            await store.reinforce(old.id, importance=3)
        with pytest.raises(MemoryIntegrityError):
            await store.reinforce(uuid.uuid4(), importance=3)


@pytest.mark.unit
class TestMemoryReads:
    """Test cases for the retrieval reads."""

    @pytest.mark.asyncio
    async def test_get_recent_newest_first(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        created = [
            await store.create(sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, f"Topic {i}")
            for i in range(4)
        ]

        recent = await store.get_recent(sample_learner_id, limit=3)

        assert [m.id for m in recent] == [m.id for m in reversed(created)][:3]

    @pytest.mark.asyncio
    async def test_get_by_min_importance(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        await store.create(sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "low", importance=2)
        four = await store.create(
            sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "four", importance=4
        )
        five = await store.create(
            sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "five", importance=5
        )

        important = await store.get_by_min_importance(sample_learner_id, min_importance=4)

        assert [m.id for m in important] == [five.id, four.id]

    @pytest.mark.asyncio
    async def test_get_with_embeddings_skips_missing_vectors(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        embedded = await store.create(
            sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "a", embedding=b"\x00" * 8
        )
        await store.create(sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "b")

        result = await store.get_with_embeddings(sample_learner_id)

        assert [m.id for m in result] == [embedded.id]

    @pytest.mark.asyncio
    async def test_reads_are_scoped_to_learner(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        await store.create(uuid.uuid4(), MemoryCategory.TOPIC_DISCUSSED, "other learner")

        assert await store.get_recent(sample_learner_id) == []
        assert await store.get_active(sample_learner_id) == []

    @pytest.mark.asyncio
    async def test_find_active_by_content_is_exact(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        memory = await store.create(sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "Docker")

        match = await store.find_active_by_content(
            sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "Docker"
        )
        other_case = await store.find_active_by_content(
            sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "docker"
        )
        other_category = await store.find_active_by_content(
            sample_learner_id, MemoryCategory.CONCEPT_EXPLAINED, "Docker"
        )

        assert match is not None and match.id == memory.id
        assert other_case is None
        assert other_category is None

    @pytest.mark.asyncio
    async def test_get_active_by_category(
        self, store: MemoryStore, sample_learner_id: uuid.UUID
    ) -> None:
        topic = await store.create(sample_learner_id, MemoryCategory.TOPIC_DISCUSSED, "Docker")
        await store.create(sample_learner_id, MemoryCategory.QUESTION_ASKED, "Why?")

        result = await store.get_active(sample_learner_id, category="topic_discussed")

        assert [m.id for m in result] == [topic.id]


@pytest.mark.unit
class TestExtractionCursor:
    """Test cases for sessions, messages and the extraction cursor."""

    @pytest.mark.asyncio
    async def test_sessions_needing_extraction(
        self, store: MemoryStore, conversation_factory, sample_learner_id: uuid.UUID
    ) -> None:
        done_id, done_messages = await conversation_factory(
            sample_learner_id, [("user", "hi")]
        )
        pending_id, _ = await conversation_factory(sample_learner_id, [("user", "hello")])
        await conversation_factory(sample_learner_id, [])
        await store.advance_cursor(done_id, done_messages[-1])

        sessions = await store.get_sessions_needing_extraction(sample_learner_id)

        assert [s.id for s in sessions] == [pending_id]

    @pytest.mark.asyncio
    async def test_get_messages_after_cursor(
        self, store: MemoryStore, conversation_factory, sample_learner_id: uuid.UUID
    ) -> None:
        session_id, ids = await conversation_factory(
            sample_learner_id,
            [("user", "one"), ("assistant", "two"), ("user", "three")],
        )

        all_messages = await store.get_messages_after(session_id, None)
        after_first = await store.get_messages_after(session_id, ids[0])

        assert [m.content for m in all_messages] == ["one", "two", "three"]
        assert [m.id for m in after_first] == ids[1:]
        assert after_first[0].role is MessageRole.ASSISTANT

    @pytest.mark.asyncio
    async def test_advance_cursor(
        self, store: MemoryStore, conversation_factory, sample_learner_id: uuid.UUID
    ) -> None:
        session_id, ids = await conversation_factory(
            sample_learner_id, [("user", "one"), ("user", "two")]
        )

        assert await store.get_cursor(session_id) is None
        await store.advance_cursor(session_id, ids[1])

        assert await store.get_cursor(session_id) == ids[1]
        with pytest.raises(MemoryIntegrityError):
            await store.advance_cursor(session_id, ids[0])

    @pytest.mark.asyncio
    async def test_cursor_on_missing_session(self, store: MemoryStore) -> None:
        with pytest.raises(MemoryIntegrityError):
            await store.get_cursor(uuid.uuid4())
        with pytest.raises(MemoryIntegrityError):
            await store.advance_cursor(uuid.uuid4(), 1)

    @pytest.mark.asyncio
    async def test_learners_needing_extraction(
        self, store: MemoryStore, conversation_factory, sample_learner_id: uuid.UUID
    ) -> None:
        lagging_learner = uuid.uuid4()
        done_learner = uuid.uuid4()
        await conversation_factory(sample_learner_id, [("user", "hi"), ("user", "again")])
        await conversation_factory(
            lagging_learner, [("user", "old")], created_at=utc_now() - timedelta(hours=48)
        )
        done_session, done_ids = await conversation_factory(done_learner, [("user", "done")])
        await store.advance_cursor(done_session, done_ids[-1])

        learners = await store.get_learners_needing_extraction()

        assert set(learners) == {sample_learner_id, lagging_learner}

    @pytest.mark.asyncio
    async def test_learners_needing_extraction_with_age_bound(
        self, store: MemoryStore, conversation_factory, sample_learner_id: uuid.UUID
    ) -> None:
        await conversation_factory(sample_learner_id, [("user", "hi")])
        await conversation_factory(
            uuid.uuid4(), [("user", "old")], created_at=utc_now() - timedelta(days=3)
        )

        learners = await store.get_learners_needing_extraction(
            utc_now() - timedelta(hours=24)
        )

        assert learners == [sample_learner_id]
