# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory store for learner memories and extraction cursors.

This module owns every read and write of the learner_memories table and
the extraction cursor kept on conversation sessions. Only active memories
(not superseded) are returned by the read methods used for retrieval.

Session Injection Pattern:
    All methods accept an optional `session` parameter. When provided,
    operations use the given session and share its transaction. The
    extraction pipeline relies on this to write memories and advance the
    cursor atomically. When not provided, a new session is created for the
    operation and committed when it finishes.

Example:
    store = MemoryStore(db)

    memory = await store.create(
        learner_id=learner_id,
        category=MemoryCategory.TOPIC_DISCUSSED,
        content="Dependency injection",
        importance=3,
    )

    async with db.get_session() as session:
        recent = await store.get_recent(learner_id, limit=5, session=session)
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import and_, desc, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import DatabaseManager
from src.infrastructure.database.models import (
    ConversationMessage,
    ConversationSession,
    LearnerMemory,
)
from src.models.memory import (
    DEFAULT_IMPORTANCE,
    MAX_CONTENT_LENGTH,
    ConversationMessageResponse,
    ConversationSessionResponse,
    MemoryCategory,
    MemoryResponse,
    MessageRole,
    clamp_importance,
)
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def _unprocessed_message_condition(since: datetime | None = None):
    """Build an EXISTS clause for messages past the session's cursor."""
    conditions = [
        ConversationMessage.session_id == ConversationSession.id,
        ConversationMessage.id
        > func.coalesce(ConversationSession.last_processed_message_id, 0),
    ]
    if since is not None:
        conditions.append(ConversationMessage.created_at >= since)
    return exists().where(and_(*conditions))


class MemoryStoreError(Exception):
    """Exception raised for memory store operations.

    Attributes:
        message: Error description.
        original_error: Original exception if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class MemoryIntegrityError(MemoryStoreError):
    """Raised when a write would violate a memory or cursor invariant.

    Examples are reinforcing a superseded memory, superseding a memory
    twice, or moving an extraction cursor backwards.
    """


class MemoryStore:
    """Persistence operations for learner memories.

    Attributes:
        db: Database manager providing sessions.
    """

    def __init__(self, db: DatabaseManager) -> None:
        """Initialize the memory store.

        Args:
            db: Database manager providing sessions.
        """
        self._db = db

    # ------------------------------------------------------------------
    # Memory writes
    # ------------------------------------------------------------------

    async def create(
        self,
        learner_id: uuid.UUID,
        category: MemoryCategory | str,
        content: str,
        importance: int = DEFAULT_IMPORTANCE,
        embedding: bytes | None = None,
        source_conversation_id: uuid.UUID | None = None,
        session: AsyncSession | None = None,
    ) -> MemoryResponse:
        """Create a new active memory.

        The row is flushed immediately so that its id can be referenced by
        a supersede in the same transaction.

        Args:
            learner_id: Owning learner.
            category: Memory category.
            content: Fact text, at most 1000 characters.
            importance: Importance, clamped to [1, 5].
            embedding: Serialized embedding vector.
            source_conversation_id: Conversation session the fact came from.
            session: Optional database session for transaction sharing.

        Returns:
            MemoryResponse for the created memory.

        Raises:
            ValueError: If content is blank or too long.
        """
        category = MemoryCategory(category)
        if not content or not content.strip():
            raise ValueError("Memory content cannot be empty")
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValueError(
                f"Memory content exceeds {MAX_CONTENT_LENGTH} characters"
            )

        async def _execute(db: AsyncSession) -> MemoryResponse:
            memory = LearnerMemory(
                id=uuid.uuid4(),
                learner_id=learner_id,
                source_conversation_id=source_conversation_id,
                category=category.value,
                content=content,
                importance=clamp_importance(importance),
                embedding=embedding,
                occurrence_count=1,
                created_at=utc_now(),
            )
            db.add(memory)
            await db.flush()

            logger.debug(
                "Created %s memory %s for learner %s",
                category.value,
                memory.id,
                learner_id,
            )
            return self._to_response(memory)

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def supersede(
        self,
        memory_id: uuid.UUID,
        superseded_by_id: uuid.UUID,
        session: AsyncSession | None = None,
    ) -> MemoryResponse:
        """Mark an active memory as replaced by a newer one.

        Args:
            memory_id: Memory being replaced.
            superseded_by_id: Newer memory replacing it.
            session: Optional database session for transaction sharing.

        Returns:
            MemoryResponse of the superseded memory.

        Raises:
            MemoryIntegrityError: If the memory does not exist, is already
                superseded, or would supersede itself.
        """
        if memory_id == superseded_by_id:
            raise MemoryIntegrityError(f"Memory {memory_id} cannot supersede itself")

        async def _execute(db: AsyncSession) -> MemoryResponse:
            memory = await db.get(LearnerMemory, memory_id)
            if memory is None:
                raise MemoryIntegrityError(f"Memory {memory_id} not found")
            if not memory.is_active:
                raise MemoryIntegrityError(
                    f"Memory {memory_id} is already superseded by {memory.superseded_by_id}"
                )

            memory.supersede(superseded_by_id)
            await db.flush()

            logger.debug("Memory %s superseded by %s", memory_id, superseded_by_id)
            return self._to_response(memory)

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def reinforce(
        self,
        memory_id: uuid.UUID,
        importance: int,
        session: AsyncSession | None = None,
    ) -> MemoryResponse:
        """Record a repeated extraction of an existing fact.

        Increments the occurrence count and raises importance to the higher
        of the stored and the new value.

        Args:
            memory_id: Memory being reinforced.
            importance: Importance of the repeated extraction.
            session: Optional database session for transaction sharing.

        Returns:
            MemoryResponse of the reinforced memory.

        Raises:
            MemoryIntegrityError: If the memory does not exist or is superseded.
        """

        async def _execute(db: AsyncSession) -> MemoryResponse:
            memory = await db.get(LearnerMemory, memory_id)
            if memory is None:
                raise MemoryIntegrityError(f"Memory {memory_id} not found")
            if not memory.is_active:
                raise MemoryIntegrityError(
                    f"Cannot reinforce superseded memory {memory_id}"
                )

            memory.reinforce(clamp_importance(importance))
            await db.flush()

            logger.debug(
                "Reinforced memory %s: occurrences=%d, importance=%d",
                memory_id,
                memory.occurrence_count,
                memory.importance,
            )
            return self._to_response(memory)

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    # ------------------------------------------------------------------
    # Memory reads
    # ------------------------------------------------------------------

    async def get_by_id(
        self,
        memory_id: uuid.UUID,
        session: AsyncSession | None = None,
    ) -> MemoryResponse | None:
        """Get a memory by id, active or not.

        Args:
            memory_id: Memory identifier.
            session: Optional database session for transaction sharing.

        Returns:
            MemoryResponse if found, None otherwise.
        """

        async def _execute(db: AsyncSession) -> MemoryResponse | None:
            memory = await db.get(LearnerMemory, memory_id)
            return self._to_response(memory) if memory else None

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def find_active_by_category(
        self,
        learner_id: uuid.UUID,
        category: MemoryCategory | str,
        session: AsyncSession | None = None,
    ) -> MemoryResponse | None:
        """Get the learner's active memory in a category.

        Used for single cardinality categories, where at most one active
        memory exists. If several exist the newest is returned.

        Args:
            learner_id: Owning learner.
            category: Memory category.
            session: Optional database session for transaction sharing.

        Returns:
            The active memory, or None.
        """
        category = MemoryCategory(category)

        async def _execute(db: AsyncSession) -> MemoryResponse | None:
            result = await db.execute(
                select(LearnerMemory)
                .where(
                    and_(
                        LearnerMemory.learner_id == learner_id,
                        LearnerMemory.category == category.value,
                        LearnerMemory.superseded_by_id.is_(None),
                    )
                )
                .order_by(desc(LearnerMemory.created_at))
                .limit(1)
            )
            memory = result.scalar_one_or_none()
            return self._to_response(memory) if memory else None

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def find_active_by_content(
        self,
        learner_id: uuid.UUID,
        category: MemoryCategory | str,
        content: str,
        session: AsyncSession | None = None,
    ) -> MemoryResponse | None:
        """Find an active memory with exactly the given content.

        Args:
            learner_id: Owning learner.
            category: Memory category.
            content: Content to match byte for byte.
            session: Optional database session for transaction sharing.

        Returns:
            The matching active memory, or None.
        """
        category = MemoryCategory(category)

        async def _execute(db: AsyncSession) -> MemoryResponse | None:
            result = await db.execute(
                select(LearnerMemory)
                .where(
                    and_(
                        LearnerMemory.learner_id == learner_id,
                        LearnerMemory.category == category.value,
                        LearnerMemory.content == content,
                        LearnerMemory.superseded_by_id.is_(None),
                    )
                )
                .order_by(LearnerMemory.created_at)
                .limit(1)
            )
            memory = result.scalar_one_or_none()
            return self._to_response(memory) if memory else None

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def get_recent(
        self,
        learner_id: uuid.UUID,
        limit: int = 5,
        session: AsyncSession | None = None,
    ) -> list[MemoryResponse]:
        """Get the learner's newest active memories.

        Args:
            learner_id: Owning learner.
            limit: Maximum number of memories.
            session: Optional database session for transaction sharing.

        Returns:
            Active memories, newest first.
        """

        async def _execute(db: AsyncSession) -> list[MemoryResponse]:
            result = await db.execute(
                select(LearnerMemory)
                .where(
                    and_(
                        LearnerMemory.learner_id == learner_id,
                        LearnerMemory.superseded_by_id.is_(None),
                    )
                )
                .order_by(desc(LearnerMemory.created_at))
                .limit(limit)
            )
            return [self._to_response(m) for m in result.scalars().all()]

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def get_by_min_importance(
        self,
        learner_id: uuid.UUID,
        min_importance: int,
        limit: int = 5,
        session: AsyncSession | None = None,
    ) -> list[MemoryResponse]:
        """Get active memories at or above an importance threshold.

        Args:
            learner_id: Owning learner.
            min_importance: Inclusive importance threshold.
            limit: Maximum number of memories.
            session: Optional database session for transaction sharing.

        Returns:
            Active memories ordered by importance, then newest first.
        """

        async def _execute(db: AsyncSession) -> list[MemoryResponse]:
            result = await db.execute(
                select(LearnerMemory)
                .where(
                    and_(
                        LearnerMemory.learner_id == learner_id,
                        LearnerMemory.superseded_by_id.is_(None),
                        LearnerMemory.importance >= min_importance,
                    )
                )
                .order_by(desc(LearnerMemory.importance), desc(LearnerMemory.created_at))
                .limit(limit)
            )
            return [self._to_response(m) for m in result.scalars().all()]

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def get_with_embeddings(
        self,
        learner_id: uuid.UUID,
        session: AsyncSession | None = None,
    ) -> list[MemoryResponse]:
        """Get all active memories that carry an embedding.

        Args:
            learner_id: Owning learner.
            session: Optional database session for transaction sharing.

        Returns:
            Active embedded memories, newest first.
        """

        async def _execute(db: AsyncSession) -> list[MemoryResponse]:
            result = await db.execute(
                select(LearnerMemory)
                .where(
                    and_(
                        LearnerMemory.learner_id == learner_id,
                        LearnerMemory.superseded_by_id.is_(None),
                        LearnerMemory.embedding.is_not(None),
                    )
                )
                .order_by(desc(LearnerMemory.created_at))
            )
            return [
                self._to_response(m) for m in result.scalars().all() if m.embedding
            ]

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def get_active(
        self,
        learner_id: uuid.UUID,
        category: MemoryCategory | str | None = None,
        session: AsyncSession | None = None,
    ) -> list[MemoryResponse]:
        """Get every active memory of a learner.

        Args:
            learner_id: Owning learner.
            category: Optional category filter.
            session: Optional database session for transaction sharing.

        Returns:
            Active memories, oldest first.
        """
        category_value = MemoryCategory(category).value if category else None

        async def _execute(db: AsyncSession) -> list[MemoryResponse]:
            query = select(LearnerMemory).where(
                and_(
                    LearnerMemory.learner_id == learner_id,
                    LearnerMemory.superseded_by_id.is_(None),
                )
            )
            if category_value:
                query = query.where(LearnerMemory.category == category_value)

            result = await db.execute(query.order_by(LearnerMemory.created_at))
            return [self._to_response(m) for m in result.scalars().all()]

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    # ------------------------------------------------------------------
    # Extraction cursor
    # ------------------------------------------------------------------

    async def get_sessions_needing_extraction(
        self,
        learner_id: uuid.UUID,
        session: AsyncSession | None = None,
    ) -> list[ConversationSessionResponse]:
        """Get the learner's sessions with messages past their cursor.

        Args:
            learner_id: Owning learner.
            session: Optional database session for transaction sharing.

        Returns:
            Sessions behind their latest message, oldest first.
        """
        unprocessed = _unprocessed_message_condition()

        async def _execute(db: AsyncSession) -> list[ConversationSessionResponse]:
            result = await db.execute(
                select(ConversationSession)
                .where(
                    and_(
                        ConversationSession.learner_id == learner_id,
                        unprocessed,
                    )
                )
                .order_by(ConversationSession.created_at, ConversationSession.id)
            )
            return [
                ConversationSessionResponse.model_validate(s)
                for s in result.scalars().all()
            ]

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def get_messages_after(
        self,
        session_id: uuid.UUID,
        after_message_id: int | None,
        session: AsyncSession | None = None,
    ) -> list[ConversationMessageResponse]:
        """Get a session's messages strictly after a message id.

        Args:
            session_id: Conversation session.
            after_message_id: Cursor value; None reads from the beginning.
            session: Optional database session for transaction sharing.

        Returns:
            Messages in chronological order.
        """

        async def _execute(db: AsyncSession) -> list[ConversationMessageResponse]:
            query = select(ConversationMessage).where(
                ConversationMessage.session_id == session_id
            )
            if after_message_id is not None:
                query = query.where(ConversationMessage.id > after_message_id)

            result = await db.execute(query.order_by(ConversationMessage.id))
            return [
                ConversationMessageResponse(
                    id=m.id,
                    session_id=m.session_id,
                    role=MessageRole(m.role),
                    content=m.content,
                    created_at=ensure_utc(m.created_at),
                )
                for m in result.scalars().all()
            ]

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def get_cursor(
        self,
        session_id: uuid.UUID,
        session: AsyncSession | None = None,
    ) -> int | None:
        """Get the last processed message id of a session.

        Args:
            session_id: Conversation session.
            session: Optional database session for transaction sharing.

        Returns:
            The cursor value, or None if nothing was processed yet.

        Raises:
            MemoryIntegrityError: If the session does not exist.
        """

        async def _execute(db: AsyncSession) -> int | None:
            conversation = await db.get(ConversationSession, session_id)
            if conversation is None:
                raise MemoryIntegrityError(f"Conversation session {session_id} not found")
            return conversation.last_processed_message_id

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def advance_cursor(
        self,
        session_id: uuid.UUID,
        message_id: int,
        session: AsyncSession | None = None,
    ) -> None:
        """Move a session's extraction cursor forward.

        Args:
            session_id: Conversation session.
            message_id: Id of the last message folded into memories.
            session: Optional database session for transaction sharing.

        Raises:
            MemoryIntegrityError: If the session does not exist or the
                cursor would move backwards.
        """

        async def _execute(db: AsyncSession) -> None:
            conversation = await db.get(ConversationSession, session_id)
            if conversation is None:
                raise MemoryIntegrityError(f"Conversation session {session_id} not found")

            current = conversation.last_processed_message_id
            if current is not None and message_id < current:
                raise MemoryIntegrityError(
                    f"Cursor for session {session_id} cannot move back "
                    f"from {current} to {message_id}"
                )

            conversation.last_processed_message_id = message_id
            conversation.last_memory_extraction_at = utc_now()
            await db.flush()

        if session is not None:
            await _execute(session)
            return
        async with self._db.get_session() as db:
            await _execute(db)

    async def get_learners_needing_extraction(
        self,
        since: datetime | None = None,
        session: AsyncSession | None = None,
    ) -> list[uuid.UUID]:
        """Get learners with at least one session behind its latest message.

        Args:
            since: Optional lower bound on the creation time of the
                unprocessed messages. None picks up every lagging session.
            session: Optional database session for transaction sharing.

        Returns:
            Distinct learner ids.
        """
        unprocessed = _unprocessed_message_condition(since)

        async def _execute(db: AsyncSession) -> list[uuid.UUID]:
            result = await db.execute(
                select(ConversationSession.learner_id).where(unprocessed).distinct()
            )
            return list(result.scalars().all())

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    @staticmethod
    def _to_response(memory: LearnerMemory) -> MemoryResponse:
        """Convert a database row to a response model."""
        return MemoryResponse(
            id=memory.id,
            learner_id=memory.learner_id,
            source_conversation_id=memory.source_conversation_id,
            category=MemoryCategory(memory.category),
            content=memory.content,
            importance=memory.importance,
            embedding=memory.embedding,
            occurrence_count=memory.occurrence_count,
            superseded_by_id=memory.superseded_by_id,
            superseded_at=ensure_utc(memory.superseded_at),
            created_at=ensure_utc(memory.created_at),
        )
