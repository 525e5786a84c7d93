# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner memory table.

A memory is never hard-deleted by the engine. Replacing a single
cardinality memory sets ``superseded_by_id`` and ``superseded_at`` on the
old row; superseded rows stay for audit and are excluded from retrieval.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base
from src.models.memory import DEFAULT_IMPORTANCE, MAX_CONTENT_LENGTH
from src.utils.datetime import utc_now


class LearnerMemory(Base):
    """A durable fact about one learner."""

    __tablename__ = "learner_memories"
    __table_args__ = (
        CheckConstraint("importance BETWEEN 1 AND 5", name="ck_learner_memories_importance"),
        CheckConstraint("occurrence_count >= 1", name="ck_learner_memories_occurrence"),
        Index("ix_learner_memories_learner_category", "learner_id", "category"),
        Index("ix_learner_memories_learner_created", "learner_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    learner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    source_conversation_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("conversation_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    content: Mapped[str] = mapped_column(String(MAX_CONTENT_LENGTH), nullable=False)
    importance: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_IMPORTANCE
    )
    embedding: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    occurrence_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    superseded_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("learner_memories.id", ondelete="SET NULL"),
        nullable=True,
    )
    superseded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    @property
    def is_active(self) -> bool:
        """Check if the memory has not been superseded."""
        return self.superseded_by_id is None

    def reinforce(self, importance: int) -> None:
        """Record a repeated extraction of the same fact.

        Args:
            importance: Importance of the repeated extraction.
        """
        self.occurrence_count += 1
        self.importance = max(self.importance, importance)

    def supersede(self, newer_id: uuid.UUID) -> None:
        """Mark the memory as replaced by a newer one.

        Args:
            newer_id: Identifier of the replacing memory.
        """
        self.superseded_by_id = newer_id
        self.superseded_at = utc_now()

    def __repr__(self) -> str:
        return f"<LearnerMemory [{self.category}] {self.content[:30]}>"
