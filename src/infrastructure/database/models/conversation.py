# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversation session and message tables.

Message ids increase monotonically within the database, which lets the
extraction cursor on a session be a plain "last processed message id".
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, BigIntegerId, TimestampMixin
from src.utils.datetime import utc_now


class ConversationSession(Base, TimestampMixin):
    """A coaching conversation between a learner and the assistant."""

    __tablename__ = "conversation_sessions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    learner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    last_processed_message_id: Mapped[int | None] = mapped_column(
        BigIntegerId, nullable=True
    )
    last_memory_extraction_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    messages: Mapped[list["ConversationMessage"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="ConversationMessage.id",
    )

    def __repr__(self) -> str:
        return f"<ConversationSession {self.id} learner={self.learner_id}>"


class ConversationMessage(Base):
    """A single message inside a conversation session."""

    __tablename__ = "conversation_messages"
    __table_args__ = (Index("ix_conversation_messages_session_id_id", "session_id", "id"),)

    id: Mapped[int] = mapped_column(BigIntegerId, primary_key=True, autoincrement=True)
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("conversation_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    session: Mapped[ConversationSession] = relationship(back_populates="messages")

    def __repr__(self) -> str:
        return f"<ConversationMessage {self.id} [{self.role}]>"
