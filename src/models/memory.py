# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner memory schemas.

Enumerations and Pydantic response models shared by the memory store,
the extraction pipeline, the retrieval engine and the context formatter.

Memory categories carry a cardinality class:
- Single cardinality: at most one active memory per learner per category.
  A new memory supersedes the previous one.
- Multi cardinality: many memories coexist. An exact-content repeat
  reinforces the existing memory instead of creating a duplicate.
"""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5
DEFAULT_IMPORTANCE = 3
MAX_CONTENT_LENGTH = 1000


def clamp_importance(value: int) -> int:
    """Clamp an importance value to the [1, 5] range."""
    return max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, value))


class MemoryCategory(str, Enum):
    """Categories of facts extracted from coaching conversations."""

    TOPIC_DISCUSSED = "topic_discussed"
    CONCEPT_EXPLAINED = "concept_explained"
    STRUGGLE_IDENTIFIED = "struggle_identified"
    STRENGTH_DEMONSTRATED = "strength_demonstrated"
    QUESTION_ASKED = "question_asked"
    CURRENT_FOCUS = "current_focus"
    PREFERRED_EXAMPLES = "preferred_examples"

    @property
    def is_single_cardinality(self) -> bool:
        """Whether only one active memory of this category may exist."""
        return self in _SINGLE_CARDINALITY


_SINGLE_CARDINALITY = frozenset(
    {MemoryCategory.CURRENT_FOCUS, MemoryCategory.PREFERRED_EXAMPLES}
)


class MessageRole(str, Enum):
    """Speaker of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class LearningStyle(str, Enum):
    """How the learner prefers new material to be introduced."""

    EXAMPLES_FIRST = "examples_first"
    THEORY_FIRST = "theory_first"
    HANDS_ON = "hands_on"


class PreferredPace(str, Enum):
    """How deep the learner wants explanations to go."""

    QUICK_OVERVIEW = "quick_overview"
    BALANCED = "balanced"
    DEEP_DIVE = "deep_dive"


class MemoryResponse(BaseModel):
    """A durable fact about a learner.

    Attributes:
        id: Memory identifier.
        learner_id: Owning learner.
        source_conversation_id: Conversation session the fact came from.
        category: Memory category.
        content: Free-text content of the fact.
        importance: Importance from 1 to 5.
        embedding: Serialized embedding vector, if one was computed.
        occurrence_count: How many times the fact was extracted.
        superseded_by_id: Newer memory replacing this one, if any.
        superseded_at: When the memory was superseded.
        created_at: Creation timestamp.
    """

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    learner_id: uuid.UUID
    source_conversation_id: uuid.UUID | None = None
    category: MemoryCategory
    content: str
    importance: int = Field(default=DEFAULT_IMPORTANCE, ge=MIN_IMPORTANCE, le=MAX_IMPORTANCE)
    embedding: bytes | None = Field(default=None, repr=False)
    occurrence_count: int = 1
    superseded_by_id: uuid.UUID | None = None
    superseded_at: datetime | None = None
    created_at: datetime

    @property
    def is_active(self) -> bool:
        """A memory is active until another memory supersedes it."""
        return self.superseded_by_id is None

    @property
    def has_embedding(self) -> bool:
        """Whether the memory can take part in similarity search."""
        return bool(self.embedding)


class ConversationMessageResponse(BaseModel):
    """A single message of a coaching conversation."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: uuid.UUID
    role: MessageRole
    content: str
    created_at: datetime


class ConversationSessionResponse(BaseModel):
    """A coaching conversation session with its extraction cursor."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    learner_id: uuid.UUID
    title: str | None = None
    last_processed_message_id: int | None = None
    last_memory_extraction_at: datetime | None = None
    created_at: datetime


class LearnerProfileResponse(BaseModel):
    """Structured profile of a learner used for prompt personalization."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    learner_id: uuid.UUID
    current_role: str | None = None
    experience_years: int | None = None
    primary_tech_stack: str | None = None
    current_project: str | None = None
    learning_goals: str | None = None
    learning_style: LearningStyle | None = None
    preferred_pace: PreferredPace | None = None
    identified_strengths: str | None = None
    identified_struggles: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def has_user_data(self) -> bool:
        """Whether the learner filled in any part of the profile."""
        return any(
            value is not None and value != ""
            for value in (
                self.current_role,
                self.experience_years,
                self.primary_tech_stack,
                self.current_project,
                self.learning_goals,
                self.learning_style,
                self.preferred_pace,
            )
        )


class LearnerProfileUpdate(BaseModel):
    """Fields a learner may set on their profile."""

    current_role: str | None = Field(default=None, max_length=200)
    experience_years: int | None = Field(default=None, ge=0, le=60)
    primary_tech_stack: str | None = Field(default=None, max_length=500)
    current_project: str | None = Field(default=None, max_length=500)
    learning_goals: str | None = Field(default=None, max_length=1000)
    learning_style: LearningStyle | None = None
    preferred_pace: PreferredPace | None = None
