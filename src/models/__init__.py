# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models and enumerations shared across layers."""

from src.models.memory import (
    DEFAULT_IMPORTANCE,
    MAX_CONTENT_LENGTH,
    MAX_IMPORTANCE,
    MIN_IMPORTANCE,
    ConversationMessageResponse,
    ConversationSessionResponse,
    LearnerProfileResponse,
    LearnerProfileUpdate,
    LearningStyle,
    MemoryCategory,
    MemoryResponse,
    MessageRole,
    PreferredPace,
    clamp_importance,
)

__all__ = [
    "DEFAULT_IMPORTANCE",
    "MAX_CONTENT_LENGTH",
    "MAX_IMPORTANCE",
    "MIN_IMPORTANCE",
    "ConversationMessageResponse",
    "ConversationSessionResponse",
    "LearnerProfileResponse",
    "LearnerProfileUpdate",
    "LearningStyle",
    "MemoryCategory",
    "MemoryResponse",
    "MessageRole",
    "PreferredPace",
    "clamp_importance",
]
