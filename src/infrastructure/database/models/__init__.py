# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM models.

Importing this package registers every table on ``Base.metadata``.
"""

from src.infrastructure.database.models.base import Base, BigIntegerId, TimestampMixin
from src.infrastructure.database.models.conversation import (
    ConversationMessage,
    ConversationSession,
)
from src.infrastructure.database.models.learner_profile import LearnerProfile
from src.infrastructure.database.models.memory import LearnerMemory

__all__ = [
    "Base",
    "BigIntegerId",
    "TimestampMixin",
    "ConversationMessage",
    "ConversationSession",
    "LearnerMemory",
    "LearnerProfile",
]
