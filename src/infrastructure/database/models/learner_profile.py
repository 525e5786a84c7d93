# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner profile table."""

import uuid

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import Base, TimestampMixin


class LearnerProfile(Base, TimestampMixin):
    """Structured, learner-editable profile used to personalize prompts.

    ``identified_strengths`` and ``identified_struggles`` are maintained by
    the system rather than the learner.
    """

    __tablename__ = "learner_profiles"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    learner_id: Mapped[uuid.UUID] = mapped_column(nullable=False, unique=True, index=True)
    current_role: Mapped[str | None] = mapped_column(String(200), nullable=True)
    experience_years: Mapped[int | None] = mapped_column(Integer, nullable=True)
    primary_tech_stack: Mapped[str | None] = mapped_column(String(500), nullable=True)
    current_project: Mapped[str | None] = mapped_column(String(500), nullable=True)
    learning_goals: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    learning_style: Mapped[str | None] = mapped_column(String(30), nullable=True)
    preferred_pace: Mapped[str | None] = mapped_column(String(30), nullable=True)
    identified_strengths: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    identified_struggles: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    def __repr__(self) -> str:
        return f"<LearnerProfile learner={self.learner_id}>"
