# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for LearnerProfileStore against SQLite."""

import uuid

import pytest

from src.core.memory.profiles import LearnerProfileError, LearnerProfileStore
from src.infrastructure.database import DatabaseManager
from src.models.memory import LearningStyle, PreferredPace


@pytest.fixture
def profiles(database: DatabaseManager) -> LearnerProfileStore:
    return LearnerProfileStore(database)


@pytest.mark.unit
class TestLearnerProfileStore:
    """Test cases for LearnerProfileStore."""

    @pytest.mark.asyncio
    async def test_get_or_create_is_idempotent(
        self, profiles: LearnerProfileStore, sample_learner_id: uuid.UUID
    ) -> None:
        first = await profiles.get_or_create(sample_learner_id)
        second = await profiles.get_or_create(sample_learner_id)

        assert first.id == second.id
        assert first.learner_id == sample_learner_id
        assert not first.has_user_data

    @pytest.mark.asyncio
    async def test_update_sets_fields(
        self, profiles: LearnerProfileStore, sample_learner_id: uuid.UUID
    ) -> None:
        updated = await profiles.update(
            sample_learner_id,
            current_role="Platform engineer",
            experience_years=6,
            learning_style=LearningStyle.EXAMPLES_FIRST,
            preferred_pace="quick_overview",
        )

        assert updated.current_role == "Platform engineer"
        assert updated.experience_years == 6
        assert updated.learning_style is LearningStyle.EXAMPLES_FIRST
        assert updated.preferred_pace is PreferredPace.QUICK_OVERVIEW
        assert updated.has_user_data

    @pytest.mark.asyncio
    async def test_update_only_touches_given_fields(
        self, profiles: LearnerProfileStore, sample_learner_id: uuid.UUID
    ) -> None:
        await profiles.update(sample_learner_id, current_role="Analyst", experience_years=2)

        updated = await profiles.update(sample_learner_id, experience_years=None)

        assert updated.current_role == "Analyst"
        assert updated.experience_years is None

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_field(
        self, profiles: LearnerProfileStore, sample_learner_id: uuid.UUID
    ) -> None:
        with pytest.raises(LearnerProfileError, match="identified_strengths"):
            await profiles.update(sample_learner_id, identified_strengths="SQL")

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_value(
        self, profiles: LearnerProfileStore, sample_learner_id: uuid.UUID
    ) -> None:
        with pytest.raises(LearnerProfileError) as exc_info:
            await profiles.update(sample_learner_id, experience_years=99)

        assert exc_info.value.original_error is not None
