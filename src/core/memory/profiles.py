# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner profile store.

Profiles are created lazily: the first read for a learner inserts an
empty profile so callers never deal with a missing row.
"""

import logging
import uuid
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database import DatabaseManager
from src.infrastructure.database.models import LearnerProfile
from src.models.memory import LearnerProfileResponse, LearnerProfileUpdate
from src.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)


class LearnerProfileError(Exception):
    """Exception raised for learner profile operations.

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


class LearnerProfileStore:
    """Reads and updates learner profiles."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_or_create(
        self,
        learner_id: uuid.UUID,
        session: AsyncSession | None = None,
    ) -> LearnerProfileResponse:
        """Get a learner's profile, creating an empty one if needed.

        Args:
            learner_id: Learner identifier.
            session: Optional database session for transaction sharing.

        Returns:
            The learner's profile.
        """

        async def _execute(db: AsyncSession) -> LearnerProfileResponse:
            profile = await self._load(db, learner_id)
            if profile is None:
                profile = LearnerProfile(id=uuid.uuid4(), learner_id=learner_id)
                db.add(profile)
                await db.flush()
                logger.info("Created empty profile for learner %s", learner_id)
            return self._to_response(profile)

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    async def update(
        self,
        learner_id: uuid.UUID,
        session: AsyncSession | None = None,
        **fields: Any,
    ) -> LearnerProfileResponse:
        """Update user-editable profile fields.

        Only the fields passed are changed; passing None clears a field.

        Args:
            learner_id: Learner identifier.
            session: Optional database session for transaction sharing.
            **fields: Fields of LearnerProfileUpdate.

        Returns:
            The updated profile.

        Raises:
            LearnerProfileError: If a field is unknown or fails validation.
        """
        unknown = set(fields) - set(LearnerProfileUpdate.model_fields)
        if unknown:
            raise LearnerProfileError(f"Unknown profile fields: {', '.join(sorted(unknown))}")

        try:
            changes = LearnerProfileUpdate(**fields).model_dump(include=set(fields))
        except ValidationError as e:
            raise LearnerProfileError("Invalid profile update", e) from e

        async def _execute(db: AsyncSession) -> LearnerProfileResponse:
            profile = await self._load(db, learner_id)
            if profile is None:
                profile = LearnerProfile(id=uuid.uuid4(), learner_id=learner_id)
                db.add(profile)

            for name, value in changes.items():
                setattr(profile, name, value.value if hasattr(value, "value") else value)

            await db.flush()
            await db.refresh(profile)
            logger.info(
                "Updated profile for learner %s: %s",
                learner_id,
                ", ".join(sorted(changes)),
            )
            return self._to_response(profile)

        if session is not None:
            return await _execute(session)
        async with self._db.get_session() as db:
            return await _execute(db)

    @staticmethod
    async def _load(db: AsyncSession, learner_id: uuid.UUID) -> LearnerProfile | None:
        result = await db.execute(
            select(LearnerProfile).where(LearnerProfile.learner_id == learner_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _to_response(profile: LearnerProfile) -> LearnerProfileResponse:
        response = LearnerProfileResponse.model_validate(profile)
        return response.model_copy(
            update={
                "created_at": ensure_utc(response.created_at),
                "updated_at": ensure_utc(response.updated_at),
            }
        )
