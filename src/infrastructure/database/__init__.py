# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure.

This package provides SQLAlchemy async connections and the ORM models
for learner memories, conversation sessions and learner profiles.

Example:
    from src.infrastructure.database import init_database

    db = await init_database(settings)
    async with db.get_session() as session:
        result = await session.execute(select(LearnerMemory))
"""

from src.infrastructure.database.connection import (
    DatabaseError,
    DatabaseManager,
    close_database,
    get_database,
    init_database,
)

__all__ = [
    "DatabaseError",
    "DatabaseManager",
    "close_database",
    "get_database",
    "init_database",
]
