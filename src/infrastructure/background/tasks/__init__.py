# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors.

Usage:
    from src.infrastructure.background.tasks import extract_learner_memories

    extract_learner_memories.send(str(learner_id))

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4
"""

from src.infrastructure.background.tasks.base import (
    get_worker_database,
    get_worker_memory_manager,
    run_async,
)
from src.infrastructure.background.tasks.memory import (
    extract_learner_memories,
    extract_memories_for_active_learners,
    get_memory_actors,
)

__all__ = [
    # Memory
    "extract_learner_memories",
    "extract_memories_for_active_learners",
    # Utilities
    "get_worker_database",
    "get_worker_memory_manager",
    "run_async",
    "get_all_actors",
]


def get_all_actors() -> list:
    """Get list of all defined actors."""
    return list(get_memory_actors())
