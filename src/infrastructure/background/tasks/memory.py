# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory extraction background tasks.

- extract_learner_memories: fold a learner's new messages into memories
- extract_memories_for_active_learners: periodic sweep that enqueues
  extraction for every learner with unprocessed conversation messages

Extraction failures are raised so that Dramatiq retries the message. The
cursor of a failed session is not advanced, so a retry only repeats the
unfinished work.
"""

import uuid
from typing import Any

import dramatiq

from src.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from src.infrastructure.background.tasks.base import (
    get_worker_memory_manager,
    run_async,
)
from src.utils.logging import get_logger

# Setup broker before defining actors
setup_dramatiq()

logger = get_logger(__name__)


@dramatiq.actor(
    queue_name=Queues.MEMORY,
    max_retries=3,
    time_limit=300000,  # 5 minutes
    priority=Priority.NORMAL,
    throws=(ValueError,),
)
def extract_learner_memories(learner_id: str) -> dict[str, Any]:
    """Extract memories from a learner's unprocessed conversation messages.

    Args:
        learner_id: Learner UUID as a string.

    Returns:
        Extraction counters.

    Raises:
        ValueError: If learner_id is not a UUID. Not retried.
        MemoryExtractionError: If a collaborator fails. Retried.
    """
    learner_uuid = uuid.UUID(learner_id)

    async def _extract() -> dict[str, Any]:
        from src.utils.logging import bind_context

        bind_context(learner_id=learner_id)

        manager = get_worker_memory_manager()
        result = await manager.extract_memories(learner_uuid)

        return {
            "learner_id": learner_id,
            "sessions_processed": result.sessions_processed,
            "memories_created": result.memories_created,
            "memories_reinforced": result.memories_reinforced,
            "memories_superseded": result.memories_superseded,
        }

    return run_async(_extract())


@dramatiq.actor(
    queue_name=Queues.MEMORY,
    max_retries=1,
    time_limit=120000,  # 2 minutes
    priority=Priority.LOW,
)
def extract_memories_for_active_learners() -> dict[str, Any]:
    """Enqueue extraction for learners with unprocessed conversation messages.

    A session whose earlier extraction failed stays behind its latest
    message, so its learner is picked up again on every sweep until the
    run succeeds.

    Returns:
        Number of learners enqueued.
    """

    async def _sweep() -> list[uuid.UUID]:
        from src.core.config import get_settings
        from src.utils.datetime import hours_ago

        settings = get_settings()
        manager = get_worker_memory_manager()
        max_age = settings.memory.sweep_max_age_hours
        since = hours_ago(max_age) if max_age is not None else None
        return await manager.store.get_learners_needing_extraction(since)

    learner_ids = run_async(_sweep())

    for learner_id in learner_ids:
        extract_learner_memories.send(str(learner_id))

    logger.info("memory_sweep_enqueued", learners=len(learner_ids))
    return {"learners_enqueued": len(learner_ids)}


def get_memory_actors() -> list:
    """Get list of memory-related actors.

    Returns:
        List of memory actors.
    """
    return [
        extract_learner_memories,
        extract_memories_for_active_learners,
    ]
