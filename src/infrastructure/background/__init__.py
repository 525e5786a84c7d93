# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task infrastructure.

Provides background memory extraction with Dramatiq:
- Redis broker (StubBroker in test mode)
- Middleware binding task context into log records
- Extraction actors on the memory queue
- APScheduler sweep enqueuing extraction for active learners

Quick Start:
    from src.infrastructure.background.tasks import extract_learner_memories

    extract_learner_memories.send(str(learner_id))

Running Workers:
    dramatiq src.infrastructure.background.tasks --processes 2 --threads 4

Scheduler:
    from src.infrastructure.background import start_scheduler, stop_scheduler

    await start_scheduler()
    await stop_scheduler()
"""

from src.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker,
    get_broker_manager,
    setup_dramatiq,
    shutdown_dramatiq,
)
from src.infrastructure.background.scheduler import (
    DramatiqScheduler,
    ScheduledTask,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)

# Task actors are imported from the tasks package to avoid circular imports

__all__ = [
    # Broker
    "BrokerManager",
    "Priority",
    "Queues",
    "get_broker",
    "get_broker_manager",
    "setup_dramatiq",
    "shutdown_dramatiq",
    # Scheduler
    "DramatiqScheduler",
    "ScheduledTask",
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
]
