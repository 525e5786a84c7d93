# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base utilities for Dramatiq tasks.

Thread-Local Event Loop Management:
    Dramatiq workers process tasks on several threads. SQLAlchemy async
    engines and asyncpg connections are bound to the event loop that
    created them and cannot be shared across loops.

    Each worker thread therefore keeps one persistent event loop and one
    MemoryManager (with its own database engine) built on that loop. When
    a thread has to create a new loop, its cached manager is discarded.
"""

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any, Coroutine, TypeVar

if TYPE_CHECKING:
    from src.core.memory import MemoryManager
    from src.infrastructure.database import DatabaseManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

_thread_local = threading.local()


def _clear_thread_resources() -> None:
    """Drop the current thread's cached database and memory manager."""
    _thread_local.db = None
    _thread_local.memory_manager = None


def _get_thread_event_loop() -> asyncio.AbstractEventLoop:
    """Get or create a persistent event loop for the current thread.

    Returns:
        Event loop for current thread.
    """
    loop = getattr(_thread_local, "event_loop", None)

    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        _thread_local.event_loop = loop

        # Engines from a previous loop cannot be reused
        _clear_thread_resources()

        logger.debug(
            "Created new event loop for thread %s",
            threading.current_thread().name,
        )

    return loop


def get_worker_database() -> "DatabaseManager":
    """Get the current thread's database manager, creating it if needed."""
    db = getattr(_thread_local, "db", None)
    if db is None:
        from src.core.config import get_settings
        from src.infrastructure.database import DatabaseManager

        db = DatabaseManager.from_settings(get_settings().database)
        _thread_local.db = db
    return db


def get_worker_memory_manager() -> "MemoryManager":
    """Get the current thread's memory manager, creating it if needed."""
    manager = getattr(_thread_local, "memory_manager", None)
    if manager is None:
        from src.core.config import get_settings
        from src.core.memory import MemoryManager

        manager = MemoryManager.from_settings(get_worker_database(), get_settings())
        _thread_local.memory_manager = manager
    return manager


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a sync Dramatiq worker context.

    Args:
        coro: Coroutine to run.

    Returns:
        Result of coroutine.

    Example:
        @dramatiq.actor
        def my_task(learner_id: str):
            async def _process():
                manager = get_worker_memory_manager()
                return await manager.extract_memories(uuid.UUID(learner_id))
            return run_async(_process())
    """
    loop = _get_thread_event_loop()
    return loop.run_until_complete(coro)
