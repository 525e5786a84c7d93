# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for periodic Dramatiq tasks.

Uses APScheduler to enqueue Dramatiq actors on a fixed interval. The only
default job is the memory extraction sweep, which enqueues one extraction
per recently active learner.

Example:
    from src.infrastructure.background.scheduler import start_scheduler

    scheduler = await start_scheduler()
    ...
    await stop_scheduler()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

MEMORY_SWEEP_ACTOR = "extract_memories_for_active_learners"


@dataclass
class ScheduledTask:
    """Configuration for a scheduled Dramatiq task.

    Attributes:
        id: Unique task identifier.
        name: Human-readable task name.
        actor_name: Name of the Dramatiq actor to call.
        interval_minutes: Minutes between runs.
        args: Positional arguments for the actor.
        kwargs: Keyword arguments for the actor.
        last_run: Last run timestamp.
        run_count: Total number of runs.
        error_count: Number of failed runs.
    """

    name: str
    actor_name: str
    interval_minutes: int
    args: tuple = field(default_factory=tuple)
    kwargs: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    last_run: datetime | None = None
    run_count: int = 0
    error_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "actor_name": self.actor_name,
            "interval_minutes": self.interval_minutes,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


class DramatiqScheduler:
    """Sends Dramatiq actors on a fixed interval.

    Attributes:
        _scheduler: APScheduler instance, present while running.
        _tasks: Registered tasks by id.
    """

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._tasks: dict[str, ScheduledTask] = {}

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._scheduler is not None

    def _get_actor(self, actor_name: str) -> Callable[..., Any] | None:
        from src.infrastructure.background import tasks

        return getattr(tasks, actor_name, None)

    def add_interval_task(
        self,
        name: str,
        actor_name: str,
        minutes: int,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
    ) -> ScheduledTask:
        """Add an interval-scheduled task.

        Args:
            name: Task name.
            actor_name: Dramatiq actor to call.
            minutes: Interval in minutes.
            args: Actor arguments.
            kwargs: Actor keyword arguments.

        Returns:
            Created ScheduledTask.

        Raises:
            ValueError: If the interval is not positive.
        """
        if minutes <= 0:
            raise ValueError(f"Interval must be positive, got {minutes}")

        task = ScheduledTask(
            name=name,
            actor_name=actor_name,
            interval_minutes=minutes,
            args=args,
            kwargs=kwargs or {},
        )
        self._tasks[task.id] = task

        if self._scheduler is not None:
            self._schedule(task)

        logger.info("Added interval task: %s (every %dm)", name, minutes)
        return task

    def _schedule(self, task: ScheduledTask) -> None:
        self._scheduler.add_job(
            self._execute_task,
            trigger=IntervalTrigger(minutes=task.interval_minutes),
            args=[task.id],
            id=task.id,
            name=task.name,
        )

    async def _execute_task(self, task_id: str) -> None:
        """Send a scheduled task's actor to its queue.

        Args:
            task_id: ID of the task to execute.
        """
        task = self._tasks.get(task_id)
        if task is None:
            return

        actor = self._get_actor(task.actor_name)
        if actor is None:
            task.error_count += 1
            logger.error("Scheduled task %s has unknown actor %s", task.name, task.actor_name)
            return

        try:
            actor.send(*task.args, **task.kwargs)
        except Exception as e:
            # Broker errors must not stop the scheduler; the next tick retries
            task.error_count += 1
            logger.error("Scheduled task %s failed: %s", task.name, str(e))
            return

        task.last_run = utc_now()
        task.run_count += 1
        logger.debug("Scheduled task %s sent to queue", task.name)

    def remove_task(self, task_id: str) -> bool:
        """Remove a scheduled task.

        Args:
            task_id: Task ID to remove.

        Returns:
            True if removed.
        """
        if task_id not in self._tasks:
            return False

        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(task_id)
            except JobLookupError:
                logger.debug("Job %s was not scheduled", task_id)

        del self._tasks[task_id]
        logger.info("Removed scheduled task: %s", task_id)
        return True

    def list_tasks(self) -> list[ScheduledTask]:
        """List all scheduled tasks."""
        return list(self._tasks.values())

    async def start(self) -> None:
        """Start the scheduler and schedule registered tasks."""
        if self._scheduler is not None:
            return

        self._scheduler = AsyncIOScheduler()
        for task in self._tasks.values():
            self._schedule(task)
        self._scheduler.start()

        logger.info("Dramatiq scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Dramatiq scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "is_running": self.is_running,
            "task_count": len(self._tasks),
            "total_runs": sum(t.run_count for t in self._tasks.values()),
            "total_errors": sum(t.error_count for t in self._tasks.values()),
            "tasks": [t.to_dict() for t in self._tasks.values()],
        }


# Singleton instance
_scheduler: DramatiqScheduler | None = None


def get_scheduler() -> DramatiqScheduler:
    """Get the singleton scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = DramatiqScheduler()
    return _scheduler


async def start_scheduler() -> DramatiqScheduler:
    """Start the scheduler and register the memory extraction sweep.

    Returns:
        Started scheduler instance.
    """
    from src.core.config import get_settings

    settings = get_settings()
    scheduler = get_scheduler()

    if not any(t.actor_name == MEMORY_SWEEP_ACTOR for t in scheduler.list_tasks()):
        scheduler.add_interval_task(
            name="Memory Extraction Sweep",
            actor_name=MEMORY_SWEEP_ACTOR,
            minutes=settings.memory.extraction_interval_minutes,
        )

    await scheduler.start()
    logger.info("Registered %d scheduled tasks", len(scheduler.list_tasks()))
    return scheduler


async def stop_scheduler() -> None:
    """Stop the scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None
