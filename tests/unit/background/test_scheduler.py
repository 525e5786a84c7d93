# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the periodic task scheduler."""

from unittest.mock import MagicMock, patch

import pytest

from src.infrastructure.background.scheduler import (
    MEMORY_SWEEP_ACTOR,
    DramatiqScheduler,
    start_scheduler,
    stop_scheduler,
)


@pytest.mark.unit
class TestDramatiqScheduler:
    """Test cases for DramatiqScheduler."""

    def test_add_interval_task_rejects_non_positive(self) -> None:
        scheduler = DramatiqScheduler()

        with pytest.raises(ValueError):
            scheduler.add_interval_task("Sweep", MEMORY_SWEEP_ACTOR, minutes=0)

    @pytest.mark.asyncio
    async def test_execute_task_sends_actor(self) -> None:
        scheduler = DramatiqScheduler()
        task = scheduler.add_interval_task("Sweep", MEMORY_SWEEP_ACTOR, minutes=5)
        actor = MagicMock()

        with patch.object(scheduler, "_get_actor", return_value=actor):
            await scheduler._execute_task(task.id)

        actor.send.assert_called_once_with()
        assert task.run_count == 1
        assert task.last_run is not None

    @pytest.mark.asyncio
    async def test_execute_task_counts_errors(self) -> None:
        scheduler = DramatiqScheduler()
        task = scheduler.add_interval_task("Sweep", MEMORY_SWEEP_ACTOR, minutes=5)
        actor = MagicMock()
        actor.send.side_effect = ConnectionError("redis down")

        with patch.object(scheduler, "_get_actor", return_value=actor):
            await scheduler._execute_task(task.id)

        assert task.error_count == 1
        assert task.run_count == 0

    @pytest.mark.asyncio
    async def test_unknown_actor_counts_error(self) -> None:
        scheduler = DramatiqScheduler()
        task = scheduler.add_interval_task("Missing", "no_such_actor", minutes=5)

        await scheduler._execute_task(task.id)

        assert task.error_count == 1

    @pytest.mark.asyncio
    async def test_start_stop_and_remove(self) -> None:
        scheduler = DramatiqScheduler()
        task = scheduler.add_interval_task("Sweep", MEMORY_SWEEP_ACTOR, minutes=5)

        await scheduler.start()
        try:
            assert scheduler.is_running
            assert scheduler.remove_task(task.id) is True
            assert scheduler.remove_task(task.id) is False
        finally:
            await scheduler.stop()

        assert not scheduler.is_running
        assert scheduler.get_stats()["task_count"] == 0


@pytest.mark.unit
class TestStartScheduler:
    """Test cases for the module-level scheduler lifecycle."""

    @pytest.mark.asyncio
    async def test_registers_memory_sweep_once(self) -> None:
        try:
            scheduler = await start_scheduler()
            await start_scheduler()

            tasks = scheduler.list_tasks()
            assert [t.actor_name for t in tasks] == [MEMORY_SWEEP_ACTOR]
            assert tasks[0].interval_minutes == 30
        finally:
            await stop_scheduler()
