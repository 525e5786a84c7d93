# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for per-thread worker resources."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from src.infrastructure.background.tasks import base


def _in_thread(fn):
    """Run fn on a fresh thread and return its result."""
    results = []
    thread = threading.Thread(target=lambda: results.append(fn()))
    thread.start()
    thread.join()
    return results[0]


@pytest.mark.unit
class TestRunAsync:
    """Test cases for run_async."""

    def test_runs_coroutine(self) -> None:
        async def _value() -> int:
            return 42

        assert _in_thread(lambda: base.run_async(_value())) == 42

    def test_reuses_thread_loop(self) -> None:
        def _two_loops():
            first = base._get_thread_event_loop()
            second = base._get_thread_event_loop()
            first.close()
            third = base._get_thread_event_loop()
            third.close()
            return first, second, third

        first, second, third = _in_thread(_two_loops)

        assert first is second
        assert third is not first


@pytest.mark.unit
class TestWorkerMemoryManager:
    """Test cases for the per-thread memory manager."""

    def test_cached_per_thread_and_reset_with_new_loop(self) -> None:
        with (
            patch("src.infrastructure.database.DatabaseManager.from_settings") as mock_db,
            patch("src.core.memory.MemoryManager.from_settings") as mock_manager,
        ):
            mock_db.return_value = MagicMock()
            mock_manager.side_effect = lambda db, settings: MagicMock()

            def _scenario():
                loop = base._get_thread_event_loop()
                first = base.get_worker_memory_manager()
                again = base.get_worker_memory_manager()
                loop.close()
                base._get_thread_event_loop().close()
                after_new_loop = base.get_worker_memory_manager()
                return first, again, after_new_loop

            first, again, after_new_loop = _in_thread(_scenario)

        assert first is again
        assert after_new_loop is not first
        assert mock_manager.call_count == 2
