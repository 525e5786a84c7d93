# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Dramatiq log context middleware."""

import pytest
import structlog
from dramatiq import Message

from src.infrastructure.background.middleware import LogContextMiddleware


@pytest.fixture
def message() -> Message:
    return Message(
        queue_name="memory",
        actor_name="extract_learner_memories",
        args=("550e8400-e29b-41d4-a716-446655440001",),
        kwargs={},
        options={"retries": 2},
    )


@pytest.mark.unit
class TestLogContextMiddleware:
    """Test cases for LogContextMiddleware."""

    def test_binds_and_clears_context(self, message: Message) -> None:
        middleware = LogContextMiddleware()
        broker = object()

        middleware.before_process_message(broker, message)
        bound = structlog.contextvars.get_contextvars()

        assert bound["actor"] == "extract_learner_memories"
        assert bound["message_id"] == message.message_id
        assert bound["retries"] == 2

        middleware.after_process_message(broker, message, exception=RuntimeError("boom"))

        assert structlog.contextvars.get_contextvars() == {}

    def test_skip_clears_context(self, message: Message) -> None:
        middleware = LogContextMiddleware()
        middleware.before_process_message(object(), message)

        middleware.after_skip_message(object(), message)

        assert structlog.contextvars.get_contextvars() == {}
