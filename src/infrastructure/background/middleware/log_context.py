# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Log context middleware for Dramatiq workers.

Binds the actor name and message id to the structlog context for the
duration of each message, so every log line written while processing a
task can be traced back to it.
"""

import logging
from typing import Any

import dramatiq
from dramatiq import Message, Middleware

from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)


class LogContextMiddleware(Middleware):
    """Binds message metadata to the logging context while a task runs."""

    def before_process_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
    ) -> None:
        """Bind actor and message id before processing.

        Args:
            broker: The broker instance.
            message: The message being processed.
        """
        bind_context(
            actor=message.actor_name,
            message_id=message.message_id,
            retries=message.options.get("retries", 0),
        )

    def after_process_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
        *,
        result: Any = None,
        exception: BaseException | None = None,
    ) -> None:
        """Clear the logging context after processing.

        Args:
            broker: The broker instance.
            message: The processed message.
            result: The result of processing.
            exception: Any exception that occurred.
        """
        if exception is not None:
            logger.warning(
                "Task %s failed (message: %s): %s",
                message.actor_name,
                message.message_id,
                exception,
            )
        clear_context()

    def after_skip_message(
        self,
        broker: dramatiq.Broker,
        message: Message,
    ) -> None:
        """Clear the logging context after a skipped message."""
        clear_context()
