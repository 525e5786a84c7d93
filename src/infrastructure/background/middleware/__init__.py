# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Dramatiq middleware for background processing."""

from src.infrastructure.background.middleware.log_context import LogContextMiddleware

__all__ = ["LogContextMiddleware"]
