"""Learner Memory Engine.

Extracts durable facts about learners from coaching conversations and
retrieves the most relevant ones for future prompts.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "0.1.0"
