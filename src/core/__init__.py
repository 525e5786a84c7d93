# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package of the learner memory engine.

- config: Application configuration and settings
- intelligence: LLM and embedding clients
- memory: Memory extraction, storage, retrieval and prompt formatting
"""
