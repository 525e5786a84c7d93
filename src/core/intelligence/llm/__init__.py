# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""LLM client module using LiteLLM.

Example:
    >>> from src.core.intelligence.llm import LLMClient
    >>> client = LLMClient(model="gpt-4o-mini")
    >>> response = await client.complete("Return an empty JSON object")
"""

from src.core.intelligence.llm.client import LLMClient, LLMError, LLMResponse, Message

__all__ = ["LLMClient", "LLMError", "LLMResponse", "Message"]
