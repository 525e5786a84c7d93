# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Model-backed collaborators of the memory engine.

- embeddings: text embedding generation and vector similarity
- llm: chat completions used by memory extraction
"""

from src.core.intelligence.embeddings import EmbeddingError, EmbeddingService
from src.core.intelligence.llm import LLMClient, LLMError, LLMResponse, Message

__all__ = [
    "EmbeddingError",
    "EmbeddingService",
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "Message",
]
