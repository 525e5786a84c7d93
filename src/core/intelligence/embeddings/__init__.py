# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Embedding service module using LiteLLM.

Example:
    >>> from src.core.intelligence.embeddings import EmbeddingService
    >>> service = EmbeddingService(model="ollama/nomic-embed-text", api_base="http://localhost:11434")
    >>> vector = await service.embed_text("Hello world")
"""

from src.core.intelligence.embeddings.service import (
    MODEL_DIMENSIONS,
    EmbeddingError,
    EmbeddingService,
)

__all__ = ["EmbeddingError", "EmbeddingService", "MODEL_DIMENSIONS"]
