# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory retrieval and rank fusion.

Example:
    retriever = MemoryRetriever(store=store, embedding_service=embedding_service)
    retrieved = await retriever.retrieve(learner_id, "How do I test this?")
"""

from src.core.memory.rag.fusion import (
    RetrievalConfig,
    RetrievalSource,
    ScoredMemory,
    fuse_rankings,
)
from src.core.memory.rag.retriever import (
    MemoryRetrievalError,
    MemoryRetriever,
    RetrievedMemories,
)

__all__ = [
    "MemoryRetrievalError",
    "MemoryRetriever",
    "RetrievalConfig",
    "RetrievalSource",
    "RetrievedMemories",
    "ScoredMemory",
    "fuse_rankings",
]
