# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Learner memory system.

This package extracts durable facts about learners from coaching
conversations and feeds the most relevant ones back into later prompts:
- store: memory persistence, supersession and extraction cursors
- extraction: language model extraction and category write policies
- rag: recency, importance and semantic retrieval with rank fusion
- context: prompt sections for memories and learner profiles
- profiles: learner profile persistence

Example:
    from src.core.memory import MemoryManager

    manager = MemoryManager.from_settings(db, settings)

    context = await manager.get_context_for_message(learner_id, message)
    result = await manager.extract_memories(learner_id)
"""

from src.core.memory.context import (
    build_personalized_prompt,
    format_learner_profile,
    format_memory_context,
)
from src.core.memory.extraction import (
    ExtractionResult,
    MemoryExtractionError,
    MemoryExtractionPipeline,
    parse_extraction_response,
)
from src.core.memory.manager import ConversationContext, MemoryManager
from src.core.memory.profiles import LearnerProfileError, LearnerProfileStore
from src.core.memory.rag import (
    MemoryRetrievalError,
    MemoryRetriever,
    RetrievalConfig,
    RetrievedMemories,
    ScoredMemory,
    fuse_rankings,
)
from src.core.memory.store import MemoryIntegrityError, MemoryStore, MemoryStoreError

__all__ = [
    # Manager
    "ConversationContext",
    "MemoryManager",
    # Store
    "MemoryIntegrityError",
    "MemoryStore",
    "MemoryStoreError",
    # Profiles
    "LearnerProfileError",
    "LearnerProfileStore",
    # Extraction
    "ExtractionResult",
    "MemoryExtractionError",
    "MemoryExtractionPipeline",
    "parse_extraction_response",
    # Retrieval
    "MemoryRetrievalError",
    "MemoryRetriever",
    "RetrievalConfig",
    "RetrievedMemories",
    "ScoredMemory",
    "fuse_rankings",
    # Formatting
    "build_personalized_prompt",
    "format_learner_profile",
    "format_memory_context",
]
