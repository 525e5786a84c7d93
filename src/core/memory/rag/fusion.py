# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Rank fusion of recent, important and semantically similar memories.

Three candidate lists are merged into one ranked list. Each source gets a
score band so that a semantic match always outranks an importance pick,
which in turn outranks most recency picks:

- semantic:   similarity + 1.0          (1.7 .. 2.0 above the floor)
- importance: importance / 5.0          (0.2 .. 1.0)
- recency:    (count - i) / count * 0.5 (0.5 for the newest, decreasing)

Candidates are visited semantic first, then importance, then recency. The
first visit of a memory fixes its score; later visits are ignored. The
merged list is stable-sorted by score, highest first, and truncated.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from src.models.memory import MAX_IMPORTANCE, MemoryResponse

if TYPE_CHECKING:
    from src.core.config.settings import MemorySettings

SEMANTIC_SCORE_OFFSET = 1.0
RECENCY_SCORE_WEIGHT = 0.5


class RetrievalSource(str, Enum):
    """Candidate list a memory was selected from."""

    SEMANTIC = "semantic"
    IMPORTANCE = "importance"
    RECENCY = "recency"


@dataclass(frozen=True)
class RetrievalConfig:
    """Limits and thresholds of memory retrieval.

    Attributes:
        recent_count: Number of newest memories considered.
        importance_threshold: Minimum importance for the importance list.
        importance_limit: Size of the importance list.
        semantic_limit: Size of the semantic list.
        min_similarity: Cosine similarity floor for semantic matches.
        max_total: Cap on the fused list.
    """

    recent_count: int = 5
    importance_threshold: int = 4
    importance_limit: int = 5
    semantic_limit: int = 10
    min_similarity: float = 0.7
    max_total: int = 20

    @classmethod
    def from_settings(cls, settings: "MemorySettings") -> "RetrievalConfig":
        """Build the configuration from memory settings."""
        return cls(
            recent_count=settings.recent_memories_count,
            importance_threshold=settings.high_importance_threshold,
            importance_limit=settings.high_importance_limit,
            semantic_limit=settings.semantic_search_limit,
            min_similarity=settings.min_semantic_similarity,
            max_total=settings.max_total_memories,
        )


@dataclass(frozen=True)
class ScoredMemory:
    """A memory with its fused relevance score.

    Attributes:
        memory: The memory.
        score: Fused score.
        source: Candidate list that produced the score.
        similarity: Cosine similarity, for semantic picks.
    """

    memory: MemoryResponse
    score: float
    source: RetrievalSource
    similarity: float | None = None


def fuse_rankings(
    recent: list[MemoryResponse],
    high_importance: list[MemoryResponse],
    semantic: list[tuple[MemoryResponse, float]],
    config: RetrievalConfig | None = None,
) -> list[ScoredMemory]:
    """Merge the three candidate lists into one ranked list.

    Superseded memories are dropped wherever they appear.

    Args:
        recent: Newest memories, newest first.
        high_importance: Memories at or above the importance threshold.
        semantic: (memory, similarity) pairs above the similarity floor.
        config: Retrieval limits; defaults apply when omitted.

    Returns:
        Deduplicated memories ordered by score, at most config.max_total.
    """
    config = config or RetrievalConfig()
    seen: set[uuid.UUID] = set()
    merged: list[ScoredMemory] = []

    def _add(candidate: ScoredMemory) -> None:
        memory = candidate.memory
        if memory.id in seen or not memory.is_active:
            return
        seen.add(memory.id)
        merged.append(candidate)

    for memory, similarity in sorted(semantic, key=lambda pair: pair[1], reverse=True):
        _add(
            ScoredMemory(
                memory=memory,
                score=similarity + SEMANTIC_SCORE_OFFSET,
                source=RetrievalSource.SEMANTIC,
                similarity=similarity,
            )
        )

    for memory in sorted(high_importance, key=lambda m: m.importance, reverse=True):
        _add(
            ScoredMemory(
                memory=memory,
                score=memory.importance / float(MAX_IMPORTANCE),
                source=RetrievalSource.IMPORTANCE,
            )
        )

    count = len(recent)
    for i, memory in enumerate(recent):
        _add(
            ScoredMemory(
                memory=memory,
                score=(count - i) / count * RECENCY_SCORE_WEIGHT,
                source=RetrievalSource.RECENCY,
            )
        )

    merged.sort(key=lambda scored: scored.score, reverse=True)
    return merged[: config.max_total]
