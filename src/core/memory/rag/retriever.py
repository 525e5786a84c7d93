# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory retriever for conversation-time context.

Collects three candidate lists for a learner and fuses them:
- recency: the newest active memories
- importance: active memories at or above an importance threshold
- semantic: active embedded memories similar to the current message

The lists are fetched concurrently, each in its own read-only session.
Retrieval never writes.

Example:
    retriever = MemoryRetriever(
        store=store,
        embedding_service=embedding_service,
        config=RetrievalConfig.from_settings(settings.memory),
    )

    retrieved = await retriever.retrieve(
        learner_id=learner_id,
        current_message="How should I structure my services?",
    )
    print(retrieved.formatted_context)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from src.core.intelligence.embeddings import EmbeddingError, EmbeddingService
from src.core.memory.context import format_memory_context
from src.core.memory.rag.fusion import RetrievalConfig, ScoredMemory, fuse_rankings
from src.core.memory.store import MemoryStore, MemoryStoreError
from src.infrastructure.database import DatabaseError
from src.models.memory import MemoryResponse

logger = logging.getLogger(__name__)


class MemoryRetrievalError(Exception):
    """Exception raised for memory retrieval operations.

    Attributes:
        message: Error description.
        original_error: Original exception if any.
    """

    def __init__(
        self,
        message: str,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


@dataclass
class RetrievedMemories:
    """Ranked memories plus their prompt-ready rendering.

    Attributes:
        memories: Fused, deduplicated memories, best first.
        formatted_context: Memory prompt section, "" when empty.
    """

    memories: list[ScoredMemory] = field(default_factory=list)
    formatted_context: str = ""

    @property
    def is_empty(self) -> bool:
        """Whether no memory was retrieved."""
        return not self.memories


class MemoryRetriever:
    """Selects and ranks the memories injected into a conversation prompt.

    Attributes:
        store: Memory store.
        embedding_service: Embedding client for the current message.
        config: Retrieval limits and thresholds.
    """

    def __init__(
        self,
        store: MemoryStore,
        embedding_service: EmbeddingService,
        config: RetrievalConfig | None = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            store: Memory store.
            embedding_service: Embedding client for the current message.
            config: Retrieval limits and thresholds. Defaults apply when omitted.
        """
        self._store = store
        self._embedding = embedding_service
        self._config = config or RetrievalConfig()

    @property
    def config(self) -> RetrievalConfig:
        """Retrieval limits and thresholds."""
        return self._config

    async def retrieve(
        self,
        learner_id: uuid.UUID,
        current_message: str,
    ) -> RetrievedMemories:
        """Retrieve the ranked memory context for a message.

        Args:
            learner_id: Learner the conversation belongs to.
            current_message: Message being answered. Only used for
                semantic matching.

        Returns:
            RetrievedMemories with ranked memories and formatted text.

        Raises:
            MemoryRetrievalError: If the store or the embedding service fails.
        """
        try:
            async with asyncio.TaskGroup() as tg:
                recent_task = tg.create_task(
                    self._store.get_recent(learner_id, limit=self._config.recent_count)
                )
                important_task = tg.create_task(
                    self._store.get_by_min_importance(
                        learner_id,
                        min_importance=self._config.importance_threshold,
                        limit=self._config.importance_limit,
                    )
                )
                semantic_task = tg.create_task(
                    self._semantic_candidates(learner_id, current_message)
                )
        except ExceptionGroup as eg:
            expected, unexpected = eg.split((EmbeddingError, DatabaseError, MemoryStoreError))
            if unexpected is not None:
                raise
            error = expected.exceptions[0]
            logger.error(
                "Memory retrieval failed for learner %s: %s",
                learner_id,
                str(error),
            )
            raise MemoryRetrievalError(
                f"Memory retrieval failed for learner {learner_id}", error
            ) from error

        recent = recent_task.result()
        important = important_task.result()
        semantic = semantic_task.result()

        memories = fuse_rankings(recent, important, semantic, self._config)

        logger.debug(
            "Retrieved %d memories for learner %s (recent=%d, important=%d, semantic=%d)",
            len(memories),
            learner_id,
            len(recent),
            len(important),
            len(semantic),
        )

        return RetrievedMemories(
            memories=memories,
            formatted_context=format_memory_context(memories),
        )

    async def _semantic_candidates(
        self,
        learner_id: uuid.UUID,
        current_message: str,
    ) -> list[tuple[MemoryResponse, float]]:
        """Find embedded memories similar to the current message.

        The message is only embedded when the learner has at least one
        embedded memory.

        Returns:
            (memory, similarity) pairs at or above the floor, most
            similar first, at most config.semantic_limit.
        """
        if not current_message or not current_message.strip():
            return []

        embedded = await self._store.get_with_embeddings(learner_id)
        if not embedded:
            return []

        query_vector = await self._embedding.embed_text(current_message)

        scored: list[tuple[MemoryResponse, float]] = []
        for memory in embedded:
            try:
                vector = EmbeddingService.deserialize(memory.embedding)
            except ValueError as e:
                logger.warning("Skipping memory %s with bad embedding: %s", memory.id, str(e))
                continue

            similarity = EmbeddingService.cosine_similarity(query_vector, vector)
            if similarity >= self._config.min_similarity:
                scored.append((memory, similarity))

        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[: self._config.semantic_limit]
