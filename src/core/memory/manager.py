# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory manager wiring the learner memory components together.

The manager is the single entry point used by the conversation flow and
by background workers:
- get_context_for_message(): profile and memory prompt sections for a reply
- extract_memories(): fold new conversation messages into memories
- profile reads and updates

Retrieval problems never block a reply. If memories or the profile cannot
be loaded, the corresponding section is left empty and the failure is
logged.

Example:
    from src.core.memory import MemoryManager

    manager = MemoryManager.from_settings(db, get_settings())

    context = await manager.get_context_for_message(
        learner_id=learner_id,
        message="Can you review my repository layer?",
    )
    system_prompt = context.build_system_prompt(BASE_COACH_PROMPT)
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from src.core.intelligence.embeddings import EmbeddingService
from src.core.intelligence.llm import LLMClient
from src.core.memory.context import build_personalized_prompt, format_learner_profile
from src.core.memory.extraction import ExtractionResult, MemoryExtractionPipeline
from src.core.memory.profiles import LearnerProfileStore
from src.core.memory.rag import (
    MemoryRetrievalError,
    MemoryRetriever,
    RetrievalConfig,
    ScoredMemory,
)
from src.core.memory.store import MemoryStore
from src.infrastructure.database import DatabaseError, DatabaseManager
from src.models.memory import (
    LearnerProfileResponse,
    MemoryCategory,
    MemoryResponse,
)

if TYPE_CHECKING:
    from src.core.config.settings import Settings

logger = logging.getLogger(__name__)


@dataclass
class ConversationContext:
    """Learner context injected into a conversation prompt.

    Attributes:
        learner_id: Learner the context belongs to.
        memories: Ranked memories, best first.
        memory_section: Rendered memory section, "" when empty.
        profile: The learner's profile, if it could be loaded.
        profile_section: Rendered profile section, "" when empty.
    """

    learner_id: uuid.UUID
    memories: list[ScoredMemory] = field(default_factory=list)
    memory_section: str = ""
    profile: LearnerProfileResponse | None = None
    profile_section: str = ""

    def build_system_prompt(self, base_prompt: str) -> str:
        """Append the non-empty sections to a base system prompt."""
        return build_personalized_prompt(base_prompt, self.profile, self.memory_section)


class MemoryManager:
    """Coordinates the memory store, retrieval, extraction and profiles.

    Attributes:
        store: Memory store.
        profiles: Learner profile store.
        retriever: Conversation-time memory retriever.
        extraction: Memory extraction pipeline.
    """

    def __init__(
        self,
        db: DatabaseManager,
        embedding_service: EmbeddingService,
        llm_client: LLMClient,
        retrieval_config: RetrievalConfig | None = None,
        extraction_temperature: float = 0.2,
        extraction_max_tokens: int = 1024,
    ) -> None:
        """Initialize the memory manager.

        Args:
            db: Database manager.
            embedding_service: Embedding client.
            llm_client: Chat completion client used for extraction.
            retrieval_config: Retrieval limits and thresholds.
            extraction_temperature: Sampling temperature of extraction calls.
            extraction_max_tokens: Token limit of extraction calls.
        """
        self.store = MemoryStore(db)
        self.profiles = LearnerProfileStore(db)
        self.retriever = MemoryRetriever(
            store=self.store,
            embedding_service=embedding_service,
            config=retrieval_config,
        )
        self.extraction = MemoryExtractionPipeline(
            db=db,
            store=self.store,
            llm_client=llm_client,
            embedding_service=embedding_service,
            temperature=extraction_temperature,
            max_tokens=extraction_max_tokens,
        )

    @classmethod
    def from_settings(cls, db: DatabaseManager, settings: "Settings") -> "MemoryManager":
        """Build a manager and its collaborators from application settings.

        Args:
            db: Database manager.
            settings: Application settings.

        Returns:
            A configured MemoryManager.
        """
        return cls(
            db=db,
            embedding_service=EmbeddingService.from_settings(settings.embedding),
            llm_client=LLMClient.from_settings(settings.llm),
            retrieval_config=RetrievalConfig.from_settings(settings.memory),
            extraction_temperature=settings.llm.temperature,
            extraction_max_tokens=settings.llm.max_tokens,
        )

    async def get_context_for_message(
        self,
        learner_id: uuid.UUID,
        message: str,
    ) -> ConversationContext:
        """Get the profile and memory sections for a conversation turn.

        Args:
            learner_id: Learner being coached.
            message: The learner's current message.

        Returns:
            ConversationContext. Sections that failed to load are empty.
        """
        context = ConversationContext(learner_id=learner_id)

        try:
            retrieved = await self.retriever.retrieve(learner_id, message)
            context.memories = retrieved.memories
            context.memory_section = retrieved.formatted_context
        except MemoryRetrievalError as e:
            logger.warning(
                "Continuing without memory context for learner %s: %s",
                learner_id,
                str(e),
            )

        try:
            context.profile = await self.profiles.get_or_create(learner_id)
            context.profile_section = format_learner_profile(context.profile)
        except DatabaseError as e:
            logger.warning(
                "Continuing without profile context for learner %s: %s",
                learner_id,
                str(e),
            )

        return context

    async def extract_memories(self, learner_id: uuid.UUID) -> ExtractionResult:
        """Fold unprocessed conversation messages into memories.

        Args:
            learner_id: Learner to process.

        Returns:
            Counters for the run.

        Raises:
            MemoryExtractionError: If a collaborator fails.
        """
        return await self.extraction.extract_for_learner(learner_id)

    async def get_active_memories(
        self,
        learner_id: uuid.UUID,
        category: MemoryCategory | str | None = None,
    ) -> list[MemoryResponse]:
        """Get a learner's active memories, optionally for one category."""
        return await self.store.get_active(learner_id, category=category)

    async def get_learner_profile(self, learner_id: uuid.UUID) -> LearnerProfileResponse:
        """Get a learner's profile, creating an empty one if needed."""
        return await self.profiles.get_or_create(learner_id)

    async def update_learner_profile(
        self,
        learner_id: uuid.UUID,
        **fields: Any,
    ) -> LearnerProfileResponse:
        """Update user-editable fields of a learner's profile.

        Raises:
            LearnerProfileError: If a field is unknown or invalid.
        """
        return await self.profiles.update(learner_id, **fields)
