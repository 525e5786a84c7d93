# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory extraction pipeline.

Turns unprocessed conversation messages into learner memories:

1. Find the learner's sessions whose cursor is behind their last message.
2. For each session, oldest first, read the messages after the cursor and
   render them as a transcript.
3. Ask the language model for a JSON summary of durable facts.
4. Parse the answer defensively. Unreadable output counts as zero facts.
5. Apply the category write policy to every fact:
   - single cardinality: create the new memory and supersede the prior one
   - multi cardinality: reinforce an exact-content match or create
6. Advance the session cursor in the same transaction as the writes.

Language model, embedding and database failures abort the run for the
learner. Sessions finished before the failure stay committed; the failing
session keeps its cursor and is retried on the next run.

Example:
    pipeline = MemoryExtractionPipeline(
        db=db,
        store=MemoryStore(db),
        llm_client=llm_client,
        embedding_service=embedding_service,
    )
    result = await pipeline.extract_for_learner(learner_id)
    print(result.memories_created)
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.intelligence.embeddings import EmbeddingError, EmbeddingService
from src.core.intelligence.llm import LLMClient, LLMError, Message
from src.core.memory.extraction.parser import (
    ExtractedMemory,
    ParseFailure,
    parse_extraction_response,
)
from src.core.memory.store import MemoryStore, MemoryStoreError
from src.infrastructure.database import DatabaseError, DatabaseManager
from src.models.memory import (
    ConversationMessageResponse,
    ConversationSessionResponse,
    MemoryResponse,
    MessageRole,
)

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = (
    "You are a memory extraction assistant. Extract key memories from "
    "conversations and return them as JSON. Be concise and specific."
)

EXTRACTION_PROMPT_TEMPLATE = """Analyze this conversation between a learner and an AI coach.
Extract key memories about the learner that would be useful for future conversations.

Conversation:
{transcript}

Return a JSON object with these fields (all arrays can be empty):
{{
  "topics_discussed": ["topic1", "topic2"],
  "concepts_explained": ["concept1", "concept2"],
  "struggles_identified": ["struggle1"],
  "strengths_demonstrated": ["strength1"],
  "questions_asked": ["question1"],
  "current_focus": "what they're working on" or null,
  "preferred_examples": "kind of examples that worked for them" or null,
  "importance_notes": {{
    "topic1": 4,
    "struggle1": 5
  }}
}}

Guidelines:
- Be specific and concise (each item should be 1-2 sentences max)
- Only include things actually discussed, don't infer
- Rate importance 1-5 (5 = critical to remember) using the exact item text as key
- current_focus should capture their main project or learning goal if mentioned
- Return ONLY valid JSON, no markdown code blocks"""

SPEAKER_LABELS: dict[MessageRole, str] = {
    MessageRole.USER: "Learner",
    MessageRole.ASSISTANT: "Coach",
}


class MemoryExtractionError(Exception):
    """Exception raised when extraction for a learner fails.

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
class ExtractionResult:
    """Counters reported by one extraction run.

    Attributes:
        sessions_processed: Sessions whose cursor was advanced.
        memories_created: New memories written.
        memories_reinforced: Existing memories reinforced.
        memories_superseded: Memories replaced by a newer one.
    """

    sessions_processed: int = 0
    memories_created: int = 0
    memories_reinforced: int = 0
    memories_superseded: int = 0

    def merge(self, other: "ExtractionResult") -> None:
        """Add another result's counters to this one."""
        self.sessions_processed += other.sessions_processed
        self.memories_created += other.memories_created
        self.memories_reinforced += other.memories_reinforced
        self.memories_superseded += other.memories_superseded


def render_transcript(messages: list[ConversationMessageResponse]) -> str:
    """Render messages as a speaker-labelled transcript.

    System messages are left out. Messages keep their chronological order.

    Args:
        messages: Messages ordered by id.

    Returns:
        One "<Label>: <content>" paragraph per message.
    """
    paragraphs = [
        f"{SPEAKER_LABELS[message.role]}: {message.content}"
        for message in messages
        if message.role in SPEAKER_LABELS
    ]
    return "\n\n".join(paragraphs)


def build_extraction_prompt(transcript: str) -> str:
    """Build the user prompt for the extraction call."""
    return EXTRACTION_PROMPT_TEMPLATE.format(transcript=transcript)


class MemoryExtractionPipeline:
    """Extracts and stores learner memories from conversation sessions.

    Attributes:
        db: Database manager used for per-session transactions.
        store: Memory store.
        llm_client: Chat completion client.
        embedding_service: Embedding client for new memories.
    """

    def __init__(
        self,
        db: DatabaseManager,
        store: MemoryStore,
        llm_client: LLMClient,
        embedding_service: EmbeddingService,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> None:
        """Initialize the pipeline.

        Args:
            db: Database manager used for per-session transactions.
            store: Memory store.
            llm_client: Chat completion client.
            embedding_service: Embedding client for new memories.
            temperature: Sampling temperature of the extraction call.
            max_tokens: Token limit of the extraction call.
        """
        self._db = db
        self._store = store
        self._llm = llm_client
        self._embedding = embedding_service
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def extract_for_learner(self, learner_id: uuid.UUID) -> ExtractionResult:
        """Process every session of a learner with unprocessed messages.

        Sessions are handled one at a time, oldest first, each in its own
        transaction.

        Args:
            learner_id: Learner to process.

        Returns:
            Counters for the run.

        Raises:
            MemoryExtractionError: If the language model, the embedding
                service or the database fails. Earlier sessions stay
                committed.
        """
        result = ExtractionResult()

        try:
            sessions = await self._store.get_sessions_needing_extraction(learner_id)
            if not sessions:
                logger.debug("No sessions need memory extraction for learner %s", learner_id)
                return result

            for conversation in sessions:
                session_result = await self._process_session(conversation)
                result.merge(session_result)

        except (LLMError, EmbeddingError, DatabaseError, MemoryStoreError) as e:
            logger.error(
                "Memory extraction failed for learner %s after %d sessions: %s",
                learner_id,
                result.sessions_processed,
                str(e),
            )
            raise MemoryExtractionError(
                f"Memory extraction failed for learner {learner_id}", e
            ) from e

        logger.info(
            "Memory extraction for learner %s: sessions=%d, created=%d, reinforced=%d, superseded=%d",
            learner_id,
            result.sessions_processed,
            result.memories_created,
            result.memories_reinforced,
            result.memories_superseded,
        )
        return result

    async def _process_session(
        self,
        conversation: ConversationSessionResponse,
    ) -> ExtractionResult:
        """Extract memories from one session and advance its cursor."""
        result = ExtractionResult()

        messages = await self._store.get_messages_after(
            conversation.id, conversation.last_processed_message_id
        )
        if not messages:
            return result

        extracted = await self._extract(conversation, messages)

        async with self._db.get_session() as db:
            for memory in extracted:
                await self._apply(conversation, memory, result, db)
            await self._store.advance_cursor(conversation.id, messages[-1].id, session=db)

        result.sessions_processed = 1
        logger.debug(
            "Session %s processed: messages=%d, extracted=%d",
            conversation.id,
            len(messages),
            len(extracted),
        )
        return result

    async def _extract(
        self,
        conversation: ConversationSessionResponse,
        messages: list[ConversationMessageResponse],
    ) -> list[ExtractedMemory]:
        """Ask the language model for facts in the given messages."""
        transcript = render_transcript(messages)
        if not transcript:
            return []

        response = await self._llm.complete_with_messages(
            [
                Message(role="system", content=EXTRACTION_SYSTEM_PROMPT).to_dict(),
                Message(role="user", content=build_extraction_prompt(transcript)).to_dict(),
            ],
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        parsed = parse_extraction_response(response.content)
        if isinstance(parsed, ParseFailure):
            logger.warning(
                "Could not parse extraction response for session %s: %s",
                conversation.id,
                parsed.reason,
            )
        return parsed.memories

    async def _apply(
        self,
        conversation: ConversationSessionResponse,
        memory: ExtractedMemory,
        result: ExtractionResult,
        db: AsyncSession,
    ) -> None:
        """Apply the category write policy to one extracted fact."""
        learner_id = conversation.learner_id

        if memory.category.is_single_cardinality:
            prior = await self._store.find_active_by_category(
                learner_id, memory.category, session=db
            )
            created = await self._create(conversation, memory, db)
            result.memories_created += 1
            if prior is not None:
                await self._store.supersede(prior.id, created.id, session=db)
                result.memories_superseded += 1
            return

        existing = await self._store.find_active_by_content(
            learner_id, memory.category, memory.content, session=db
        )
        if existing is not None:
            await self._store.reinforce(existing.id, memory.importance, session=db)
            result.memories_reinforced += 1
            return

        await self._create(conversation, memory, db)
        result.memories_created += 1

    async def _create(
        self,
        conversation: ConversationSessionResponse,
        memory: ExtractedMemory,
        db: AsyncSession,
    ) -> MemoryResponse:
        """Embed and store a new memory."""
        vector = await self._embedding.embed_text(memory.content)
        return await self._store.create(
            learner_id=conversation.learner_id,
            category=memory.category,
            content=memory.content,
            importance=memory.importance,
            embedding=EmbeddingService.serialize(vector),
            source_conversation_id=conversation.id,
            session=db,
        )
