# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Defensive parser for memory extraction responses.

Model output is treated as untrusted. Anything that is not a JSON object
yields a ParseFailure, which the pipeline handles as "nothing extracted".
Inside a valid object, malformed fields and entries are skipped one by one
instead of discarding the whole response.

Expected shape:
    {
      "topics_discussed": ["..."],
      "concepts_explained": ["..."],
      "struggles_identified": ["..."],
      "strengths_demonstrated": ["..."],
      "questions_asked": ["..."],
      "current_focus": "..." or null,
      "preferred_examples": "..." or null,
      "importance_notes": {"<item text>": 1-5}
    }
"""

import json
import math
import logging
from dataclasses import dataclass, field
from typing import Any

from src.models.memory import (
    DEFAULT_IMPORTANCE,
    MAX_CONTENT_LENGTH,
    MemoryCategory,
    clamp_importance,
)

logger = logging.getLogger(__name__)

# Response field -> category, in the order memories are applied
LIST_FIELDS: tuple[tuple[str, MemoryCategory], ...] = (
    ("topics_discussed", MemoryCategory.TOPIC_DISCUSSED),
    ("concepts_explained", MemoryCategory.CONCEPT_EXPLAINED),
    ("struggles_identified", MemoryCategory.STRUGGLE_IDENTIFIED),
    ("strengths_demonstrated", MemoryCategory.STRENGTH_DEMONSTRATED),
    ("questions_asked", MemoryCategory.QUESTION_ASKED),
)

SINGLE_FIELDS: tuple[tuple[str, MemoryCategory], ...] = (
    ("current_focus", MemoryCategory.CURRENT_FOCUS),
    ("preferred_examples", MemoryCategory.PREFERRED_EXAMPLES),
)

IMPORTANCE_NOTES_FIELD = "importance_notes"

# Current focus is always kept near the top of the ranking
CURRENT_FOCUS_MIN_IMPORTANCE = 4


@dataclass(frozen=True)
class ExtractedMemory:
    """A fact proposed by the model, before any write policy is applied."""

    category: MemoryCategory
    content: str
    importance: int = DEFAULT_IMPORTANCE


@dataclass(frozen=True)
class ParsedMemories:
    """Successfully parsed extraction response."""

    memories: list[ExtractedMemory] = field(default_factory=list)


@dataclass(frozen=True)
class ParseFailure:
    """Extraction response that could not be read as a JSON object.

    Attributes:
        reason: Why parsing failed.
        raw_text: The response text as received.
    """

    reason: str
    raw_text: str = field(repr=False)

    @property
    def memories(self) -> list[ExtractedMemory]:
        """A failed parse contributes no memories."""
        return []


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any.

    The opening line (```` ``` ```` or ```` ```json ````) is always dropped
    when the text starts with a fence; the last line is dropped only when
    it is a closing fence.
    """
    text = text.strip()
    if not text.startswith("```"):
        return text

    lines = text.split("\n")[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines)


def lookup_importance(notes: dict[str, Any], key: str) -> int:
    """Get the importance hint for an item.

    Args:
        notes: The importance_notes map from the response.
        key: Item text, matched exactly.

    Returns:
        The hint clamped to [1, 5], or the default when the key is missing,
        its value is not a number, or the number is not finite.
    """
    value = notes.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_IMPORTANCE
    if isinstance(value, float) and not math.isfinite(value):
        return DEFAULT_IMPORTANCE
    return clamp_importance(int(value))


def _normalize(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if len(text) > MAX_CONTENT_LENGTH:
        logger.debug("Truncating extracted memory of length %d", len(text))
        text = text[:MAX_CONTENT_LENGTH].rstrip()
    return text


def parse_extraction_response(raw_text: str | None) -> ParsedMemories | ParseFailure:
    """Parse a model response into extracted memories.

    Args:
        raw_text: Text returned by the language model.

    Returns:
        ParsedMemories with the facts in application order, or a
        ParseFailure when the text is not a JSON object.
    """
    if not raw_text or not raw_text.strip():
        return ParseFailure(reason="empty response", raw_text=raw_text or "")

    try:
        root = json.loads(strip_code_fences(raw_text))
    except json.JSONDecodeError as e:
        return ParseFailure(reason=f"invalid JSON: {e.msg}", raw_text=raw_text)
    except RecursionError:
        return ParseFailure(reason="JSON nested too deeply", raw_text=raw_text)

    if not isinstance(root, dict):
        return ParseFailure(
            reason=f"expected a JSON object, got {type(root).__name__}",
            raw_text=raw_text,
        )

    notes = root.get(IMPORTANCE_NOTES_FIELD)
    if not isinstance(notes, dict):
        notes = {}

    memories: list[ExtractedMemory] = []

    for field_name, category in LIST_FIELDS:
        entries = root.get(field_name)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            content = _normalize(entry)
            if content is None:
                continue
            importance = lookup_importance(notes, entry)
            if importance == DEFAULT_IMPORTANCE and entry != content:
                importance = lookup_importance(notes, content)
            memories.append(ExtractedMemory(category, content, importance))

    for field_name, category in SINGLE_FIELDS:
        value = root.get(field_name)
        content = _normalize(value)
        if content is None:
            continue
        importance = lookup_importance(notes, value)
        if category is MemoryCategory.CURRENT_FOCUS:
            importance = max(importance, CURRENT_FOCUS_MIN_IMPORTANCE)
        memories.append(ExtractedMemory(category, content, importance))

    return ParsedMemories(memories=memories)
