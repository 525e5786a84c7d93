# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prompt sections built from learner memories and profiles.

Two independent sections are produced and both are optional:

    ## What you remember about this learner
    - Current focus: Building a payments API
    - Topics discussed: Dependency injection; Clean architecture
    ...

    ## About this learner
    - Role: Backend developer
    - Experience: 4 years
    ...

An empty memory list or an empty profile renders as "".
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING

from src.models.memory import (
    LearnerProfileResponse,
    LearningStyle,
    MemoryCategory,
    MemoryResponse,
    PreferredPace,
)

if TYPE_CHECKING:
    from src.core.memory.rag.fusion import ScoredMemory

MEMORY_SECTION_HEADER = "## What you remember about this learner"
PROFILE_SECTION_HEADER = "## About this learner"
ITEM_SEPARATOR = "; "

# Category line labels, in output order
CATEGORY_LABELS: tuple[tuple[MemoryCategory, str], ...] = (
    (MemoryCategory.CURRENT_FOCUS, "Current focus"),
    (MemoryCategory.TOPIC_DISCUSSED, "Topics discussed"),
    (MemoryCategory.CONCEPT_EXPLAINED, "Concepts explained"),
    (MemoryCategory.STRENGTH_DEMONSTRATED, "Strengths observed"),
    (MemoryCategory.STRUGGLE_IDENTIFIED, "Struggles to reinforce"),
    (MemoryCategory.QUESTION_ASKED, "Questions asked"),
    (MemoryCategory.PREFERRED_EXAMPLES, "Examples that resonate"),
)

LEARNING_STYLE_TEXT: dict[LearningStyle, str] = {
    LearningStyle.EXAMPLES_FIRST: "Prefers concrete examples before theory",
    LearningStyle.THEORY_FIRST: "Prefers the underlying theory before examples",
    LearningStyle.HANDS_ON: "Learns best by doing hands-on exercises",
}

PREFERRED_PACE_TEXT: dict[PreferredPace, str] = {
    PreferredPace.QUICK_OVERVIEW: "Wants quick overviews",
    PreferredPace.BALANCED: "Wants a balance of breadth and depth",
    PreferredPace.DEEP_DIVE: "Wants deep, detailed explanations",
}


def format_memory_context(memories: Iterable["ScoredMemory | MemoryResponse"]) -> str:
    """Render ranked memories as a prompt section.

    Items keep their ranked order inside each category line. Categories
    without items produce no line.

    Args:
        memories: Ranked memories, scored or plain.

    Returns:
        The section text, or "" when there are no memories.
    """
    grouped: dict[MemoryCategory, list[str]] = {}
    for item in memories:
        memory = item if isinstance(item, MemoryResponse) else item.memory
        grouped.setdefault(memory.category, []).append(memory.content)

    lines = [
        f"- {label}: {ITEM_SEPARATOR.join(grouped[category])}"
        for category, label in CATEGORY_LABELS
        if grouped.get(category)
    ]
    if not lines:
        return ""

    return "\n".join([MEMORY_SECTION_HEADER, *lines])


def format_learner_profile(profile: LearnerProfileResponse | None) -> str:
    """Render a learner profile as a prompt section.

    Args:
        profile: The learner's profile, if any.

    Returns:
        The section text, or "" when the profile holds no data.
    """
    if profile is None:
        return ""

    lines: list[str] = []

    if profile.current_role:
        lines.append(f"- Role: {profile.current_role}")
    if profile.experience_years is not None:
        unit = "year" if profile.experience_years == 1 else "years"
        lines.append(f"- Experience: {profile.experience_years} {unit}")
    if profile.primary_tech_stack:
        lines.append(f"- Tech stack: {profile.primary_tech_stack}")
    if profile.current_project:
        lines.append(f"- Current project: {profile.current_project}")
    if profile.learning_goals:
        lines.append(f"- Learning goals: {profile.learning_goals}")
    if profile.learning_style:
        lines.append(f"- Learning style: {LEARNING_STYLE_TEXT[profile.learning_style]}")
    if profile.preferred_pace:
        lines.append(f"- Pace: {PREFERRED_PACE_TEXT[profile.preferred_pace]}")
    if profile.identified_strengths:
        lines.append(f"- Observed strengths: {profile.identified_strengths}")
    if profile.identified_struggles:
        lines.append(f"- Observed struggles: {profile.identified_struggles}")

    if not lines:
        return ""

    return "\n".join([PROFILE_SECTION_HEADER, *lines])


def build_personalized_prompt(
    base_prompt: str,
    profile: LearnerProfileResponse | None = None,
    memory_context: str = "",
) -> str:
    """Append the profile and memory sections to a system prompt.

    Args:
        base_prompt: The coach's base system prompt.
        profile: The learner's profile, if any.
        memory_context: Output of format_memory_context().

    Returns:
        The base prompt followed by the non-empty sections.
    """
    sections = [base_prompt.rstrip()]
    profile_section = format_learner_profile(profile)
    if profile_section:
        sections.append(profile_section)
    if memory_context:
        sections.append(memory_context)
    return "\n\n".join(section for section in sections if section)
