# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Memory extraction from conversation transcripts."""

from src.core.memory.extraction.parser import (
    ExtractedMemory,
    ParsedMemories,
    ParseFailure,
    parse_extraction_response,
    strip_code_fences,
)
from src.core.memory.extraction.pipeline import (
    EXTRACTION_SYSTEM_PROMPT,
    ExtractionResult,
    MemoryExtractionError,
    MemoryExtractionPipeline,
    build_extraction_prompt,
    render_transcript,
)

__all__ = [
    "EXTRACTION_SYSTEM_PROMPT",
    "ExtractedMemory",
    "ExtractionResult",
    "MemoryExtractionError",
    "MemoryExtractionPipeline",
    "ParsedMemories",
    "ParseFailure",
    "build_extraction_prompt",
    "parse_extraction_response",
    "render_transcript",
    "strip_code_fences",
]
