"""
Story generation: prompt building, the Ollama client, response
normalization and the fallback lesson.
"""

from .client import OllamaClient
from .fallback import fallback_lesson
from .normalizer import (
    normalize_response,
    normalize_with_status,
    extract_payload,
    coerce_lesson,
    strip_wrapping,
    find_balanced_candidates,
    repair_json,
)
from .pipeline import GenerationResult, generate_lesson
from .prompts import build_story_prompt

__all__ = [
    "OllamaClient",
    "fallback_lesson",
    "normalize_response",
    "normalize_with_status",
    "extract_payload",
    "coerce_lesson",
    "strip_wrapping",
    "find_balanced_candidates",
    "repair_json",
    "GenerationResult",
    "generate_lesson",
    "build_story_prompt",
]
