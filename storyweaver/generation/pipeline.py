"""
Lesson generation pipeline: build prompt -> fetch -> normalize.

The flow only moves forward. A fetch failure skips normalization and goes
straight to the fallback lesson.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from storyweaver.errors import FetchError
from storyweaver.generation.client import OllamaClient
from storyweaver.generation.fallback import fallback_lesson
from storyweaver.generation.normalizer import normalize_with_status
from storyweaver.generation.prompts import build_story_prompt, prompt_version
from storyweaver.schemas import LessonContent

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Outcome of one generation request."""
    lesson: LessonContent
    used_fallback: bool = False
    fetch_error: Optional[str] = None  # user-facing line when the fetch failed


def generate_lesson(
    client: OllamaClient,
    language: str,
    level: str,
    topic: str,
    prompt_config: Optional[dict[str, Any]] = None,
) -> GenerationResult:
    """
    Generate one lesson for a language, level and topic.

    Args:
        client: Completion client (anything with a `fetch(prompt) -> str`)
        language: Language key
        level: Level key
        topic: Free-text topic
        prompt_config: Loaded prompt template (defaults to the packaged one)

    Returns:
        GenerationResult; `lesson` is always a complete LessonContent
    """
    prompt = build_story_prompt(language, level, topic, prompt_config)
    logger.info(
        f"Generating story: language={language} level={level} topic={topic!r} "
        f"prompt v{prompt_version(prompt_config)}"
    )

    try:
        raw_text = client.fetch(prompt)
    except FetchError as e:
        logger.error(f"AI fetch failed, using fallback content: {e}")
        return GenerationResult(
            lesson=fallback_lesson(language, topic),
            used_fallback=True,
            fetch_error=e.user_message(),
        )

    lesson, used_fallback = normalize_with_status(raw_text, language, topic)
    logger.info(
        f"Lesson ready: {len(lesson.vocabulary)} vocabulary, "
        f"{len(lesson.exercises)} exercises, fallback={used_fallback}"
    )
    return GenerationResult(lesson=lesson, used_fallback=used_fallback)
