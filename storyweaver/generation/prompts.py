"""
Prompt builder for story generation.

Turns (language, level, topic) into the single instruction string sent to the
chat endpoint. The field names in the template are the ones the normalizer
reads, so a well-behaved response needs no repair.
"""

from functools import lru_cache
from typing import Any, Optional

from storyweaver.config import LANGUAGES, LEVELS
from storyweaver.utils.prompt_loader import format_prompt, load_prompt

PROMPT_NAME = "generate_story"


@lru_cache(maxsize=1)
def _default_prompt_config() -> dict[str, Any]:
    return load_prompt(PROMPT_NAME)


def get_prompt_config() -> dict[str, Any]:
    """Packaged story prompt (loaded once per process)."""
    return _default_prompt_config()


def build_story_prompt(
    language: str,
    level: str,
    topic: str,
    prompt_config: Optional[dict[str, Any]] = None,
) -> str:
    """
    Build the story-generation prompt.

    Args:
        language: Language key (e.g. "russian"); unknown keys are used verbatim
        level: Level key (e.g. "beginner")
        topic: Free-text topic
        prompt_config: Loaded prompt template (defaults to the packaged one)

    Returns:
        System and user instructions joined into one prompt string
    """
    config = prompt_config or get_prompt_config()

    lang_info = LANGUAGES.get(language)
    level_info = LEVELS.get(level)

    user_prompt = format_prompt(
        config.get("user_template", ""),
        language=language,
        language_name=language.capitalize(),
        language_code=lang_info.code if lang_info else language,
        level=level,
        level_code=level_info.code if level_info else level,
        level_description=level_info.description if level_info else level,
        max_words=level_info.max_words if level_info else 300,
        topic=topic,
    )

    system_prompt = config.get("system", "").strip()
    if not system_prompt:
        return user_prompt.strip()
    return f"{system_prompt}\n\n---\n\n{user_prompt.strip()}"


def prompt_version(prompt_config: Optional[dict[str, Any]] = None) -> str:
    config = prompt_config or get_prompt_config()
    return str(config.get("meta", {}).get("version", "unknown"))
