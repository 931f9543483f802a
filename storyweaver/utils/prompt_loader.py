"""
Prompt loader utility for Storyweaver.

Loads YAML prompt templates from the packaged prompts/ directory and checks
they carry the keys the generator reads.
"""

from pathlib import Path
from typing import Any
import yaml

from storyweaver.errors import PromptError


# Default prompts directory (shipped inside the package)
PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

REQUIRED_KEYS = ("system", "user_template")


def load_prompt(name: str, prompts_dir: Path | None = None) -> dict[str, Any]:
    """
    Load a prompt template by name.

    Args:
        name: Prompt name without .yaml extension (e.g., "generate_story")
        prompts_dir: Optional custom prompts directory

    Returns:
        Dict containing the parsed YAML prompt template with keys:
        - meta: version
        - system: system prompt string
        - user_template: user prompt template with {placeholders}

    Raises:
        PromptError: If the file is missing, is not valid YAML, or lacks
            `system`/`user_template` strings
    """
    dir_path = prompts_dir or PROMPTS_DIR
    file_path = dir_path / f"{name}.yaml"

    if not file_path.exists():
        raise PromptError(f"Prompt template not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise PromptError(f"Cannot read prompt template {file_path}: {e}") from e

    if not isinstance(config, dict):
        raise PromptError(f"Prompt template {file_path} is not a mapping")
    missing = [k for k in REQUIRED_KEYS if not isinstance(config.get(k), str)]
    if missing:
        raise PromptError(f"Prompt template {file_path} lacks: {', '.join(missing)}")
    return config


def format_prompt(template: str, **kwargs) -> str:
    """
    Format a prompt template with provided values.

    Args:
        template: Template string with {placeholders}
        **kwargs: Values to substitute

    Returns:
        Formatted prompt string

    Raises:
        PromptError: If the template names a placeholder not in kwargs
    """
    try:
        return template.format(**kwargs)
    except (KeyError, IndexError) as e:
        raise PromptError(f"Prompt template uses unknown placeholder {e}") from e
