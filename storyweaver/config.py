"""
Configuration for Storyweaver.

Provides:
- Environment settings (.env aware): data directory, endpoint, model
- Static tables: languages, levels, topics
- AppConfig and ConfigManager for the persisted user settings
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from storyweaver.errors import ConfigError

load_dotenv()

logger = logging.getLogger(__name__)

APP_NAME = "Polyglot AI Storyteller"
VERSION = "3.0.0"

DEFAULT_APP_DIR = Path.home() / ".local" / "share" / "polyglot-stories"
DEFAULT_ENDPOINT = "http://localhost:11434/api/chat"
DEFAULT_MODEL = "gpt-oss:120b-cloud"
DEFAULT_TIMEOUT = 90.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_SLEEP = 1.0


# -----------------------------------------------------------------------------
# Static tables
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class LanguageInfo:
    display: str
    code: str
    tts_locale: str


@dataclass(frozen=True)
class LevelInfo:
    code: str
    description: str
    max_words: int


LANGUAGES: dict[str, LanguageInfo] = {
    "russian": LanguageInfo("🇷🇺 Russian", "ru", "ru-RU"),
    "urdu": LanguageInfo("🇵🇰 Urdu", "ur", "ur-IN"),
    "english": LanguageInfo("🇺🇸 English", "en", "en-US"),
}

LEVELS: dict[str, LevelInfo] = {
    "beginner": LevelInfo("A1", "Simple vocabulary, basic sentences", 150),
    "intermediate": LevelInfo("A2-B1", "Complex sentences, everyday topics", 300),
    "advanced": LevelInfo("B2-C1", "Advanced grammar, technical topics", 500),
}

TOPICS = [
    "friendship", "travel", "family", "love", "work",
    "study", "sports", "art", "music", "books",
]


def language_display(language: str) -> str:
    info = LANGUAGES.get(language)
    return info.display if info else language.capitalize()


def tts_locale(language: str) -> str:
    info = LANGUAGES.get(language)
    return info.tts_locale if info else "en-US"


# -----------------------------------------------------------------------------
# Environment settings
# -----------------------------------------------------------------------------

@dataclass
class Settings:
    """Process-level settings read from the environment (and .env)."""
    app_dir: Path
    endpoint: str
    model: str
    timeout: float
    max_retries: int

    @property
    def config_dir(self) -> Path:
        return self.app_dir / "config"

    @property
    def config_file(self) -> Path:
        return self.config_dir / "app_config.json"

    @property
    def sessions_dir(self) -> Path:
        return self.app_dir / "sessions"

    @property
    def audio_dir(self) -> Path:
        return self.app_dir / "audio"

    @property
    def db_file(self) -> Path:
        return self.app_dir / "stories.db"

    @property
    def log_file(self) -> Path:
        return self.app_dir / "app.log"

    @classmethod
    def from_env(cls) -> "Settings":
        app_dir = os.environ.get("STORYWEAVER_HOME")
        try:
            timeout = float(os.environ.get("STORYWEAVER_TIMEOUT", DEFAULT_TIMEOUT))
            max_retries = int(os.environ.get("STORYWEAVER_MAX_RETRIES", DEFAULT_MAX_RETRIES))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting in environment: {e}") from e
        return cls(
            app_dir=Path(app_dir).expanduser() if app_dir else DEFAULT_APP_DIR,
            endpoint=os.environ.get("OLLAMA_ENDPOINT", DEFAULT_ENDPOINT),
            model=os.environ.get("STORYWEAVER_MODEL", DEFAULT_MODEL),
            timeout=timeout,
            max_retries=max_retries,
        )


# -----------------------------------------------------------------------------
# Persisted user configuration
# -----------------------------------------------------------------------------

class AppConfig(BaseModel):
    language: str = "russian"
    level: str = "beginner"
    auto_translate: bool = True
    daily_goal: int = Field(default=1, ge=1)
    storage: Literal["sqlite", "json"] = "sqlite"


DEFAULT_CONFIG = AppConfig()


class ConfigManager:
    """
    Load and save the user configuration file.

    The file is read once at session start and rewritten only when the user
    changes a setting. Writes go to a temporary file in the same directory
    which is then renamed over the target.
    """

    def __init__(self, config_file: Path):
        self.config_file = Path(config_file)

    def load(self) -> AppConfig:
        """
        Load the configuration, creating it with defaults when absent.

        Returns:
            AppConfig (defaults for missing keys or an unreadable file)

        Raises:
            ConfigError: If the config directory cannot be created or the
                default file cannot be written
        """
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Cannot create config directory {self.config_file.parent}: {e}") from e

        if not self.config_file.exists():
            config = DEFAULT_CONFIG.model_copy()
            self.save(config)
            logger.info(f"Configuration initialized: {self.config_file}")
            return config

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config root is not an object")
            return AppConfig(**{**DEFAULT_CONFIG.model_dump(), **data})
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Unreadable config {self.config_file}, using defaults: {e}")
            return DEFAULT_CONFIG.model_copy()

    def save(self, config: AppConfig):
        """Atomically write the configuration file."""
        directory = self.config_file.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=directory, prefix=f".{self.config_file.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(config.model_dump(), f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.config_file)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ConfigError(f"Cannot write config file {self.config_file}: {e}") from e

    def update(self, config: AppConfig, **changes) -> AppConfig:
        """Return a copy of `config` with `changes` applied, saved to disk."""
        updated = AppConfig(**{**config.model_dump(), **changes})
        self.save(updated)
        return updated


def load_settings(app_dir: Optional[Path] = None) -> Settings:
    settings = Settings.from_env()
    if app_dir is not None:
        settings.app_dir = Path(app_dir)
    return settings
