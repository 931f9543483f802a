"""
Storage backends for lessons and learning progress.

- SQLiteStoryStore: relational tables (default)
- JSONStoryStore: one JSON file per story
"""

from pathlib import Path

from storyweaver.config import Settings

from .base import StoryStore, next_streak
from .json_store import JSONStoryStore
from .session import get_current_session_id, generate_session_id
from .sqlite_store import SQLiteStoryStore


def open_store(kind: str, settings: Settings) -> StoryStore:
    """Open the store selected by `kind` ("sqlite" or "json")."""
    if kind == "json":
        return JSONStoryStore(Path(settings.app_dir))
    return SQLiteStoryStore(settings.db_file)


__all__ = [
    "StoryStore",
    "next_streak",
    "JSONStoryStore",
    "SQLiteStoryStore",
    "get_current_session_id",
    "generate_session_id",
    "open_store",
]
