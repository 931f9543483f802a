"""Persistent session identifier (one per installation)."""

import logging
import secrets
import time
from pathlib import Path

from storyweaver.errors import PersistenceError

logger = logging.getLogger(__name__)

SESSION_FILE = "current_session"


def generate_session_id() -> str:
    return f"session_{int(time.time())}_{secrets.token_hex(8)}"


def get_current_session_id(sessions_dir: Path) -> str:
    """
    Read the current session id, creating and storing one if absent.

    Raises:
        PersistenceError: If the sessions directory is not writable
    """
    session_file = Path(sessions_dir) / SESSION_FILE
    try:
        if session_file.exists():
            session_id = session_file.read_text(encoding="utf-8").strip()
            if session_id:
                return session_id
        session_file.parent.mkdir(parents=True, exist_ok=True)
        session_id = generate_session_id()
        session_file.write_text(session_id + "\n", encoding="utf-8")
    except OSError as e:
        raise PersistenceError(f"Cannot store session id in {sessions_dir}: {e}") from e

    logger.info(f"New session: {session_id}")
    return session_id
