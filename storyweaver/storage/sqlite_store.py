"""
SQLiteStoryStore - lessons, vocabulary, exercises and progress in SQLite.

Tables:
- users: one row per session id, story/exercise totals
- stories, vocabulary, exercises: the saved lesson content
- user_progress: per (user, language, level) counters and study streak
- learning_sessions: stories and exercises per session
"""

import json
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from storyweaver.errors import PersistenceError
from storyweaver.schemas import (
    ExerciseAttempt,
    LearningStats,
    LessonContent,
    SavedStory,
    VocabularyRecord,
    compute_accuracy,
)
from storyweaver.storage.base import StoryStore, next_streak

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
    CREATE TABLE IF NOT EXISTS users (
        user_id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT UNIQUE NOT NULL,
        created_at TEXT NOT NULL,
        last_active TEXT NOT NULL,
        total_stories INTEGER DEFAULT 0,
        total_exercises INTEGER DEFAULT 0,
        preferred_language TEXT DEFAULT 'russian',
        preferred_level TEXT DEFAULT 'beginner'
    );

    CREATE TABLE IF NOT EXISTS stories (
        story_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        session_id TEXT NOT NULL,
        language TEXT NOT NULL,
        level TEXT NOT NULL,
        topic TEXT NOT NULL,
        title TEXT,
        story_text TEXT NOT NULL,
        translation TEXT NOT NULL,
        word_count INTEGER DEFAULT 0,
        reading_time_minutes INTEGER DEFAULT 1,
        ai_model_used TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(user_id)
    );

    CREATE TABLE IF NOT EXISTS vocabulary (
        vocab_id INTEGER PRIMARY KEY AUTOINCREMENT,
        story_id INTEGER NOT NULL,
        word TEXT NOT NULL,
        translation TEXT NOT NULL,
        part_of_speech TEXT,
        example_sentence TEXT,
        language TEXT NOT NULL,
        difficulty_level TEXT DEFAULT 'beginner',
        times_encountered INTEGER DEFAULT 1,
        last_encountered TEXT,
        FOREIGN KEY (story_id) REFERENCES stories(story_id)
    );

    CREATE TABLE IF NOT EXISTS exercises (
        exercise_id INTEGER PRIMARY KEY AUTOINCREMENT,
        story_id INTEGER NOT NULL,
        lesson_exercise_id TEXT NOT NULL,
        exercise_type TEXT NOT NULL,
        question TEXT NOT NULL,
        correct_answer TEXT NOT NULL,
        options TEXT,
        user_answer TEXT,
        is_correct INTEGER,
        completed_at TEXT,
        FOREIGN KEY (story_id) REFERENCES stories(story_id)
    );

    CREATE TABLE IF NOT EXISTS user_progress (
        progress_id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        session_id TEXT NOT NULL,
        language TEXT NOT NULL,
        level TEXT NOT NULL,
        stories_completed INTEGER DEFAULT 0,
        exercises_completed INTEGER DEFAULT 0,
        correct_answers INTEGER DEFAULT 0,
        total_time_minutes INTEGER DEFAULT 0,
        streak_days INTEGER DEFAULT 0,
        last_study_date TEXT,
        created_at TEXT,
        updated_at TEXT,
        FOREIGN KEY (user_id) REFERENCES users(user_id),
        UNIQUE(user_id, language, level)
    );

    CREATE TABLE IF NOT EXISTS learning_sessions (
        session_id TEXT PRIMARY KEY,
        user_id INTEGER,
        language TEXT NOT NULL,
        level TEXT NOT NULL,
        start_time TEXT,
        end_time TEXT,
        duration_minutes INTEGER DEFAULT 0,
        stories_generated INTEGER DEFAULT 0,
        exercises_completed INTEGER DEFAULT 0,
        accuracy_rate REAL DEFAULT 0.0,
        FOREIGN KEY (user_id) REFERENCES users(user_id)
    );

    CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY);

    CREATE INDEX IF NOT EXISTS idx_stories_user_language ON stories(user_id, language);
    CREATE INDEX IF NOT EXISTS idx_stories_created_at ON stories(created_at);
    CREATE INDEX IF NOT EXISTS idx_vocabulary_language_word ON vocabulary(language, word);
    CREATE INDEX IF NOT EXISTS idx_exercises_story_type ON exercises(story_id, exercise_type);
    CREATE INDEX IF NOT EXISTS idx_user_progress_language_level ON user_progress(language, level);
    CREATE INDEX IF NOT EXISTS idx_learning_sessions_time ON learning_sessions(start_time);
"""


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _word_count(text: str) -> int:
    return len(text.split())


class SQLiteStoryStore(StoryStore):
    """
    Store lessons and learning progress in a SQLite database.

    Every public method opens its own connection and commits once at the end,
    so a failure part way through leaves nothing behind.
    """

    def __init__(self, db_path: Path):
        """
        Initialize the store, creating the database if needed.

        Args:
            db_path: Path to the .db file (parent directories are created)

        Raises:
            PersistenceError: If the database cannot be created
        """
        self.db_path = Path(db_path)
        self._ensure_database()

    def _ensure_database(self):
        """Create database and tables if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path))
            try:
                conn.executescript(SCHEMA)
                conn.execute(
                    "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,)
                )
                conn.commit()
            finally:
                conn.close()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot initialize database {self.db_path}: {e}") from e
        logger.debug(f"Database ready: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def _ensure_user(self, conn: sqlite3.Connection, session_id: str) -> int:
        row = conn.execute(
            "SELECT user_id FROM users WHERE session_id = ?", (session_id,)
        ).fetchone()
        if row:
            return row["user_id"]
        now = _now()
        cursor = conn.execute(
            "INSERT INTO users (session_id, created_at, last_active) VALUES (?, ?, ?)",
            (session_id, now, now)
        )
        return cursor.lastrowid

    # -------------------------------------------------------------------------
    # Stories
    # -------------------------------------------------------------------------

    def save_story(
        self,
        lesson: LessonContent,
        *,
        session_id: str,
        language: str,
        level: str,
        topic: str,
        model: str,
    ) -> SavedStory:
        try:
            conn = self._get_connection()
            try:
                now = _now()
                user_id = self._ensure_user(conn, session_id)

                cursor = conn.execute(
                    """INSERT INTO stories (user_id, session_id, language, level, topic,
                                            story_text, translation, word_count, ai_model_used, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (user_id, session_id, language, level, topic,
                     lesson.story_text, lesson.translation, _word_count(lesson.story_text), model, now)
                )
                story_id = cursor.lastrowid

                conn.executemany(
                    """INSERT INTO vocabulary (story_id, word, translation, part_of_speech,
                                               example_sentence, language, difficulty_level, last_encountered)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (story_id, v.word, v.translation, v.part_of_speech, v.example, language, level, now)
                        for v in lesson.vocabulary
                    ]
                )

                exercise_ids = {}
                for exercise in lesson.exercises:
                    cursor = conn.execute(
                        """INSERT INTO exercises (story_id, lesson_exercise_id, exercise_type,
                                                  question, correct_answer, options)
                           VALUES (?, ?, ?, ?, ?, ?)""",
                        (story_id, exercise.id, exercise.kind, exercise.question,
                         exercise.answer, json.dumps(exercise.options, ensure_ascii=False))
                    )
                    exercise_ids[exercise.id] = str(cursor.lastrowid)

                conn.execute(
                    """UPDATE users SET total_stories = total_stories + 1, last_active = ?
                       WHERE user_id = ?""",
                    (now, user_id)
                )
                conn.execute(
                    """INSERT INTO learning_sessions (session_id, user_id, language, level, start_time, stories_generated)
                       VALUES (?, ?, ?, ?, ?, 1)
                       ON CONFLICT(session_id) DO UPDATE SET
                         stories_generated = stories_generated + 1,
                         language = excluded.language,
                         level = excluded.level,
                         end_time = ?""",
                    (session_id, user_id, language, level, now, now)
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save story: {e}") from e

        logger.info(f"Story saved to database: id={story_id}, {len(exercise_ids)} exercises")
        return SavedStory(story_id=str(story_id), exercise_ids=exercise_ids)

    # -------------------------------------------------------------------------
    # Exercise results
    # -------------------------------------------------------------------------

    def record_exercise_result(
        self,
        story_id: str,
        exercise_key: str,
        attempt: ExerciseAttempt,
        today: Optional[date] = None,
    ):
        today = today or date.today()
        is_correct = None if attempt.is_correct is None else int(attempt.is_correct)

        try:
            conn = self._get_connection()
            try:
                now = _now()
                cursor = conn.execute(
                    """UPDATE exercises SET user_answer = ?, is_correct = ?, completed_at = ?
                       WHERE exercise_id = ? AND story_id = ?""",
                    (attempt.user_answer, is_correct, now, exercise_key, story_id)
                )
                if cursor.rowcount == 0:
                    raise PersistenceError(f"Unknown exercise {exercise_key} for story {story_id}")

                if is_correct is not None:
                    self._update_progress(conn, story_id, is_correct, today, now)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to record exercise result: {e}") from e

    def _update_progress(self, conn: sqlite3.Connection, story_id: str, is_correct: int, today: date, now: str):
        story = conn.execute(
            "SELECT user_id, session_id, language, level FROM stories WHERE story_id = ?",
            (story_id,)
        ).fetchone()

        # Streak is per user, whatever language/level was studied last
        latest = conn.execute(
            """SELECT streak_days, last_study_date FROM user_progress
               WHERE user_id = ? AND last_study_date IS NOT NULL
               ORDER BY last_study_date DESC LIMIT 1""",
            (story["user_id"],)
        ).fetchone()
        if latest:
            streak = next_streak(latest["streak_days"], date.fromisoformat(latest["last_study_date"]), today)
        else:
            streak = next_streak(0, None, today)

        conn.execute(
            """INSERT INTO user_progress (user_id, session_id, language, level, exercises_completed,
                                          correct_answers, streak_days, last_study_date, created_at, updated_at)
               VALUES (?, ?, ?, ?, 1, ?, ?, ?, ?, ?)
               ON CONFLICT(user_id, language, level) DO UPDATE SET
                 exercises_completed = exercises_completed + 1,
                 correct_answers = correct_answers + excluded.correct_answers,
                 streak_days = excluded.streak_days,
                 last_study_date = excluded.last_study_date,
                 updated_at = excluded.updated_at""",
            (story["user_id"], story["session_id"], story["language"], story["level"],
             is_correct, streak, today.isoformat(), now, now)
        )
        conn.execute(
            """UPDATE users SET total_exercises = total_exercises + 1, last_active = ?
               WHERE user_id = ?""",
            (now, story["user_id"])
        )
        conn.execute(
            """UPDATE learning_sessions SET exercises_completed = exercises_completed + 1
               WHERE session_id = ?""",
            (story["session_id"],)
        )

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_stats(self, session_id: str, today: Optional[date] = None) -> LearningStats:
        today = today or date.today()
        try:
            conn = self._get_connection()
            try:
                user = conn.execute(
                    "SELECT user_id, total_stories FROM users WHERE session_id = ?",
                    (session_id,)
                ).fetchone()
                if not user:
                    return LearningStats()

                stories_today = conn.execute(
                    """SELECT COUNT(*) AS n FROM stories
                       WHERE user_id = ? AND substr(created_at, 1, 10) = ?""",
                    (user["user_id"], today.isoformat())
                ).fetchone()["n"]

                totals = conn.execute(
                    """SELECT COALESCE(SUM(exercises_completed), 0) AS completed,
                              COALESCE(SUM(correct_answers), 0) AS correct
                       FROM user_progress WHERE user_id = ?""",
                    (user["user_id"],)
                ).fetchone()

                latest = conn.execute(
                    """SELECT streak_days FROM user_progress
                       WHERE user_id = ? AND last_study_date IS NOT NULL
                       ORDER BY last_study_date DESC LIMIT 1""",
                    (user["user_id"],)
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read statistics: {e}") from e

        return LearningStats(
            total_stories=user["total_stories"],
            stories_today=stories_today,
            exercises_completed=totals["completed"],
            correct_answers=totals["correct"],
            accuracy_percent=compute_accuracy(totals["correct"], totals["completed"]),
            streak_days=latest["streak_days"] if latest else 0,
        )

    def get_vocabulary(self, session_id: str, language: str, limit: int = 20) -> list[VocabularyRecord]:
        try:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    """SELECT v.word,
                              v.translation,
                              MAX(v.example_sentence) AS example_sentence,
                              COUNT(DISTINCT v.story_id) AS times_encountered,
                              (SELECT AVG(e.is_correct) FROM exercises e
                                WHERE e.story_id IN (SELECT v2.story_id FROM vocabulary v2
                                                      JOIN stories s2 ON v2.story_id = s2.story_id
                                                      WHERE v2.word = v.word AND v2.translation = v.translation
                                                        AND v2.language = v.language
                                                        AND s2.user_id = s.user_id)
                              ) AS mastery_rate
                       FROM vocabulary v
                       JOIN stories s ON v.story_id = s.story_id
                       JOIN users u ON s.user_id = u.user_id
                       WHERE u.session_id = ? AND v.language = ?
                       GROUP BY v.word, v.translation
                       ORDER BY times_encountered DESC, v.word ASC
                       LIMIT ?""",
                    (session_id, language, limit)
                )
                rows = cursor.fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read vocabulary: {e}") from e

        return [
            VocabularyRecord(
                word=row["word"],
                translation=row["translation"],
                example=row["example_sentence"] or "",
                times_encountered=row["times_encountered"],
                mastery_rate=row["mastery_rate"],
            )
            for row in rows
        ]
