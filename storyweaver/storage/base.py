"""
StoryStore - persistence interface for generated lessons and results.

Two backends exist: SQLite tables and plain JSON files. Both raise
PersistenceError for any I/O or data failure so callers handle one type.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from storyweaver.schemas import (
    ExerciseAttempt,
    LearningStats,
    LessonContent,
    SavedStory,
    VocabularyRecord,
)


class StoryStore(ABC):
    """Persistence boundary for lessons, exercise results and statistics."""

    @abstractmethod
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
        """
        Persist a finished lesson.

        Returns:
            SavedStory with the store's story id and exercise keys

        Raises:
            PersistenceError: If the lesson could not be written
        """

    @abstractmethod
    def record_exercise_result(
        self,
        story_id: str,
        exercise_key: str,
        attempt: ExerciseAttempt,
        today: Optional[date] = None,
    ):
        """
        Store a learner's answer to one exercise.

        Ungraded attempts (no reference answer) are stored but do not count
        towards completed exercises or accuracy.

        Raises:
            PersistenceError: If the result could not be written
        """

    @abstractmethod
    def get_stats(self, session_id: str, today: Optional[date] = None) -> LearningStats:
        """Aggregate statistics for a session (user)."""

    @abstractmethod
    def get_vocabulary(self, session_id: str, language: str, limit: int = 20) -> list[VocabularyRecord]:
        """Vocabulary met in a language, most encountered first."""


def next_streak(streak: int, last_study: Optional[date], today: date) -> int:
    """Same day keeps the streak, the next day extends it, a gap restarts it."""
    if last_study is None:
        return 1
    gap = (today - last_study).days
    if gap <= 0:
        return max(streak, 1)
    if gap == 1:
        return streak + 1
    return 1
