"""
Progress tracking schemas for Storyweaver.

Defines Pydantic models for:
- Saved story receipts
- Learning statistics
- Vocabulary list rows
"""

from pydantic import BaseModel, Field
from typing import Optional


class SavedStory(BaseModel):
    story_id: str
    # Exercise.id -> store's own exercise key
    exercise_ids: dict[str, str] = {}


class LearningStats(BaseModel):
    total_stories: int = 0
    stories_today: int = 0
    exercises_completed: int = 0
    correct_answers: int = 0
    accuracy_percent: Optional[float] = None
    streak_days: int = 0

    @property
    def has_activity(self) -> bool:
        return self.total_stories > 0 or self.exercises_completed > 0


class VocabularyRecord(BaseModel):
    word: str
    translation: str
    example: str = ""
    times_encountered: int = Field(default=1, ge=0)
    mastery_rate: Optional[float] = Field(default=None, ge=0.0, le=1.0)


def compute_accuracy(correct: int, completed: int) -> Optional[float]:
    """Percentage of correct answers, or None before any graded exercise."""
    if completed <= 0:
        return None
    return round(correct * 100.0 / completed, 1)
