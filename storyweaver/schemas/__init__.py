"""
Storyweaver Schemas - Pydantic models for the language-learning assistant.

This module exports all schema classes for:
- Lesson: story text, translation, vocabulary, exercises
- Progress: saved stories, statistics, vocabulary records
"""

# Lesson schemas
from .lesson import (
    UNKNOWN,
    KNOWN_EXERCISE_KINDS,
    CHOICE_KINDS,
    canonical_exercise_kind,
    VocabEntry,
    Exercise,
    LessonContent,
    ExerciseAttempt,
)

# Progress schemas
from .progress import (
    SavedStory,
    LearningStats,
    VocabularyRecord,
    compute_accuracy,
)

__all__ = [
    # Lesson
    'UNKNOWN',
    'KNOWN_EXERCISE_KINDS',
    'CHOICE_KINDS',
    'canonical_exercise_kind',
    'VocabEntry',
    'Exercise',
    'LessonContent',
    'ExerciseAttempt',
    # Progress
    'SavedStory',
    'LearningStats',
    'VocabularyRecord',
    'compute_accuracy',
]
