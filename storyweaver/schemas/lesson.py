"""
Lesson content schemas for Storyweaver.

Defines Pydantic models for one generated lesson:
- Vocabulary entries
- Exercises (open set of kinds, stable synthetic ids)
- The canonical LessonContent record
- Exercise attempts recorded beside a lesson
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

UNKNOWN = "unknown"

# -----------------------------------------------------------------------------
# Exercise kinds
# -----------------------------------------------------------------------------

KNOWN_EXERCISE_KINDS = ("multiple_choice", "fill_blank", "true_false", "qna", "matching")

# Kinds whose options are shown to the learner
CHOICE_KINDS = frozenset({"multiple_choice", "true_false"})

EXERCISE_KIND_ALIASES = {
    "multiple_choice": "multiple_choice",
    "multiplechoice": "multiple_choice",
    "choice": "multiple_choice",
    "mcq": "multiple_choice",
    "fill_blank": "fill_blank",
    "fill_in": "fill_blank",
    "fill_in_blank": "fill_blank",
    "fill_in_the_blank": "fill_blank",
    "fillblank": "fill_blank",
    "true_false": "true_false",
    "truefalse": "true_false",
    "true_or_false": "true_false",
    "qna": "qna",
    "q&a": "qna",
    "q_a": "qna",
    "question_answer": "qna",
    "matching": "matching",
    "match": "matching",
}


def canonical_exercise_kind(value) -> str:
    """
    Map a raw exercise kind onto the canonical spelling.

    Known kinds and their spelling variants (hyphens, spaces, case) collapse
    onto one name. Anything else is passed through lower-cased; a missing or
    non-string kind becomes "unknown".
    """
    if not isinstance(value, str) or not value.strip():
        return UNKNOWN
    cleaned = value.strip().lower()
    key = cleaned.replace("-", "_").replace(" ", "_")
    return EXERCISE_KIND_ALIASES.get(key, cleaned)


# -----------------------------------------------------------------------------
# Lesson parts
# -----------------------------------------------------------------------------

class VocabEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    word: str = UNKNOWN
    translation: str = UNKNOWN
    part_of_speech: str = UNKNOWN
    example: str = ""


class Exercise(BaseModel):
    """
    A single practice exercise.

    `id` is assigned by position when the lesson is normalized ("ex-1",
    "ex-2", ...) and is the only key used to track answers.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    kind: str = UNKNOWN
    question: str = UNKNOWN
    answer: str = UNKNOWN
    options: list[str] = []

    @property
    def is_choice(self) -> bool:
        return self.kind in CHOICE_KINDS and bool(self.options)

    @property
    def has_reference_answer(self) -> bool:
        return self.answer.strip().lower() != UNKNOWN


class LessonContent(BaseModel):
    """Canonical, normalized content of one learning session."""
    model_config = ConfigDict(frozen=True)

    story_text: str = Field(..., min_length=1)
    translation: str = Field(..., min_length=1)
    vocabulary: list[VocabEntry] = []
    exercises: list[Exercise] = []

    def get_exercise(self, exercise_id: str) -> Optional[Exercise]:
        for exercise in self.exercises:
            if exercise.id == exercise_id:
                return exercise
        return None


class ExerciseAttempt(BaseModel):
    """A learner's answer to one exercise, keyed by exercise id."""
    exercise_id: str
    user_answer: str
    is_correct: Optional[bool] = None  # None when there is no reference answer
