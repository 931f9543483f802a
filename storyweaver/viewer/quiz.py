"""
Exercise checking and scoring.

Provides:
- Answer checking against the reference answer
- Quiz scoring over recorded attempts
"""

import re
from typing import Optional

from storyweaver.schemas import Exercise, ExerciseAttempt


def _normalize(text: str) -> str:
    return re.sub(r'\s+', ' ', text).strip().lower()


def resolve_choice(exercise: Exercise, user_answer: str) -> str:
    """Map a 1-based option number to that option's text; otherwise return the answer as typed."""
    answer = user_answer.strip()
    if exercise.is_choice and answer.isdigit():
        index = int(answer) - 1
        if 0 <= index < len(exercise.options):
            return exercise.options[index]
    return answer


def check_answer(exercise: Exercise, user_answer: str) -> Optional[bool]:
    """
    Check a learner's answer.

    Comparison ignores case and repeated whitespace. For choice exercises an
    option number selects that option.

    Returns:
        True/False, or None when the exercise has no reference answer
    """
    if not exercise.has_reference_answer:
        return None
    return _normalize(resolve_choice(exercise, user_answer)) == _normalize(exercise.answer)


def make_attempt(exercise: Exercise, user_answer: str) -> ExerciseAttempt:
    return ExerciseAttempt(
        exercise_id=exercise.id,
        user_answer=resolve_choice(exercise, user_answer),
        is_correct=check_answer(exercise, user_answer),
    )


def calculate_score(attempts: list[ExerciseAttempt]) -> dict:
    """
    Calculate quiz score.

    Args:
        attempts: Recorded attempts; ungraded ones (is_correct None) are ignored

    Returns:
        Dict with score info
    """
    graded = [a for a in attempts if a.is_correct is not None]
    total = len(graded)
    correct_count = sum(1 for a in graded if a.is_correct)
    if total == 0:
        return {"score": 1.0, "percent": 100, "correct": 0, "total": 0}

    score = correct_count / total
    return {
        "score": round(score, 2),
        "percent": round(score * 100),
        "correct": correct_count,
        "total": total,
    }
