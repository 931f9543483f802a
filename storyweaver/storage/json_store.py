"""
JSONStoryStore - one JSON file per story, grouped by month.

Layout under the root directory:
    stories/YYYY-MM/story-NNN.json        live record (results added later)
    archive/YYYY-MM-DD-story-NNN.json     snapshot written at save time

The story id is the month folder plus file stem, e.g. "2026-10/story-003".
"""

import json
import logging
import os
import re
import tempfile
from collections import defaultdict
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterator, Optional

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

STORY_ID_PATTERN = re.compile(r'^\d{4}-\d{2}/story-\d{3,}$')


def _atomic_write_json(path: Path, data: dict):
    """Write JSON to a temp file in the same directory, then rename over `path`."""
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise


def _check_record(record: Any):
    """
    Raise ValueError unless `record` has the shape save_story writes.

    Results need a parseable `answered_on` date; stats read it back.
    """
    if not isinstance(record, dict):
        raise ValueError("story record is not an object")
    lesson = record.get("lesson", {})
    if not isinstance(lesson, dict):
        raise ValueError("'lesson' is not an object")
    for key in ("vocabulary", "exercises"):
        items = lesson.get(key, [])
        if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
            raise ValueError(f"'lesson.{key}' is not a list of objects")
    results = record.get("results", {})
    if not isinstance(results, dict):
        raise ValueError("'results' is not an object")
    for exercise_id, result in results.items():
        if not isinstance(result, dict):
            raise ValueError(f"result for {exercise_id} is not an object")
        if result.get("answered_on"):
            date.fromisoformat(str(result["answered_on"]))


class JSONStoryStore(StoryStore):
    """Store each lesson and its exercise results as a JSON file."""

    def __init__(self, root_dir: Path):
        self.root_dir = Path(root_dir)
        self.stories_dir = self.root_dir / "stories"
        self.archive_dir = self.root_dir / "archive"

    def _story_path(self, story_id: str) -> Path:
        if not STORY_ID_PATTERN.match(story_id):
            raise PersistenceError(f"Invalid story id: {story_id!r}")
        return self.stories_dir / f"{story_id}.json"

    def _next_story_path(self, month_dir: Path) -> Path:
        i = 1
        while (month_dir / f"story-{i:03d}.json").exists():
            i += 1
        return month_dir / f"story-{i:03d}.json"

    def _load(self, path: Path) -> dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                record = json.load(f)
            _check_record(record)
            return record
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read story file {path}: {e}") from e

    def _iter_records(self, session_id: str) -> Iterator[dict[str, Any]]:
        """Records of one session, oldest month first; unreadable files are skipped."""
        if not self.stories_dir.exists():
            return
        for path in sorted(self.stories_dir.glob("*/story-*.json")):
            try:
                record = self._load(path)
            except PersistenceError as e:
                logger.warning(f"Skipping story file: {e}")
                continue
            if record.get("session_id") == session_id:
                yield record

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
        now = datetime.now()
        month_dir = self.stories_dir / now.strftime("%Y-%m")
        try:
            month_dir.mkdir(parents=True, exist_ok=True)
            self.archive_dir.mkdir(parents=True, exist_ok=True)

            path = self._next_story_path(month_dir)
            story_id = f"{month_dir.name}/{path.stem}"
            record = {
                "story_id": story_id,
                "session_id": session_id,
                "language": language,
                "level": level,
                "topic": topic,
                "model": model,
                "created_at": now.isoformat(timespec="seconds"),
                "lesson": lesson.model_dump(),
                "results": {},
            }
            _atomic_write_json(path, record)
            _atomic_write_json(self.archive_dir / f"{now:%Y-%m-%d}-{path.stem}.json", record)
        except OSError as e:
            raise PersistenceError(f"Failed to save story: {e}") from e

        logger.info(f"Story saved to: {path}")
        return SavedStory(
            story_id=story_id,
            exercise_ids={exercise.id: exercise.id for exercise in lesson.exercises},
        )

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
        path = self._story_path(story_id)
        record = self._load(path)

        exercise_ids = {e.get("id") for e in record.get("lesson", {}).get("exercises", [])}
        if exercise_key not in exercise_ids:
            raise PersistenceError(f"Unknown exercise {exercise_key} for story {story_id}")

        record.setdefault("results", {})[exercise_key] = {
            "user_answer": attempt.user_answer,
            "is_correct": attempt.is_correct,
            "answered_on": today.isoformat(),
        }
        try:
            _atomic_write_json(path, record)
        except OSError as e:
            raise PersistenceError(f"Failed to record exercise result: {e}") from e

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_stats(self, session_id: str, today: Optional[date] = None) -> LearningStats:
        today = today or date.today()
        total = stories_today = completed = correct = 0
        study_days = set()

        for record in self._iter_records(session_id):
            total += 1
            if str(record.get("created_at", ""))[:10] == today.isoformat():
                stories_today += 1
            for result in record.get("results", {}).values():
                if result.get("is_correct") is None:
                    continue
                completed += 1
                correct += int(bool(result["is_correct"]))
                if result.get("answered_on"):
                    study_days.add(date.fromisoformat(result["answered_on"]))

        streak, last = 0, None
        for day in sorted(study_days):
            streak = next_streak(streak, last, day)
            last = day

        return LearningStats(
            total_stories=total,
            stories_today=stories_today,
            exercises_completed=completed,
            correct_answers=correct,
            accuracy_percent=compute_accuracy(correct, completed),
            streak_days=streak,
        )

    def get_vocabulary(self, session_id: str, language: str, limit: int = 20) -> list[VocabularyRecord]:
        stories: dict[tuple[str, str], set[str]] = defaultdict(set)
        examples: dict[tuple[str, str], str] = {}
        graded: dict[str, list[bool]] = {}

        for record in self._iter_records(session_id):
            if record.get("language") != language:
                continue
            story_id = record.get("story_id", "")
            graded[story_id] = [
                bool(r["is_correct"]) for r in record.get("results", {}).values()
                if r.get("is_correct") is not None
            ]
            for entry in record.get("lesson", {}).get("vocabulary", []):
                key = (entry.get("word", ""), entry.get("translation", ""))
                stories[key].add(story_id)
                if entry.get("example") and not examples.get(key):
                    examples[key] = entry["example"]

        records = []
        for (word, translation), story_ids in stories.items():
            answers = [a for sid in story_ids for a in graded.get(sid, [])]
            records.append(VocabularyRecord(
                word=word,
                translation=translation,
                example=examples.get((word, translation), ""),
                times_encountered=len(story_ids),
                mastery_rate=sum(answers) / len(answers) if answers else None,
            ))

        records.sort(key=lambda r: (-r.times_encountered, r.word))
        return records[:limit]
