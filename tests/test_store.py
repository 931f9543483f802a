"""Storage backend tests (SQLite and JSON files)."""

import json
import re
import sqlite3
from datetime import date, timedelta

import pytest

from storyweaver.errors import PersistenceError
from storyweaver.schemas import ExerciseAttempt, LessonContent
from storyweaver.storage import (
    JSONStoryStore,
    SQLiteStoryStore,
    generate_session_id,
    get_current_session_id,
    next_streak,
)

SESSION = "session_1700000000_0123456789abcdef"


@pytest.fixture(params=["sqlite", "json"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteStoryStore(tmp_path / "stories.db")
    return JSONStoryStore(tmp_path / "data")


def save(store, lesson, language="russian", level="beginner", topic="friendship"):
    return store.save_story(
        lesson, session_id=SESSION, language=language, level=level, topic=topic, model="test-model"
    )


def answer(store, saved, exercise_id, user_answer, is_correct, today=None):
    store.record_exercise_result(
        saved.story_id,
        saved.exercise_ids[exercise_id],
        ExerciseAttempt(exercise_id=exercise_id, user_answer=user_answer, is_correct=is_correct),
        today=today,
    )


class TestStreak:
    """Test study streak rules."""

    def test_first_day(self):
        assert next_streak(0, None, date(2026, 10, 1)) == 1

    def test_same_day_unchanged(self):
        assert next_streak(4, date(2026, 10, 1), date(2026, 10, 1)) == 4

    def test_next_day_extends(self):
        assert next_streak(4, date(2026, 10, 1), date(2026, 10, 2)) == 5

    def test_gap_restarts(self):
        assert next_streak(4, date(2026, 10, 1), date(2026, 10, 5)) == 1


class TestStoryStore:
    """Behaviour shared by both backends."""

    def test_save_story(self, store, sample_lesson):
        saved = save(store, sample_lesson)
        assert saved.story_id
        assert set(saved.exercise_ids) == {"ex-1", "ex-2", "ex-3"}

    def test_empty_stats(self, store):
        stats = store.get_stats(SESSION)
        assert stats.total_stories == 0
        assert stats.accuracy_percent is None
        assert not stats.has_activity

    def test_stats_after_exercises(self, store, sample_lesson):
        saved = save(store, sample_lesson)
        save(store, sample_lesson, topic="travel")
        answer(store, saved, "ex-1", "Masha and Petya", True)
        answer(store, saved, "ex-2", "друг", False)
        answer(store, saved, "ex-3", "I like it", None)

        stats = store.get_stats(SESSION)
        assert stats.total_stories == 2
        assert stats.stories_today == 2
        assert stats.exercises_completed == 2
        assert stats.correct_answers == 1
        assert stats.accuracy_percent == 50.0
        assert stats.streak_days == 1

    def test_stories_today(self, store, sample_lesson):
        save(store, sample_lesson)
        assert store.get_stats(SESSION, today=date.today() + timedelta(days=1)).stories_today == 0

    def test_streak_across_days(self, store, sample_lesson):
        saved = save(store, sample_lesson)
        day = date(2026, 10, 1)
        answer(store, saved, "ex-1", "a", True, today=day)
        answer(store, saved, "ex-2", "b", True, today=day + timedelta(days=1))
        assert store.get_stats(SESSION).streak_days == 2

        answer(store, saved, "ex-1", "a", True, today=day + timedelta(days=5))
        assert store.get_stats(SESSION).streak_days == 1

    def test_other_session_isolated(self, store, sample_lesson):
        save(store, sample_lesson)
        assert store.get_stats("session_other").total_stories == 0
        assert store.get_vocabulary("session_other", "russian") == []

    def test_unknown_exercise(self, store, sample_lesson):
        saved = save(store, sample_lesson)
        key = "999" if isinstance(store, SQLiteStoryStore) else "ex-99"
        with pytest.raises(PersistenceError):
            store.record_exercise_result(saved.story_id, key, ExerciseAttempt(exercise_id="ex-99", user_answer="x"))

    def test_vocabulary(self, store, sample_lesson):
        saved = save(store, sample_lesson)
        save(store, LessonContent(
            story_text="Ещё история.",
            translation="Another story.",
            vocabulary=[{"word": "друг", "translation": "friend"}],
        ))
        save(store, sample_lesson, language="urdu")
        answer(store, saved, "ex-1", "1", True)

        records = store.get_vocabulary(SESSION, "russian")
        assert [(r.word, r.times_encountered) for r in records] == [("друг", 2), ("вместе", 1)]
        assert records[0].example == "Он мой друг."
        assert records[1].mastery_rate == 1.0

    def test_mastery_ignores_other_learners(self, store, sample_lesson):
        mine = save(store, sample_lesson)
        theirs = store.save_story(
            sample_lesson, session_id="session_other", language="russian",
            level="beginner", topic="friendship", model="test-model",
        )
        answer(store, mine, "ex-1", "Masha and Petya", True)
        answer(store, theirs, "ex-1", "Nobody", False)

        assert {r.word: r.mastery_rate for r in store.get_vocabulary(SESSION, "russian")} == {
            "друг": 1.0, "вместе": 1.0,
        }
        assert {r.word: r.mastery_rate for r in store.get_vocabulary("session_other", "russian")} == {
            "друг": 0.0, "вместе": 0.0,
        }

    def test_vocabulary_limit(self, store, sample_lesson):
        save(store, sample_lesson)
        assert len(store.get_vocabulary(SESSION, "russian", limit=1)) == 1


class TestSQLiteStore:
    """SQLite-specific behaviour."""

    def test_schema(self, tmp_path):
        db_path = tmp_path / "stories.db"
        SQLiteStoryStore(db_path)
        conn = sqlite3.connect(db_path)
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
            version = conn.execute("SELECT version FROM schema_version").fetchone()[0]
        finally:
            conn.close()
        assert {"users", "stories", "vocabulary", "exercises", "user_progress",
                "learning_sessions", "schema_version"} <= tables
        assert version == 1

    def test_rows_written(self, tmp_path, sample_lesson):
        db_path = tmp_path / "stories.db"
        store = SQLiteStoryStore(db_path)
        saved = save(store, sample_lesson)
        answer(store, saved, "ex-1", "Masha and Petya", True)

        conn = sqlite3.connect(db_path)
        conn.row_factory = sqlite3.Row
        try:
            story = conn.execute("SELECT * FROM stories").fetchone()
            exercise = conn.execute(
                "SELECT * FROM exercises WHERE exercise_id = ?", (saved.exercise_ids["ex-1"],)
            ).fetchone()
            session = conn.execute("SELECT * FROM learning_sessions").fetchone()
            user = conn.execute("SELECT * FROM users").fetchone()
        finally:
            conn.close()

        assert story["topic"] == "friendship"
        assert story["ai_model_used"] == "test-model"
        assert story["word_count"] == 5
        assert exercise["lesson_exercise_id"] == "ex-1"
        assert json.loads(exercise["options"]) == ["Masha and Petya", "Ivan and Olga", "Nobody"]
        assert exercise["is_correct"] == 1
        assert session["stories_generated"] == 1
        assert session["exercises_completed"] == 1
        assert user["total_stories"] == 1
        assert user["total_exercises"] == 1

    def test_open_kinds_accepted(self, tmp_path):
        store = SQLiteStoryStore(tmp_path / "stories.db")
        lesson = LessonContent(
            story_text="a",
            translation="b",
            exercises=[{"id": "ex-1", "kind": "translation", "question": "Translate"}],
        )
        assert save(store, lesson).exercise_ids["ex-1"]

    def test_quotes_in_text(self, tmp_path):
        store = SQLiteStoryStore(tmp_path / "stories.db")
        save(store, LessonContent(story_text="It's \"quoted\"; DROP TABLE stories;", translation="b"), topic="o'clock")
        assert store.get_stats(SESSION).total_stories == 1

    def test_unusable_path(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(PersistenceError):
            SQLiteStoryStore(blocker / "stories.db")


class TestJSONStore:
    """JSON file layout."""

    def test_layout(self, tmp_path, sample_lesson):
        store = JSONStoryStore(tmp_path)
        first = save(store, sample_lesson)
        second = save(store, sample_lesson)

        month = date.today().strftime("%Y-%m")
        assert first.story_id == f"{month}/story-001"
        assert second.story_id == f"{month}/story-002"
        assert (tmp_path / "stories" / month / "story-002.json").exists()
        assert (tmp_path / "archive" / f"{date.today():%Y-%m-%d}-story-001.json").exists()
        assert first.exercise_ids == {"ex-1": "ex-1", "ex-2": "ex-2", "ex-3": "ex-3"}

    def test_record_contents(self, tmp_path, sample_lesson):
        store = JSONStoryStore(tmp_path)
        saved = save(store, sample_lesson)
        answer(store, saved, "ex-2", "друзья", True, today=date(2026, 10, 19))

        with open(tmp_path / "stories" / f"{saved.story_id}.json", encoding="utf-8") as f:
            record = json.load(f)
        assert LessonContent.model_validate(record["lesson"]) == sample_lesson
        assert record["topic"] == "friendship"
        assert record["results"] == {
            "ex-2": {"user_answer": "друзья", "is_correct": True, "answered_on": "2026-10-19"}
        }

    def test_invalid_story_id(self, tmp_path):
        store = JSONStoryStore(tmp_path)
        with pytest.raises(PersistenceError):
            store.record_exercise_result("../../etc/passwd", "ex-1", ExerciseAttempt(exercise_id="ex-1", user_answer="x"))

    def test_corrupt_file_skipped(self, tmp_path, sample_lesson):
        store = JSONStoryStore(tmp_path)
        save(store, sample_lesson)
        month_dir = tmp_path / "stories" / date.today().strftime("%Y-%m")
        (month_dir / "story-050.json").write_text("{broken", encoding="utf-8")
        assert store.get_stats(SESSION).total_stories == 1

    @pytest.mark.parametrize("corrupt", [
        {"results": {"ex-1": {"user_answer": "a", "is_correct": True, "answered_on": "yesterday"}}},
        {"results": ["ex-1"]},
        {"results": {"ex-1": "correct"}},
        {"lesson": {"vocabulary": "друг"}},
    ])
    def test_malformed_record_skipped(self, tmp_path, sample_lesson, corrupt):
        store = JSONStoryStore(tmp_path)
        saved = save(store, sample_lesson)
        bad = save(store, sample_lesson)
        path = tmp_path / "stories" / f"{bad.story_id}.json"
        record = json.loads(path.read_text(encoding="utf-8"))
        record.update(corrupt)
        path.write_text(json.dumps(record), encoding="utf-8")

        assert store.get_stats(SESSION).total_stories == 1
        assert [r.word for r in store.get_vocabulary(SESSION, "russian")] == ["вместе", "друг"]
        answer(store, saved, "ex-1", "a", True)
        with pytest.raises(PersistenceError):
            answer(store, bad, "ex-1", "a", True)

    def test_non_object_record_skipped(self, tmp_path, sample_lesson):
        store = JSONStoryStore(tmp_path)
        save(store, sample_lesson)
        month_dir = tmp_path / "stories" / date.today().strftime("%Y-%m")
        (month_dir / "story-050.json").write_text("[1, 2]", encoding="utf-8")
        assert store.get_stats(SESSION).total_stories == 1


class TestSession:
    """Test session id persistence."""

    def test_format(self):
        assert re.fullmatch(r"session_\d+_[0-9a-f]{16}", generate_session_id())

    def test_created_once(self, tmp_path):
        first = get_current_session_id(tmp_path / "sessions")
        assert get_current_session_id(tmp_path / "sessions") == first
        assert (tmp_path / "sessions" / "current_session").read_text(encoding="utf-8").strip() == first

    def test_unwritable(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(PersistenceError):
            get_current_session_id(blocker / "sessions")
