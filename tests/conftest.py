"""Shared fixtures for Storyweaver tests."""

import json

import pytest

from storyweaver.config import ConfigManager
from storyweaver.errors import FetchError
from storyweaver.schemas import Exercise, LessonContent, VocabEntry
from storyweaver.viewer import set_color


@pytest.fixture(autouse=True)
def no_color():
    set_color(False)
    yield
    set_color(None)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in (
        "STORYWEAVER_HOME",
        "OLLAMA_ENDPOINT",
        "STORYWEAVER_MODEL",
        "STORYWEAVER_TIMEOUT",
        "STORYWEAVER_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)


class FakeClient:
    """Completion client returning canned replies (or raising FetchError)."""

    def __init__(self, replies=None, error=None, model="test-model"):
        self.replies = list(replies or [])
        self.error = error
        self.model = model
        self.prompts = []

    def fetch(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise FetchError(self.error)
        return self.replies.pop(0)


@pytest.fixture
def sample_lesson():
    return LessonContent(
        story_text="Маша и Петя - друзья.",
        translation="Masha and Petya are friends.",
        vocabulary=[
            VocabEntry(word="друг", translation="friend", part_of_speech="noun", example="Он мой друг."),
            VocabEntry(word="вместе", translation="together", part_of_speech="adverb"),
        ],
        exercises=[
            Exercise(
                id="ex-1",
                kind="multiple_choice",
                question="Who are friends?",
                answer="Masha and Petya",
                options=["Masha and Petya", "Ivan and Olga", "Nobody"],
            ),
            Exercise(id="ex-2", kind="fill_blank", question="Маша и Петя - ___.", answer="друзья"),
            Exercise(id="ex-3", kind="qna", question="What do you think?"),
        ],
    )


@pytest.fixture
def sample_reply(sample_lesson):
    """Well-formed AI reply in the field names the prompt asks for."""
    return json.dumps({
        "story_text": sample_lesson.story_text,
        "translation": sample_lesson.translation,
        "vocabulary": [
            {"word": v.word, "translation": v.translation, "part_of_speech": v.part_of_speech, "example": v.example}
            for v in sample_lesson.vocabulary
        ],
        "exercises": [
            {"type": e.kind, "question": e.question, "answer": e.answer, "options": e.options}
            for e in sample_lesson.exercises
        ],
    }, ensure_ascii=False)


@pytest.fixture
def fake_client_factory():
    return FakeClient


@pytest.fixture
def config_manager(tmp_path):
    return ConfigManager(tmp_path / "config" / "app_config.json")
