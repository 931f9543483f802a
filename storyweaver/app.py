"""
Interactive menu application.

Main loop: show the menu, run the chosen action, repeat until exit. A
learning session is topic -> generate -> save -> display -> narrate ->
exercises -> score.
"""

import logging
import sys
from typing import Callable, Optional, TextIO

from storyweaver.audio import Narrator, play_audio
from storyweaver.config import LANGUAGES, LEVELS, AppConfig, ConfigManager, language_display, tts_locale
from storyweaver.errors import ConfigError, NarrationError, PersistenceError
from storyweaver.generation import OllamaClient, generate_lesson
from storyweaver.schemas import ExerciseAttempt, LessonContent, SavedStory
from storyweaver.storage import StoryStore
from storyweaver.viewer import (
    calculate_score,
    make_attempt,
    render_daily_goal,
    render_error,
    render_exercise,
    render_exercises_header,
    render_feedback,
    render_header,
    render_language_menu,
    render_lesson,
    render_level_menu,
    render_main_menu,
    render_score,
    render_settings,
    render_stats,
    render_status,
    render_success,
    render_topic_prompt,
    render_vocabulary_list,
    render_warning,
)

logger = logging.getLogger(__name__)

MENU_NEW_SESSION = 1
MENU_LANGUAGE = 2
MENU_LEVEL = 3
MENU_STATS = 4
MENU_VOCABULARY = 5
MENU_SETTINGS = 6
MENU_EXIT = 7

VOCABULARY_LIST_LIMIT = 50


class StoryweaverApp:
    """Menu-driven learning assistant bound to one client, store and config."""

    def __init__(
        self,
        config_manager: ConfigManager,
        client: OllamaClient,
        store: StoryStore,
        narrator: Optional[Narrator] = None,
        input_func: Callable[[str], str] = input,
        out: Optional[TextIO] = None,
        session_id: str = "local",
        exercises_enabled: bool = True,
        config: Optional[AppConfig] = None,
        overrides: Optional[dict[str, str]] = None,
    ):
        """
        Args:
            config_manager: Reads and writes the persisted settings
            client: Completion client (anything with fetch(prompt) and .model)
            store: Story and progress store
            narrator: Narrator, or None to disable narration
            input_func: Line reader, input() by default
            out: Output stream; sys.stdout at print time when None
            session_id: Learner session the store records under
            exercises_enabled: Whether to run the practice exercises
            config: Already-loaded settings (loaded from config_manager if None)
            overrides: language/level for this run only; never saved
        """
        self.config_manager = config_manager
        self.client = client
        self.store = store
        self.narrator = narrator
        self.input_func = input_func
        self.out = out
        self.session_id = session_id
        self.exercises_enabled = exercises_enabled
        self.config: AppConfig = config if config is not None else config_manager.load()
        self.overrides: dict[str, str] = dict(overrides or {})

    @property
    def language(self) -> str:
        return self.overrides.get("language", self.config.language)

    @property
    def level(self) -> str:
        return self.overrides.get("level", self.config.level)

    # -------------------------------------------------------------------------
    # I/O helpers
    # -------------------------------------------------------------------------

    def print(self, text: str = ""):
        out = self.out or sys.stdout
        out.write(text + "\n")
        out.flush()

    def ask(self, prompt: str) -> str:
        """Read one line; end of input counts as 'q'."""
        try:
            return self.input_func(prompt).strip()
        except EOFError:
            return "q"

    def get_choice(self, prompt: str, low: int, high: int) -> Optional[int]:
        """Ask for a number in [low, high]; None when the user enters 'q'."""
        while True:
            answer = self.ask(prompt)
            if answer.lower() == "q":
                return None
            if answer.isdigit() and low <= int(answer) <= high:
                return int(answer)
            self.print(render_error(f"Please enter a number between {low} and {high}"))

    def get_topic(self) -> Optional[str]:
        self.print(render_topic_prompt())
        while True:
            topic = self.ask("Topic: ")
            if topic.lower() == "q":
                return None
            if topic:
                return topic
            self.print(render_error("Please enter a topic"))

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def run(self) -> int:
        """
        Run the menu loop until the user exits.

        Returns:
            Process exit status (0)
        """
        self.print(render_header())
        self.print(render_success("Application ready"))

        try:
            while True:
                self.print(render_main_menu())
                choice = self.get_choice(f"Choose option (1-{MENU_EXIT}): ", 1, MENU_EXIT)
                if choice is None or choice == MENU_EXIT:
                    break
                self.dispatch(choice)
        except KeyboardInterrupt:
            self.print()

        self.print(render_success("Thank you for learning languages! 🌍"))
        return 0

    def dispatch(self, choice: int):
        if choice == MENU_NEW_SESSION:
            if self.start_session():
                self.print(render_success("Learning session completed successfully"))
        elif choice == MENU_LANGUAGE:
            self.select_language()
        elif choice == MENU_LEVEL:
            self.select_level()
        elif choice == MENU_STATS:
            self.show_stats()
        elif choice == MENU_VOCABULARY:
            self.show_vocabulary()
        elif choice == MENU_SETTINGS:
            self.print(render_settings(self.config))

    # -------------------------------------------------------------------------
    # Learning session
    # -------------------------------------------------------------------------

    def start_session(self, topic: Optional[str] = None) -> bool:
        """
        Run one learning session.

        Args:
            topic: Topic to use; prompted for when None

        Returns:
            True if the session ran to the end, False if cancelled or interrupted
        """
        try:
            if topic is None:
                topic = self.get_topic()
                if topic is None:
                    return False
            self._run_session(topic)
            return True
        except KeyboardInterrupt:
            logger.info("Session interrupted by user")
            self.print()
            self.print(render_error("Session interrupted"))
            return False

    def _run_session(self, topic: str):
        language, level = self.language, self.level
        self.print(render_status("🚀", f"Starting {level} {language} session: {topic}"))
        self.print(render_status("🎨", f"Creating {level} {language_display(language)} story..."))

        result = generate_lesson(self.client, language, level, topic)
        if result.fetch_error:
            self.print(render_error(result.fetch_error))
        if result.used_fallback:
            self.print(render_warning("Showing a sample lesson instead of an AI story"))

        saved = self._save(result.lesson, language, level, topic)
        self.print(render_lesson(
            result.lesson,
            language,
            level,
            topic,
            story_id=saved.story_id if saved else None,
            show_translation=self.config.auto_translate,
        ))

        self._narrate(result.lesson, language)

        if self.exercises_enabled and result.lesson.exercises:
            attempts = self.run_exercises(result.lesson, saved)
            self.print(render_score(calculate_score(attempts)))

        self._show_daily_goal()
        self.print(render_success("Lesson completed! Excellent work! 🎉"))

    def _save(self, lesson: LessonContent, language: str, level: str, topic: str) -> Optional[SavedStory]:
        try:
            return self.store.save_story(
                lesson,
                session_id=self.session_id,
                language=language,
                level=level,
                topic=topic,
                model=getattr(self.client, "model", "unknown"),
            )
        except PersistenceError as e:
            logger.error(f"Failed to save story: {e}")
            self.print(render_error(e.user_message()))
            return None

    def _narrate(self, lesson: LessonContent, language: str):
        if self.narrator is None:
            return
        answer = self.ask(f"🎧 Listen to this story in {language.capitalize()}? (y/N): ")
        if answer.lower() not in ("y", "yes"):
            return
        try:
            self.print(render_status("🔊", "Generating audio narration..."))
            path = self.narrator.synthesize(lesson.story_text, tts_locale(language))
            self.print(render_status("🔊", "Playing audio... (Press Ctrl+C to stop)"))
            play_audio(path)
            self.print(render_success("Audio playback completed"))
        except NarrationError as e:
            logger.warning(f"Narration failed: {e}")
            self.print(render_warning(e.user_message()))

    def run_exercises(self, lesson: LessonContent, saved: Optional[SavedStory]) -> list[ExerciseAttempt]:
        """Ask every exercise, record each attempt by exercise id."""
        self.print(render_exercises_header())
        attempts = []
        record_failed = False
        total = len(lesson.exercises)

        for number, exercise in enumerate(lesson.exercises, 1):
            self.print(render_exercise(exercise, number, total))
            user_answer = self.ask("Your answer: ")
            attempt = make_attempt(exercise, user_answer)
            attempts.append(attempt)
            self.print(render_feedback(exercise, attempt.is_correct))

            if saved is None or record_failed:
                continue
            try:
                self.store.record_exercise_result(
                    saved.story_id, saved.exercise_ids[exercise.id], attempt
                )
            except (PersistenceError, KeyError) as e:
                logger.error(f"Failed to record result for {exercise.id}: {e}")
                self.print(render_warning("Exercise results will not be saved for this story"))
                record_failed = True

        return attempts

    def _show_daily_goal(self):
        try:
            stats = self.store.get_stats(self.session_id)
        except PersistenceError as e:
            logger.warning(f"Cannot read statistics: {e}")
            return
        self.print(render_daily_goal(stats.stories_today, self.config.daily_goal))

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def _update_config(self, **changes) -> bool:
        """Save `changes`; a run-only override of the same setting is dropped."""
        try:
            self.config = self.config_manager.update(self.config, **changes)
        except ConfigError as e:
            logger.error(f"Failed to save config: {e}")
            self.print(render_error(e.user_message()))
            return False
        for key in changes:
            self.overrides.pop(key, None)
        return True

    def select_language(self):
        self.print(render_language_menu())
        keys = list(LANGUAGES)
        choice = self.get_choice(f"Choose language (1-{len(keys)}): ", 1, len(keys))
        if choice is None:
            return
        language = keys[choice - 1]
        if self._update_config(language=language):
            self.print(render_success(f"Language set to: {language_display(language)}"))

    def select_level(self):
        self.print(render_level_menu())
        keys = list(LEVELS)
        choice = self.get_choice(f"Choose level (1-{len(keys)}): ", 1, len(keys))
        if choice is None:
            return
        level = keys[choice - 1]
        if self._update_config(level=level):
            self.print(render_success(f"Level set to: {level}"))

    # -------------------------------------------------------------------------
    # Statistics & vocabulary
    # -------------------------------------------------------------------------

    def show_stats(self):
        try:
            stats = self.store.get_stats(self.session_id)
        except PersistenceError as e:
            self.print(render_error(e.user_message()))
            return
        self.print(render_stats(stats))

    def show_vocabulary(self):
        try:
            records = self.store.get_vocabulary(self.session_id, self.language, VOCABULARY_LIST_LIMIT)
        except PersistenceError as e:
            self.print(render_error(e.user_message()))
            return
        self.print(render_vocabulary_list(records))
