"""
Terminal renderer - menus, lessons and statistics as printable strings.

Every render_* function returns a string; the app decides where to print it.
Colour is ANSI and switched off when NO_COLOR is set or stdout is not a TTY.
"""

import os
import sys
from typing import Optional

from storyweaver.config import (
    APP_NAME,
    LANGUAGES,
    LEVELS,
    VERSION,
    AppConfig,
    language_display,
)
from storyweaver.schemas import Exercise, LearningStats, LessonContent, VocabularyRecord

PRIMARY = "\033[1;94m"
SUCCESS = "\033[0;32m"
WARNING = "\033[1;33m"
ERROR = "\033[0;31m"
INFO = "\033[0;36m"
TEXT = "\033[0;37m"
ACCENT = "\033[1;35m"
RESET = "\033[0m"

RULE = "─" * 66
DOUBLE_RULE = "═" * 66

_color_override: Optional[bool] = None


def set_color(enabled: Optional[bool]):
    """Force colour on/off; None restores auto-detection."""
    global _color_override
    _color_override = enabled


def color_enabled() -> bool:
    if _color_override is not None:
        return _color_override
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


def paint(text: str, color: str) -> str:
    if not color_enabled():
        return text
    return f"{color}{text}{RESET}"


def _field(icon: str, label: str, value) -> str:
    return f"{icon} {paint(label + ':', TEXT)} {paint(str(value), ACCENT)}"


def _title(icon: str, title: str, rule: str = DOUBLE_RULE) -> list[str]:
    return [paint(f"{icon} {title}", PRIMARY), rule, ""]


# -----------------------------------------------------------------------------
# Status lines
# -----------------------------------------------------------------------------

def render_status(icon: str, message: str) -> str:
    return f"{icon} {paint(message, INFO)}"


def render_success(message: str) -> str:
    return paint(f"✅ {message}", SUCCESS)


def render_warning(message: str) -> str:
    return paint(f"⚠️  {message}", WARNING)


def render_error(message: str) -> str:
    return paint(f"❌ {message}", ERROR)


# -----------------------------------------------------------------------------
# Menus
# -----------------------------------------------------------------------------

def render_header() -> str:
    return "\n".join([
        paint(DOUBLE_RULE, PRIMARY),
        paint(f"  📚 {APP_NAME}  v{VERSION}", PRIMARY),
        paint("  Learn languages through AI-generated stories", TEXT),
        paint(DOUBLE_RULE, PRIMARY),
        "",
    ])


def render_main_menu() -> str:
    lines = _title("🎯", "Main Menu")
    lines += [
        "   " + paint("1. 🆕 New Learning Session", SUCCESS),
        "   " + paint("2. 🌍 Change Language", INFO),
        "   " + paint("3. 📊 Change Level", WARNING),
        "   " + paint("4. 📈 View Statistics", TEXT),
        "   " + paint("5. 📚 Vocabulary List", TEXT),
        "   " + paint("6. ⚙️ Settings", TEXT),
        "   " + paint("7. 🚪 Exit", ERROR),
        "",
    ]
    return "\n".join(lines)


def render_language_menu() -> str:
    lines = _title("🌍", "Select Language", RULE)
    for i, info in enumerate(LANGUAGES.values(), 1):
        lines.append(f"   {i}. {info.display}")
    lines.append("")
    return "\n".join(lines)


def render_level_menu() -> str:
    lines = _title("📊", "Select Difficulty Level", RULE)
    for i, (level, info) in enumerate(LEVELS.items(), 1):
        lines.append(f"   {i}. {level.capitalize()} ({info.code}) - {info.description}")
    lines.append("")
    return "\n".join(lines)


def render_topic_prompt() -> str:
    lines = _title("📝", "Enter Story Topic", RULE)
    lines[-1:] = [paint("Examples: technology, travel, food, sports, animals", TEXT), ""]
    return "\n".join(lines)


def render_settings(config: AppConfig) -> str:
    lines = _title("⚙️", "Settings")
    lines += [
        _field("🌍", "Current Language", language_display(config.language)),
        _field("📊", "Current Level", config.level),
        _field("🔤", "Auto-translate", str(config.auto_translate).lower()),
        _field("🎯", "Daily Goal", f"{config.daily_goal} story/day"),
        _field("💾", "Storage", config.storage),
        "",
    ]
    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Lesson
# -----------------------------------------------------------------------------

def render_lesson(
    lesson: LessonContent,
    language: str,
    level: str,
    topic: str,
    story_id: Optional[str] = None,
    show_translation: bool = True,
) -> str:
    """
    Render a lesson: session details, story, translation and vocabulary.

    Args:
        lesson: Normalized lesson
        language: Language key
        level: Level key
        topic: Topic as entered
        story_id: Store id, shown when the story was saved
        show_translation: Whether to include the English translation

    Returns:
        Printable multi-line string
    """
    lines = _title("📖", "Learning Session")
    lines += [
        _field("🌍", "Language", language_display(language)),
        _field("📊", "Level", level),
        _field("🎭", "Topic", topic),
    ]
    if story_id:
        lines.append(_field("📚", "Story ID", f"#{story_id}"))
    lines += [RULE, ""]

    lines += [paint("📖 Story:", SUCCESS), lesson.story_text, ""]
    if show_translation:
        lines += [paint("🌍 Translation:", INFO), lesson.translation, ""]

    if lesson.vocabulary:
        lines.append(paint("📚 Vocabulary:", WARNING))
        for entry in lesson.vocabulary:
            line = f"   • {entry.word} - {entry.translation}"
            if entry.part_of_speech != "unknown":
                line += f" ({entry.part_of_speech})"
            lines.append(line)
            if entry.example:
                lines.append(paint(f"     {entry.example}", TEXT))
        lines.append("")

    return "\n".join(lines)


def render_exercises_header() -> str:
    return "\n".join([paint("💪 Practice Exercises", PRIMARY), RULE])


def render_exercise(exercise: Exercise, number: int, total: int) -> str:
    lines = [
        "",
        paint(f"Exercise {number}/{total}:", TEXT),
        f"Q: {exercise.question}",
    ]
    if exercise.is_choice:
        lines.append(paint("Options:", INFO))
        for i, option in enumerate(exercise.options, 1):
            lines.append(f"   {i}. {option}")
    lines.append("")
    return "\n".join(lines)


def render_feedback(exercise: Exercise, is_correct: Optional[bool]) -> str:
    if is_correct is None:
        return render_status("📝", "Answer recorded (no reference answer for this one)")
    if is_correct:
        return paint("✅ Correct!", SUCCESS)
    return paint(f"❌ The answer is: {exercise.answer}", ERROR)


def render_score(score_info: dict) -> str:
    return "\n".join([
        "",
        paint(f"📊 Score: {score_info['correct']}/{score_info['total']} correct ({score_info['percent']}%)", PRIMARY),
        RULE,
    ])


def render_daily_goal(stories_today: int, daily_goal: int) -> str:
    if stories_today >= daily_goal:
        return render_success(f"Daily goal reached: {stories_today}/{daily_goal} stories today")
    return render_status("🎯", f"Daily goal: {stories_today}/{daily_goal} stories today")


# -----------------------------------------------------------------------------
# Statistics & vocabulary
# -----------------------------------------------------------------------------

def render_stats(stats: LearningStats) -> str:
    lines = _title("📊", "Learning Statistics")
    if not stats.has_activity:
        lines.append(paint("No learning data yet. Complete your first story!", INFO))
        return "\n".join(lines + [""])

    accuracy = "n/a" if stats.accuracy_percent is None else f"{stats.accuracy_percent:.1f}%"
    lines += [
        _field("📚", "Stories Completed", stats.total_stories),
        _field("📅", "Stories Today", stats.stories_today),
        _field("💪", "Exercises Completed", stats.exercises_completed),
        _field("🎯", "Accuracy", accuracy),
        _field("🔥", "Current Streak", f"{stats.streak_days} days"),
        "",
    ]
    return "\n".join(lines)


def render_vocabulary_list(records: list[VocabularyRecord]) -> str:
    lines = _title("📚", "Vocabulary List")
    if not records:
        lines.append(paint("No vocabulary recorded yet. Complete some stories first!", INFO))
        return "\n".join(lines + [""])

    for record in records:
        line = f"   {paint('•', TEXT)} {record.word} - {record.translation} ({record.times_encountered}x)"
        if record.mastery_rate is not None:
            line += f" {round(record.mastery_rate * 100)}% mastered"
        lines.append(line)
    lines.append("")
    return "\n".join(lines)
