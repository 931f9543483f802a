"""
Storyweaver viewer - terminal rendering and exercise checking.
"""

from .quiz import calculate_score, check_answer, make_attempt, resolve_choice
from .terminal import (
    color_enabled,
    paint,
    set_color,
    render_header,
    render_main_menu,
    render_language_menu,
    render_level_menu,
    render_topic_prompt,
    render_settings,
    render_lesson,
    render_exercises_header,
    render_exercise,
    render_feedback,
    render_score,
    render_daily_goal,
    render_stats,
    render_vocabulary_list,
    render_status,
    render_success,
    render_warning,
    render_error,
)

__all__ = [
    "calculate_score",
    "check_answer",
    "make_attempt",
    "resolve_choice",
    "color_enabled",
    "paint",
    "set_color",
    "render_header",
    "render_main_menu",
    "render_language_menu",
    "render_level_menu",
    "render_topic_prompt",
    "render_settings",
    "render_lesson",
    "render_exercises_header",
    "render_exercise",
    "render_feedback",
    "render_score",
    "render_daily_goal",
    "render_stats",
    "render_vocabulary_list",
    "render_status",
    "render_success",
    "render_warning",
    "render_error",
]
