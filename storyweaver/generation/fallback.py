"""
Deterministic placeholder lesson.

Used when the AI service cannot be reached or its reply holds no usable
lesson. Pure function of (language, topic); always returns a valid lesson.
"""

from storyweaver.schemas import Exercise, LessonContent, VocabEntry


def fallback_lesson(language: str, topic: str) -> LessonContent:
    """
    Build the placeholder lesson for a language and topic.

    Args:
        language: Language key as chosen by the user (embedded verbatim)
        topic: Topic as typed by the user (embedded verbatim)

    Returns:
        LessonContent with one vocabulary entry and one exercise
    """
    return LessonContent(
        story_text=f"Welcome to your {language} lesson about {topic}. This is a sample story for learning.",
        translation=f"Welcome to your language lesson about {topic}. This is a sample story for learning.",
        vocabulary=[
            VocabEntry(
                word="welcome",
                translation="greeting",
                part_of_speech="interjection",
                example="Welcome to the lesson.",
            ),
        ],
        exercises=[
            Exercise(
                id="ex-1",
                kind="multiple_choice",
                question="What is this story about?",
                answer="learning",
                options=["learning", "working", "playing"],
            ),
        ],
    )
