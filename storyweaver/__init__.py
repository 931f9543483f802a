"""
Storyweaver - AI-generated graded stories for language learners.

Generates a story with translation, vocabulary and exercises through a local
Ollama model, normalizes the reply into a LessonContent, and tracks progress
in SQLite or JSON files.
"""

from storyweaver.config import VERSION

__version__ = VERSION
