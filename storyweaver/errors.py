"""
Error taxonomy for Storyweaver.

Only FetchError and PersistenceError are ever surfaced to the user, and then
as a single line with a hint. Extraction and shape errors are absorbed by the
normalizer, which falls back to placeholder content.
"""


class StoryweaverError(Exception):
    """Base class for all Storyweaver errors."""

    hint: str = ""

    def user_message(self) -> str:
        """One human-readable line, with the actionable hint if there is one."""
        message = str(self) or self.__class__.__name__
        if self.hint:
            return f"{message} ({self.hint})"
        return message


class FetchError(StoryweaverError):
    """The completion endpoint failed after all retries."""

    hint = "is Ollama running on localhost:11434 and is the model pulled?"


class ExtractionError(StoryweaverError):
    """No parseable JSON structure was found in the AI response."""


class ShapeError(StoryweaverError):
    """A JSON object was found but it is not a lesson payload."""


class PersistenceError(StoryweaverError):
    """A story or exercise result could not be saved."""

    hint = "check that the data directory is writable"


class NarrationError(StoryweaverError):
    """Audio could not be synthesized or played."""

    hint = "use --no-audio to skip narration"


class ConfigError(StoryweaverError):
    """The configuration directory or file could not be set up."""

    hint = "set STORYWEAVER_HOME to a writable directory"


class PromptError(ConfigError):
    """A prompt template is missing, unreadable or lacks required keys."""

    hint = "reinstall polyglot-storyweaver to restore the packaged prompts"
