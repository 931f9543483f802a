"""Story narration (text-to-speech and playback)."""

from .narration import Narrator, get_tts_client, play_audio, split_for_synthesis

__all__ = ["Narrator", "get_tts_client", "play_audio", "split_for_synthesis"]
