"""
Story narration with Google Cloud Text-to-Speech.

Synthesized MP3 files are cached in the audio directory by a hash of
(locale, text), so replaying a story never calls the API twice.
"""

import hashlib
import logging
import re
import shutil
import subprocess
from pathlib import Path

from storyweaver.errors import NarrationError

logger = logging.getLogger(__name__)

# Cloud TTS rejects requests above 5000 bytes of input
MAX_REQUEST_BYTES = 4500
SPEAKING_RATE = 0.9

PLAYER_COMMAND = ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"]


# -----------------------------------------------------------------------------
# Google Cloud TTS
# -----------------------------------------------------------------------------

def get_tts_client():
    """Get Google Cloud TTS client."""
    try:
        from google.cloud import texttospeech
        return texttospeech.TextToSpeechClient()
    except Exception as e:
        logger.error(f"Failed to initialize Google Cloud TTS client: {e}")
        logger.error("Make sure GOOGLE_APPLICATION_CREDENTIALS is set or you're authenticated via gcloud")
        raise NarrationError(f"Text-to-speech client unavailable: {e}") from e


def split_for_synthesis(text: str, max_bytes: int = MAX_REQUEST_BYTES) -> list[str]:
    """Split text on sentence boundaries into chunks under `max_bytes` (UTF-8)."""
    sentences = [s for s in re.split(r'(?<=[.!?。؟])\s+', text.strip()) if s]
    chunks: list[str] = []
    current = ""
    for sentence in sentences:
        candidate = f"{current} {sentence}".strip()
        if len(candidate.encode("utf-8")) <= max_bytes:
            current = candidate
            continue
        if current:
            chunks.append(current)
        # A single oversized sentence is cut on character boundaries
        while len(sentence.encode("utf-8")) > max_bytes:
            cut = max_bytes
            while len(sentence[:cut].encode("utf-8")) > max_bytes:
                cut -= 1
            chunks.append(sentence[:cut])
            sentence = sentence[cut:]
        current = sentence
    if current:
        chunks.append(current)
    return chunks


class Narrator:
    """Synthesize story text to cached MP3 files."""

    def __init__(self, audio_dir: Path, client=None):
        """
        Args:
            audio_dir: Directory for cached MP3 files
            client: TextToSpeechClient (created on first use if not given)
        """
        self.audio_dir = Path(audio_dir)
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_tts_client()
        return self._client

    def audio_path(self, text: str, locale: str) -> Path:
        digest = hashlib.sha256(f"{locale}\n{text}".encode("utf-8")).hexdigest()[:16]
        return self.audio_dir / f"story-{locale}-{digest}.mp3"

    def synthesize(self, text: str, locale: str) -> Path:
        """
        Synthesize `text` in `locale` (e.g. "ru-RU") to an MP3 file.

        Args:
            text: Story text to read aloud
            locale: BCP-47 language code for the voice

        Returns:
            Path to the MP3 file (reused if already cached)

        Raises:
            NarrationError: If the text is empty or synthesis fails
        """
        if not text.strip():
            raise NarrationError("Nothing to narrate")

        output_path = self.audio_path(text, locale)
        if output_path.exists() and output_path.stat().st_size > 0:
            logger.debug(f"Using cached audio: {output_path.name}")
            return output_path

        from google.cloud import texttospeech

        voice = texttospeech.VoiceSelectionParams(language_code=locale)
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.MP3,
            speaking_rate=SPEAKING_RATE,
        )

        audio = bytearray()
        try:
            for chunk in split_for_synthesis(text):
                response = self.client.synthesize_speech(
                    input=texttospeech.SynthesisInput(text=chunk),
                    voice=voice,
                    audio_config=audio_config,
                )
                audio.extend(response.audio_content)
        except NarrationError:
            raise
        except Exception as e:
            logger.error(f"TTS synthesis failed for {output_path.name}: {e}")
            raise NarrationError(f"Speech synthesis failed: {e}") from e

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "wb") as out:
                out.write(bytes(audio))
        except OSError as e:
            raise NarrationError(f"Cannot write audio file {output_path}: {e}") from e

        logger.info(f"Audio generated: {output_path.name} ({len(audio) / 1024:.1f} KB)")
        return output_path


def play_audio(path: Path):
    """
    Play an MP3 file with ffplay, blocking until it finishes.

    Raises:
        NarrationError: If the file is missing or empty, ffplay is not
            installed, or playback fails
    """
    path = Path(path)
    if not path.exists() or path.stat().st_size == 0:
        raise NarrationError(f"Audio file missing or empty: {path}")
    if shutil.which(PLAYER_COMMAND[0]) is None:
        raise NarrationError("ffplay not found; install ffmpeg to hear narration")

    try:
        subprocess.run([*PLAYER_COMMAND, str(path)], check=True)
    except (OSError, subprocess.CalledProcessError) as e:
        raise NarrationError(f"Audio playback failed: {e}") from e
