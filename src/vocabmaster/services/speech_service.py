"""Speech output for the audio exercise."""
import asyncio
import hashlib
import logging
import re
from pathlib import Path
from typing import Optional

from gtts import gTTS, gTTSError

from vocabmaster.config import settings
from vocabmaster.exceptions import SpeechError

logger = logging.getLogger(__name__)

# gTTS still uses the legacy code for Hebrew
LANGUAGE_CODES = {"en": "en", "he": "iw"}


def _sanitize_filename(text: str) -> str:
    """Sanitize text for use in a filename."""
    return re.sub(r"[^a-zA-Z0-9]", "_", text.lower()) or "speech"


class SpeechService:
    """Renders words and sentences to mp3 files."""

    def __init__(self, audio_dir: Optional[Path] = None, slow: Optional[bool] = None):
        self.audio_dir = Path(audio_dir or settings.paths.audio_dir)
        self.slow = settings.speech.slow if slow is None else slow

    def audio_path(self, text: str, lang: str) -> Path:
        digest = hashlib.md5(text.encode("utf-8")).hexdigest()[:8]
        return self.audio_dir / f"{lang}_{_sanitize_filename(text)[:40]}_{digest}.mp3"

    def render(self, text: str, lang: str = "en") -> Path:
        """Write the spoken text to an mp3 file, reusing an earlier rendering."""
        if not text.strip():
            raise SpeechError("Nothing to speak")
        code = LANGUAGE_CODES.get(lang)
        if code is None:
            raise SpeechError(f"Unsupported language: {lang}")

        path = self.audio_path(text, lang)
        if path.exists():
            return path
        try:
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            gTTS(text=text, lang=code, slow=self.slow).save(str(path))
        except (gTTSError, ValueError, OSError) as e:
            logger.error(f"Error generating speech for {text!r}: {e}")
            raise SpeechError(f"Could not speak {text!r}: {e}") from e
        logger.info(f"Speech generated for {text!r}: {path}")
        return path

    async def speak(self, text: str, lang: str = "en") -> Path:
        """Render text without blocking the event loop."""
        return await asyncio.to_thread(self.render, text, lang)

    async def speak_english(self, word: str) -> Path:
        return await self.speak(word, "en")

    async def speak_hebrew(self, word: str) -> Path:
        return await self.speak(word, "he")
