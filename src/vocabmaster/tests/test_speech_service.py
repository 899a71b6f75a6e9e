"""Tests for speech output."""
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest
from gtts import gTTSError

from vocabmaster.exceptions import SpeechError
from vocabmaster.services.speech_service import SpeechService


@pytest.fixture
def gtts() -> Generator[MagicMock, None, None]:
    """Replace gTTS with a mock that writes a small file."""
    with patch("vocabmaster.services.speech_service.gTTS") as gtts_class:
        gtts_class.return_value.save.side_effect = lambda path: Path(path).write_bytes(b"mp3")
        yield gtts_class


@pytest.fixture
def speech_service(tmp_path: Path) -> SpeechService:
    """Create a speech service writing into a temporary directory."""
    return SpeechService(audio_dir=tmp_path / "audio", slow=False)


def test_render_english(speech_service: SpeechService, gtts: MagicMock) -> None:
    """Test rendering an English word."""
    path = speech_service.render("apple")

    assert path.exists()
    assert path.parent == speech_service.audio_dir
    assert path.name.startswith("en_apple_")
    gtts.assert_called_once_with(text="apple", lang="en", slow=False)


def test_render_hebrew_uses_gtts_code(speech_service: SpeechService, gtts: MagicMock) -> None:
    """Test that Hebrew is requested with gTTS's language code."""
    speech_service.render("תפוח", "he")
    gtts.assert_called_once_with(text="תפוח", lang="iw", slow=False)


def test_render_reuses_existing_file(speech_service: SpeechService, gtts: MagicMock) -> None:
    """Test that a word is rendered only once."""
    first = speech_service.render("book")
    second = speech_service.render("book")
    assert first == second
    assert gtts.call_count == 1


def test_audio_paths_are_stable_and_distinct(speech_service: SpeechService) -> None:
    """Test that paths depend on text and language only."""
    assert speech_service.audio_path("book", "en") == speech_service.audio_path("book", "en")
    assert speech_service.audio_path("book", "en") != speech_service.audio_path("Book!", "en")
    assert speech_service.audio_path("book", "en") != speech_service.audio_path("book", "he")


def test_render_rejects_bad_input(speech_service: SpeechService, gtts: MagicMock) -> None:
    """Test empty text and unsupported languages."""
    with pytest.raises(SpeechError):
        speech_service.render("   ")
    with pytest.raises(SpeechError):
        speech_service.render("bonjour", "fr")
    gtts.assert_not_called()


def test_render_failure(speech_service: SpeechService, gtts: MagicMock) -> None:
    """Test that gTTS failures become SpeechError."""
    gtts.return_value.save.side_effect = gTTSError("Failed to connect")
    with pytest.raises(SpeechError):
        speech_service.render("apple")


@pytest.mark.asyncio
async def test_speak(speech_service: SpeechService, gtts: MagicMock) -> None:
    """Test speaking without blocking the event loop."""
    english = await speech_service.speak_english("window")
    hebrew = await speech_service.speak_hebrew("חלון")

    assert english.exists()
    assert hebrew.exists()
    assert gtts.call_count == 2


if __name__ == "__main__":
    pytest.main([__file__])
