"""English to Hebrew translation for teacher content."""
import logging
import re
import time
from typing import Callable, Dict, List, Optional, Sequence

from deep_translator import GoogleTranslator

from vocabmaster import monitoring
from vocabmaster.config import settings
from vocabmaster.exceptions import TranslationError

logger = logging.getLogger(__name__)

# Common classroom words, answered without a remote call
DICTIONARY: Dict[str, str] = {
    "apple": "תפוח", "book": "ספר", "computer": "מחשב", "window": "חלון",
    "teacher": "מורה", "student": "תלמיד", "beautiful": "יפה", "important": "חשוב",
    "environment": "סביבה", "knowledge": "ידע", "understand": "להבין", "remember": "לזכור",
    "difficult": "קשה", "experience": "ניסיון", "communication": "תקשורת", "house": "בית",
    "water": "מים", "food": "אוכל", "dog": "כלב", "cat": "חתול", "school": "בית ספר",
    "friend": "חבר", "family": "משפחה", "love": "אהבה", "time": "זמן", "day": "יום",
    "night": "לילה", "morning": "בוקר", "city": "עיר", "world": "עולם", "life": "חיים",
    "work": "עבודה", "child": "ילד", "children": "ילדים", "man": "איש", "woman": "אישה",
    "people": "אנשים", "big": "גדול", "small": "קטן", "new": "חדש", "old": "ישן",
    "good": "טוב", "bad": "רע", "happy": "שמח", "sad": "עצוב", "fast": "מהיר",
    "slow": "איטי", "help": "עזרה", "learn": "ללמוד", "write": "לכתוב", "read": "לקרוא",
    "speak": "לדבר", "think": "לחשוב", "go": "ללכת", "come": "לבוא", "see": "לראות",
    "know": "לדעת", "want": "לרצות", "give": "לתת", "take": "לקחת", "make": "לעשות",
    "find": "למצוא", "run": "לרוץ", "walk": "ללכת", "eat": "לאכול", "drink": "לשתות",
    "play": "לשחק", "open": "לפתוח", "close": "לסגור", "begin": "להתחיל", "end": "לסיים",
    "story": "סיפור", "adventure": "הרפתקה", "color": "צבע", "red": "אדום", "blue": "כחול",
    "green": "ירוק", "white": "לבן", "black": "שחור", "sun": "שמש", "moon": "ירח",
    "star": "כוכב", "tree": "עץ", "flower": "פרח", "mountain": "הר", "river": "נהר",
    "sea": "ים", "rain": "גשם", "wind": "רוח",
}

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+")


def find_sentence_for_word(text: str, word: str) -> str:
    """Return the sentence of text that contains word as a whole word.

    Falls back to the first sentence when the word does not occur.
    """
    sentences = _SENTENCE_RE.findall(text) or [text]
    word_re = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
    for sentence in sentences:
        if word_re.search(sentence):
            return sentence.strip()
    return text.split(".")[0].strip() + "."


class TranslationService:
    """Translates single words, dictionary first and Google Translate second."""

    def __init__(
        self,
        source_lang: Optional[str] = None,
        target_lang: Optional[str] = None,
        request_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source_lang = source_lang or settings.translation.source_lang
        self.target_lang = target_lang or settings.translation.target_lang
        self.request_delay = (
            settings.translation.request_delay if request_delay is None else request_delay
        )
        self.sleep = sleep
        self.translator = GoogleTranslator(source=self.source_lang, target=self.target_lang)

    def _translate_remote(self, text: str) -> str:
        try:
            return self.translator.translate(text)
        except Exception as e:
            # deep_translator raises unrelated exception types for network and quota errors
            raise TranslationError(f"Could not translate {text!r}: {e}") from e

    def translate(self, word: str, context: Optional[str] = None) -> Optional[str]:
        """Translate a word, or return None when no translation is found.

        Google Translate takes no context, so context only shows up in the logs.
        """
        lower = word.lower().strip()
        if lower in DICTIONARY:
            monitoring.translations.labels(source="dictionary").inc()
            return DICTIONARY[lower]

        try:
            translation = self._translate_remote(lower)
        except TranslationError as e:
            monitoring.translations.labels(source="error").inc()
            logger.warning(f"Translation failed for {word!r} (context: {context!r}): {e}")
            return None

        # The backend echoes the input when it has nothing better
        if not translation or translation.lower().strip() == lower:
            monitoring.translations.labels(source="missing").inc()
            return None
        monitoring.translations.labels(source="remote").inc()
        logger.info(f"Translation generated for word: {word}, translation: {translation}")
        return translation

    def translate_words(self, words: Sequence[str]) -> List[Dict[str, Optional[str]]]:
        """Translate several words, pausing between them to respect rate limits."""
        results = []
        for i, word in enumerate(words):
            results.append({"en": word, "he": self.translate(word)})
            if i < len(words) - 1 and self.request_delay > 0:
                self.sleep(self.request_delay)
        return results
