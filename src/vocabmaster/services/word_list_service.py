"""Service for managing teacher-authored word lists and text units."""
import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional, Sequence

from vocabmaster.config import settings
from vocabmaster.models.learning_models import ProgressRecord, TextUnitData, Word, WordListData
from vocabmaster.services.persistence import PersistenceService, new_id
from vocabmaster.services.translation_service import TranslationService, find_sentence_for_word

logger = logging.getLogger(__name__)


@dataclass
class WordAnalytics:
    """Aggregated answers of all students for one word."""
    word_id: str
    list_id: str
    total_attempts: int = 0
    total_correct: int = 0
    total_wrong: int = 0
    student_count: int = 0

    @property
    def success_rate(self) -> float:
        return self.total_correct / self.total_attempts if self.total_attempts > 0 else 0.0


def _normalize_words(words: Sequence[Any], prefix: str) -> List[Word]:
    """Accept Word objects or plain dicts and give every word an id."""
    normalized = []
    for index, word in enumerate(words):
        if isinstance(word, dict):
            word = Word(
                id=str(word.get("id") or f"{new_id(prefix)}_{index}"),
                en=word["en"],
                he=word.get("he") or "",
                difficulty=int(word.get("difficulty") or 1),
                image_url=word.get("image_url"),
                audio_url=word.get("audio_url"),
                sentence_in_text=word.get("sentence_in_text"),
            )
        normalized.append(word)
    return normalized


class WordListService:
    """Service for teacher content and class-wide analytics."""

    def __init__(
        self,
        persistence: PersistenceService,
        translation_service: Optional[TranslationService] = None,
    ):
        """Initialize the service with a persistence backend."""
        self.persistence = persistence
        self.translation_service = translation_service

    # Word lists

    def create_word_list(self, teacher_id: str, name: str, words: Sequence[Any]) -> WordListData:
        """Create a word list owned by teacher_id."""
        word_list = WordListData(
            id=new_id("list"),
            teacher_id=teacher_id,
            name=name,
            words=_normalize_words(words, "word"),
            created_at=datetime.now(UTC),
        )
        created = self.persistence.create_word_list(word_list)
        logger.info(f"Teacher {teacher_id} created word list {created.id} with {len(created.words)} words")
        return created

    def get_word_lists(self, teacher_id: Optional[str] = None) -> List[WordListData]:
        return self.persistence.get_word_lists(teacher_id)

    def get_word_list(self, list_id: str) -> WordListData:
        return self.persistence.get_word_list(list_id)

    def update_word_list(
        self, list_id: str, name: Optional[str] = None, words: Optional[Sequence[Any]] = None
    ) -> WordListData:
        new_words = _normalize_words(words, "word") if words is not None else None
        return self.persistence.update_word_list(list_id, name=name, words=new_words)

    def delete_word_list(self, list_id: str) -> None:
        self.persistence.delete_word_list(list_id)
        logger.info(f"Deleted word list {list_id}")

    # Text units

    def create_text_unit(
        self, teacher_id: str, title: str, text: str, words: Sequence[Any]
    ) -> TextUnitData:
        """Create a text unit; each word gets the sentence of text it appears in.

        Words without a translation are translated when a translation service
        is available.
        """
        prepared = []
        for word in _normalize_words(words, "tw"):
            if not word.sentence_in_text:
                word = replace(word, sentence_in_text=find_sentence_for_word(text, word.en))
            if not word.he and self.translation_service:
                translation = self.translation_service.translate(word.en, context=word.sentence_in_text)
                if translation:
                    word = replace(word, he=translation)
                else:
                    logger.warning(f"No translation found for {word.en!r}")
            prepared.append(word)

        unit = TextUnitData(
            id=new_id("text"),
            teacher_id=teacher_id,
            title=title,
            text=text,
            words=prepared,
            created_at=datetime.now(UTC),
        )
        created = self.persistence.create_text_unit(unit)
        logger.info(f"Teacher {teacher_id} created text unit {created.id} with {len(created.words)} words")
        return created

    def get_text_units(self, teacher_id: Optional[str] = None) -> List[TextUnitData]:
        return self.persistence.get_text_units(teacher_id)

    def get_text_unit(self, unit_id: str) -> TextUnitData:
        return self.persistence.get_text_unit(unit_id)

    def update_text_unit(
        self,
        unit_id: str,
        title: Optional[str] = None,
        text: Optional[str] = None,
        words: Optional[Sequence[Any]] = None,
    ) -> TextUnitData:
        new_words = _normalize_words(words, "tw") if words is not None else None
        return self.persistence.update_text_unit(unit_id, title=title, text=text, words=new_words)

    def delete_text_unit(self, unit_id: str) -> None:
        self.persistence.delete_text_unit(unit_id)
        logger.info(f"Deleted text unit {unit_id}")

    # Analytics

    def get_students_progress(self, list_ids: Sequence[str]) -> List[ProgressRecord]:
        """Progress records of all students on the given lists."""
        if not list_ids:
            return []
        return self.persistence.get_all_progress(list_ids)

    def get_struggling_words_analytics(self, list_ids: Sequence[str]) -> List[WordAnalytics]:
        """Words students find hardest, weakest first.

        Only words with enough answers across the class are reported.
        """
        stats: Dict[str, WordAnalytics] = {}
        for record in self.get_students_progress(list_ids):
            entry = stats.setdefault(record.word_id, WordAnalytics(record.word_id, record.list_id))
            entry.total_attempts += record.attempts
            entry.total_correct += record.correct_count
            entry.total_wrong += record.wrong_count
            entry.student_count += 1

        min_attempts = settings.learning.analytics_min_attempts
        words = [w for w in stats.values() if w.total_attempts >= min_attempts]
        return sorted(words, key=lambda w: w.success_rate)
