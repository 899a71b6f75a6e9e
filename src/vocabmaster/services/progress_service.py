"""Spaced repetition progress tracking."""
import logging
from datetime import UTC, datetime, timedelta
from typing import Callable, List, Optional, Sequence

from vocabmaster import monitoring
from vocabmaster.config import settings
from vocabmaster.exceptions import PersistenceError
from vocabmaster.models.learning_models import ProgressKey, ProgressRecord
from vocabmaster.services.persistence import PersistenceService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


def schedule_answer(
    record: Optional[ProgressRecord],
    key: ProgressKey,
    is_correct: bool,
    now: datetime,
    intervals: Sequence[int],
) -> ProgressRecord:
    """Compute the record that results from answering key's word.

    A first answer always schedules the word for tomorrow. Later correct
    answers climb the interval ladder one step per repetition and stay on
    its last step; a wrong answer drops back to the first step.
    """
    if record is None:
        interval = intervals[0]
        return ProgressRecord(
            user_id=key.user_id,
            word_id=key.word_id,
            list_id=key.list_id,
            repetitions=1,
            correct_count=1 if is_correct else 0,
            wrong_count=0 if is_correct else 1,
            last_seen=now,
            next_review=now + timedelta(days=interval),
            interval=interval,
        )

    if is_correct:
        repetitions = record.repetitions + 1
        interval = intervals[min(repetitions - 1, len(intervals) - 1)]
        correct_count = record.correct_count + 1
        wrong_count = record.wrong_count
    else:
        repetitions = 0
        interval = intervals[0]
        correct_count = record.correct_count
        wrong_count = record.wrong_count + 1

    return ProgressRecord(
        user_id=record.user_id,
        word_id=record.word_id,
        list_id=record.list_id,
        repetitions=repetitions,
        correct_count=correct_count,
        wrong_count=wrong_count,
        last_seen=now,
        next_review=now + timedelta(days=interval),
        interval=interval,
    )


def is_mastered(record: ProgressRecord) -> bool:
    """A word is mastered once it reached the long interval with a high success rate."""
    return (
        record.interval >= settings.learning.mastery_interval
        and record.success_rate >= settings.learning.mastery_success_rate
    )


def is_due(record: ProgressRecord, now: datetime) -> bool:
    """Records without a review date are due immediately."""
    return record.next_review is None or record.next_review <= now


class ProgressService:
    """Service for recording answers and reporting learning progress."""

    def __init__(
        self,
        persistence: PersistenceService,
        clock: Optional[Clock] = None,
        intervals: Optional[Sequence[int]] = None,
    ):
        """Initialize the service with a persistence backend."""
        self.persistence = persistence
        self.clock = clock or _utc_now
        self.intervals = list(intervals or settings.learning.repetition_intervals)

    def record_answer(
        self, user_id: str, word_id: str, list_id: str, is_correct: bool
    ) -> ProgressRecord:
        """Update the spaced repetition record of a word after an answer.

        Raises PersistenceError when the store fails; the update is not retried.
        """
        key = ProgressKey(user_id, word_id, list_id)
        now = self.clock()
        try:
            record = self.persistence.update_progress(
                key, lambda current: schedule_answer(current, key, is_correct, now, self.intervals)
            )
        except PersistenceError as e:
            monitoring.progress_updates.labels(result="error").inc()
            logger.error(f"Could not record answer for {key}: {e}")
            raise

        monitoring.progress_updates.labels(result="correct" if is_correct else "wrong").inc()
        logger.debug(
            f"Progress for {key}: repetitions={record.repetitions}, "
            f"interval={record.interval}, next_review={record.next_review}"
        )
        return record

    def get_progress(self, user_id: str, list_id: Optional[str] = None) -> List[ProgressRecord]:
        return self.persistence.get_progress(user_id, list_id)

    def get_word_progress(
        self, user_id: str, word_id: str, list_id: Optional[str] = None
    ) -> Optional[ProgressRecord]:
        """Get the record of a word, searching every list when list_id is None."""
        if list_id is not None:
            return self.persistence.get_progress_record(ProgressKey(user_id, word_id, list_id))
        return next(
            (p for p in self.persistence.get_progress(user_id) if p.word_id == word_id),
            None,
        )

    def get_words_due_for_review(
        self, user_id: str, list_id: Optional[str] = None
    ) -> List[ProgressRecord]:
        """Get the records whose review date has passed."""
        now = self.clock()
        return [p for p in self.persistence.get_progress(user_id, list_id) if is_due(p, now)]

    def is_word_mastered(self, user_id: str, word_id: str, list_id: Optional[str] = None) -> bool:
        record = self.get_word_progress(user_id, word_id, list_id)
        return record is not None and is_mastered(record)

    def get_mastered_count(self, user_id: str, list_id: Optional[str] = None) -> int:
        return sum(1 for p in self.persistence.get_progress(user_id, list_id) if is_mastered(p))

    def get_success_rate(self, user_id: str, list_id: Optional[str] = None) -> float:
        """Overall share of correct answers in percent."""
        progress = self.persistence.get_progress(user_id, list_id)
        correct = sum(p.correct_count for p in progress)
        attempts = sum(p.attempts for p in progress)
        return correct / attempts * 100 if attempts > 0 else 0.0

    def get_struggling_words(
        self,
        user_id: str,
        list_id: Optional[str] = None,
        threshold: Optional[float] = None,
    ) -> List[ProgressRecord]:
        """Words answered often enough whose success rate stays below threshold."""
        if threshold is None:
            threshold = settings.learning.struggling_threshold
        min_attempts = settings.learning.struggling_min_attempts
        return [
            p
            for p in self.persistence.get_progress(user_id, list_id)
            if p.attempts >= min_attempts and p.success_rate < threshold
        ]
