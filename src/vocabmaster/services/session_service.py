"""Practice session state machine."""
import logging
import random
from typing import Callable, List, Optional, Sequence

from vocabmaster.config import settings
from vocabmaster.models.learning_models import Word
from vocabmaster.models.session_models import (
    AnswerLogEntry,
    AnswerResult,
    ExerciseType,
    Feedback,
    SessionResult,
    SessionState,
)
from vocabmaster.services.option_generator import generate_options, shuffle
from vocabmaster.services.timers import AsyncioScheduler, BaseScheduler, TimerHandle

logger = logging.getLogger(__name__)

AnswerCallback = Callable[[Word], Optional[int]]
CompleteCallback = Callable[[SessionResult], None]


def get_advance_delay(exercise_type: ExerciseType) -> float:
    """Delay before a correctly answered question is replaced, in seconds."""
    if exercise_type.delays_correct_advance:
        return settings.learning.correct_advance_delay
    return 0.0


class PracticeSession:
    """Drives one practice run over a set of words.

    Words are asked in shuffled order. A wrong answer keeps the question and
    shows transient feedback; a correct answer advances, optionally after a
    delay. Every start or restart opens a new generation, and timer callbacks
    belonging to an older generation are dropped. Timers run on the asyncio
    event loop unless another scheduler is given.
    """

    def __init__(
        self,
        scheduler: Optional[BaseScheduler] = None,
        option_count: Optional[int] = None,
        advance_delay: float = 0.0,
        feedback_delay: Optional[float] = None,
        rng: Optional[random.Random] = None,
        on_complete: Optional[CompleteCallback] = None,
    ):
        self.scheduler = scheduler or AsyncioScheduler()
        self.option_count = option_count or settings.learning.options_per_question
        self.advance_delay = advance_delay
        self.feedback_delay = (
            settings.learning.wrong_feedback_delay if feedback_delay is None else feedback_delay
        )
        self.rng = rng
        self.on_complete = on_complete

        self.state = SessionState.LOADING
        self.options: List[str] = []
        self.feedback: Optional[Feedback] = None
        self.is_transitioning = False
        self._words: List[Word] = []
        self._queue: List[Word] = []
        self._index = 0
        self._answers: List[AnswerLogEntry] = []
        self._generation = 0
        self._completed = False
        self._feedback_timer: Optional[TimerHandle] = None
        self._advance_timer: Optional[TimerHandle] = None

    @classmethod
    def for_exercise(cls, exercise_type: ExerciseType, **kwargs) -> "PracticeSession":
        """Create a session configured for the given exercise type."""
        return cls(advance_delay=get_advance_delay(exercise_type), **kwargs)

    @property
    def current_word(self) -> Optional[Word]:
        if self.state is not SessionState.IN_PROGRESS:
            return None
        return self._queue[self._index]

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def total_words(self) -> int:
        return len(self._queue)

    @property
    def queue(self) -> List[Word]:
        return list(self._queue)

    @property
    def answers(self) -> List[AnswerLogEntry]:
        return list(self._answers)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def progress(self) -> float:
        """Share of the queue already passed, in percent."""
        if not self._queue:
            return 0.0
        if self.state is SessionState.COMPLETE:
            return 100.0
        return self._index / len(self._queue) * 100

    def start(self, words: Sequence[Word]) -> None:
        """Begin a session over words. An empty word set is ignored."""
        if not words:
            logger.warning("Practice session start requested with no words, ignoring")
            return
        self._words = list(words)
        self._begin()

    def restart(self) -> None:
        """Start over with a fresh shuffle of the same words."""
        if not self._words:
            logger.warning("Practice session restart requested before start, ignoring")
            return
        self._begin()

    def answer(
        self,
        selected: str,
        on_correct: Optional[AnswerCallback] = None,
        on_incorrect: Optional[Callable[[Word], None]] = None,
    ) -> Optional[AnswerResult]:
        """Evaluate an answer for the current word.

        Returns None when the session does not accept answers right now.
        """
        if self.state is not SessionState.IN_PROGRESS or self.is_transitioning:
            return None

        word = self._queue[self._index]
        is_correct = selected == word.he
        self._answers.append(
            AnswerLogEntry(
                word_id=word.id,
                word=word.en,
                correct=word.he,
                selected=selected,
                is_correct=is_correct,
            )
        )
        logger.debug(f"Answer for word {word.id}: {selected!r}, correct: {is_correct}")

        if is_correct:
            self._cancel_timer("_feedback_timer")
            if self.advance_delay > 0:
                self.feedback = Feedback.CORRECT
                self.is_transitioning = True
                generation = self._generation
                self._advance_timer = self.scheduler.call_later(
                    self.advance_delay,
                    lambda: self._finish_correct(generation, word, on_correct),
                )
                return AnswerResult(is_correct=True)

            points = on_correct(word) if on_correct else None
            self._move_to_next()
            return AnswerResult(is_correct=True, points_awarded=points)

        self.feedback = Feedback.INCORRECT
        if on_incorrect:
            on_incorrect(word)
        self._cancel_timer("_feedback_timer")
        generation = self._generation
        self._feedback_timer = self.scheduler.call_later(
            self.feedback_delay,
            lambda: self._clear_feedback(generation),
        )
        return AnswerResult(is_correct=False)

    def skip(self) -> None:
        """Defer the current word to the end of the queue."""
        if self.state is not SessionState.IN_PROGRESS or self.is_transitioning:
            return
        skipped = self._queue.pop(self._index)
        self._queue.append(skipped)
        self._cancel_timer("_feedback_timer")
        self.feedback = None
        logger.debug(f"Skipped word {skipped.id}")
        self._generate_options()

    def get_session_stats(self) -> SessionResult:
        """Aggregate the answer log."""
        correct = sum(1 for a in self._answers if a.is_correct)
        wrong = len(self._answers) - correct
        total = correct + wrong
        accuracy = correct / total * 100 if total > 0 else 0.0
        return SessionResult(
            correct=correct,
            wrong=wrong,
            total=total,
            accuracy=accuracy,
            answers=list(self._answers),
        )

    def close(self) -> None:
        """Drop pending timers, e.g. when the view showing the session goes away."""
        self._cancel_timers()
        self._generation += 1

    def _begin(self) -> None:
        self._cancel_timers()
        self._generation += 1
        self._queue = shuffle(self._words, self.rng)
        self._index = 0
        self._answers = []
        self._completed = False
        self.feedback = None
        self.is_transitioning = False
        self.state = SessionState.IN_PROGRESS
        self._generate_options()
        logger.info(f"Practice session {self._generation} started with {len(self._queue)} words")

    def _generate_options(self) -> None:
        word = self._queue[self._index]
        self.options = generate_options(
            word.he,
            [w.he for w in self._queue],
            self.option_count,
            self.rng,
        )

    def _finish_correct(
        self, generation: int, word: Word, on_correct: Optional[AnswerCallback]
    ) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping advance timer from stale session {generation}")
            return
        self._advance_timer = None
        try:
            if on_correct:
                on_correct(word)
        finally:
            self._move_to_next()

    def _clear_feedback(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._feedback_timer = None
        if self.feedback is Feedback.INCORRECT:
            self.feedback = None

    def _move_to_next(self) -> None:
        self.feedback = None
        self.is_transitioning = False
        if self._index < len(self._queue) - 1:
            self._index += 1
            self._generate_options()
        else:
            self._complete()

    def _complete(self) -> None:
        if self._completed:
            return
        self._completed = True
        self.state = SessionState.COMPLETE
        self.options = []
        logger.info(f"Practice session {self._generation} complete")
        if self.on_complete:
            self.on_complete(self.get_session_stats())

    def _cancel_timer(self, name: str) -> None:
        timer = getattr(self, name)
        if timer:
            timer.cancel()
            setattr(self, name, None)

    def _cancel_timers(self) -> None:
        self._cancel_timer("_feedback_timer")
        self._cancel_timer("_advance_timer")
