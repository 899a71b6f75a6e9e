"""Practice orchestration: one student practicing one word set."""
import logging
import random
from dataclasses import replace
from typing import Callable, List, Optional, Sequence

from vocabmaster.exceptions import PersistenceError
from vocabmaster.models.learning_models import DEFAULT_LIST_ID, Word
from vocabmaster.models.session_models import (
    AnswerResult,
    ExerciseType,
    SessionResult,
    SessionStats,
)
from vocabmaster.services.game_service import GameService
from vocabmaster.services.persistence import PersistenceService
from vocabmaster.services.progress_service import ProgressService
from vocabmaster.services.session_service import PracticeSession
from vocabmaster.services.timers import BaseScheduler

logger = logging.getLogger(__name__)


class PracticeService:
    """Connects a practice session to scoring and progress tracking.

    Scoring is applied in memory before anything is written, so a failing
    store never takes points or streaks back; the failure is handed to the
    error listeners instead and the session carries on.
    """

    def __init__(
        self,
        persistence: PersistenceService,
        user_id: str,
        list_id: Optional[str] = None,
        exercise_type: ExerciseType = ExerciseType.MATCHING,
        scheduler: Optional[BaseScheduler] = None,
        rng: Optional[random.Random] = None,
        game_service: Optional[GameService] = None,
        progress_service: Optional[ProgressService] = None,
    ):
        self.user_id = user_id
        self.list_id = list_id or DEFAULT_LIST_ID
        self.exercise_type = exercise_type
        self.game_service = game_service or GameService(persistence, user_id)
        self.progress_service = progress_service or ProgressService(persistence)
        self.session = PracticeSession.for_exercise(
            exercise_type,
            scheduler=scheduler,
            rng=rng,
            on_complete=self._handle_complete,
        )
        self.error_listeners: List[Callable[[PersistenceError], None]] = []
        self.complete_listeners: List[Callable[[SessionResult, SessionStats], None]] = []
        self.errors: List[PersistenceError] = []
        self.result: Optional[SessionResult] = None
        self.final_stats: Optional[SessionStats] = None
        self._session_ended = False

    def start(self, words: Sequence[Word]) -> None:
        if not words:
            logger.warning(f"No words to practice for user {self.user_id}, list {self.list_id}")
            return
        self._reset()
        self.session.start(words)

    def restart(self) -> None:
        self._reset()
        self.session.restart()

    def answer(self, selected: str) -> Optional[AnswerResult]:
        return self.session.answer(selected, self._handle_correct, self._handle_wrong)

    def skip(self) -> None:
        self.session.skip()

    def close(self) -> None:
        self.session.close()

    def _reset(self) -> None:
        self.game_service.start_session()
        self.result = None
        self.final_stats = None
        self.errors = []
        self._session_ended = False

    def _handle_correct(self, word: Word) -> int:
        points = self.game_service.record_correct_answer(word.difficulty)
        self._persist(self.game_service.save)
        self._persist(
            lambda: self.progress_service.record_answer(self.user_id, word.id, self.list_id, True)
        )
        return points

    def _handle_wrong(self, word: Word) -> None:
        self.game_service.record_wrong_answer()
        self._persist(
            lambda: self.progress_service.record_answer(self.user_id, word.id, self.list_id, False)
        )

    def _handle_complete(self, result: SessionResult) -> None:
        if self._session_ended:
            return
        self._session_ended = True
        self.result = result
        self.final_stats = replace(self.game_service.session_stats)
        try:
            self.final_stats = self.game_service.end_session()
        except PersistenceError as e:
            self._report_error(e)
        logger.info(
            f"User {self.user_id} finished practice on list {self.list_id}: "
            f"{result.correct}/{result.total} correct ({result.accuracy:.0f}%)"
        )
        for listener in self.complete_listeners:
            listener(result, self.final_stats)

    def _persist(self, action: Callable[[], object]) -> None:
        try:
            action()
        except PersistenceError as e:
            self._report_error(e)

    def _report_error(self, error: PersistenceError) -> None:
        logger.warning(f"Saving practice data for user {self.user_id} failed: {error}")
        self.errors.append(error)
        for listener in self.error_listeners:
            listener(error)
