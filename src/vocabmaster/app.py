"""Main application entry point."""
import logging
import random
from typing import List, Optional

from sqlalchemy.orm import Session

from vocabmaster.config import Settings, settings
from vocabmaster.exceptions import NotFoundError
from vocabmaster.models.learning_models import DEFAULT_WORDS, Role, UserData, Word
from vocabmaster.models.session_models import ExerciseType
from vocabmaster.monitoring import start_monitoring
from vocabmaster.services.persistence import (
    DatabasePersistenceService,
    PersistenceService,
    create_persistence_service,
)
from vocabmaster.services.practice_service import PracticeService
from vocabmaster.services.progress_service import ProgressService
from vocabmaster.services.speech_service import SpeechService
from vocabmaster.services.storage import BaseStorage
from vocabmaster.services.timers import BaseScheduler
from vocabmaster.services.translation_service import TranslationService
from vocabmaster.services.word_list_service import WordListService


class VocabMaster:
    """Main application class."""

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        storage: Optional[BaseStorage] = None,
        db: Optional[Session] = None,
    ):
        """Initialize the application.

        storage and db override the backend the settings would build, which
        lets callers run against memory storage or an existing session.
        """
        self.settings = app_settings or settings
        self.storage = storage
        self.db = db
        self.persistence: Optional[PersistenceService] = None
        self.progress_service: Optional[ProgressService] = None
        self.translation_service: Optional[TranslationService] = None
        self.word_list_service: Optional[WordListService] = None
        self.speech_service: Optional[SpeechService] = None
        self.running = False
        self.logger = logging.getLogger(__name__)

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        try:
            self.persistence = create_persistence_service(
                self.settings, storage=self.storage, db=self.db
            )
            self.logger.info(f"Persistence initialized in {self.settings.storage.mode} mode")

            self.progress_service = ProgressService(self.persistence)
            self.translation_service = TranslationService()
            self.word_list_service = WordListService(self.persistence, self.translation_service)
            self.speech_service = SpeechService(self.settings.paths.audio_dir)
            self.logger.info("Services created")

            if self.settings.monitoring.enabled:
                start_monitoring(self.settings.monitoring.port)
                self.logger.info(f"Metrics exported on port {self.settings.monitoring.port}")

            self.running = True

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the application."""
        if isinstance(self.persistence, DatabasePersistenceService):
            self.persistence.db.close()
            self.logger.info("Database session closed")
        self.persistence = None
        self.progress_service = None
        self.translation_service = None
        self.word_list_service = None
        self.speech_service = None
        if self.running:
            self.logger.info("Application stopped")
        self.running = False

    def _require_persistence(self) -> PersistenceService:
        if self.persistence is None:
            raise RuntimeError("VocabMaster is not started")
        return self.persistence

    def ensure_user(
        self, user_id: str, name: str, role: Role = Role.STUDENT, email: Optional[str] = None
    ) -> UserData:
        """Get a user, creating the account on first use."""
        persistence = self._require_persistence()
        try:
            return persistence.get_user(user_id)
        except NotFoundError:
            self.logger.info(f"Creating {role.value} account {user_id}")
            return persistence.create_user(name, email=email, role=role, user_id=user_id)

    def get_practice_words(self, list_id: Optional[str] = None) -> List[Word]:
        """Words of a word list or text unit; the built-in set when list_id is None."""
        persistence = self._require_persistence()
        if list_id is None:
            return list(DEFAULT_WORDS)
        try:
            return persistence.get_word_list(list_id).words
        except NotFoundError:
            return persistence.get_text_unit(list_id).words

    def practice(
        self,
        user_id: str,
        list_id: Optional[str] = None,
        exercise_type: ExerciseType = ExerciseType.MATCHING,
        scheduler: Optional[BaseScheduler] = None,
        rng: Optional[random.Random] = None,
    ) -> PracticeService:
        """Create a practice run for a user; start it with get_practice_words()."""
        return PracticeService(
            self._require_persistence(),
            user_id,
            list_id=list_id,
            exercise_type=exercise_type,
            scheduler=scheduler,
            rng=rng,
            progress_service=self.progress_service,
        )
