"""Persistence backends for users, content and learning progress."""
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vocabmaster import monitoring
from vocabmaster.config import Settings
from vocabmaster.exceptions import NotFoundError, PersistenceError
from vocabmaster.models.learning_models import (
    ProgressKey,
    ProgressRecord,
    Role,
    TextUnitData,
    UserData,
    UserGameState,
    Word,
    WordListData,
)
from vocabmaster.models import models
from vocabmaster.services.storage import BaseStorage, JsonFileStorage

logger = logging.getLogger(__name__)

ProgressUpdater = Callable[[Optional[ProgressRecord]], ProgressRecord]


def new_id(prefix: str) -> str:
    """Generate a document id such as ``list_3f2a9c0d1e4b``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class PersistenceService(ABC):
    """Durable keyed store used by the learning engine.

    Progress records are unique per (user, word, list); writers go through
    update_progress, which performs the read-modify-write on a single record.
    """

    # Users and game state

    @abstractmethod
    def create_user(
        self,
        name: str,
        email: Optional[str] = None,
        role: Role = Role.STUDENT,
        user_id: Optional[str] = None,
    ) -> UserData:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_user(self, user_id: str) -> UserData:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_all_students(self) -> List[UserData]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def save_game_state(self, user_id: str, state: UserGameState) -> None:
        raise NotImplementedError("Subclasses must implement this method")

    def get_game_state(self, user_id: str) -> UserGameState:
        return self.get_user(user_id).game

    # Word lists

    @abstractmethod
    def create_word_list(self, word_list: WordListData) -> WordListData:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_word_lists(self, teacher_id: Optional[str] = None) -> List[WordListData]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_word_list(self, list_id: str) -> WordListData:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def update_word_list(
        self, list_id: str, name: Optional[str] = None, words: Optional[List[Word]] = None
    ) -> WordListData:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def delete_word_list(self, list_id: str) -> None:
        raise NotImplementedError("Subclasses must implement this method")

    # Text units

    @abstractmethod
    def create_text_unit(self, unit: TextUnitData) -> TextUnitData:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_text_units(self, teacher_id: Optional[str] = None) -> List[TextUnitData]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_text_unit(self, unit_id: str) -> TextUnitData:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def update_text_unit(
        self,
        unit_id: str,
        title: Optional[str] = None,
        text: Optional[str] = None,
        words: Optional[List[Word]] = None,
    ) -> TextUnitData:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def delete_text_unit(self, unit_id: str) -> None:
        raise NotImplementedError("Subclasses must implement this method")

    # Progress

    @abstractmethod
    def get_progress(self, user_id: str, list_id: Optional[str] = None) -> List[ProgressRecord]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_progress_record(self, key: ProgressKey) -> Optional[ProgressRecord]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def upsert_progress(self, key: ProgressKey, record: ProgressRecord) -> None:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def get_all_progress(self, list_ids: Sequence[str]) -> List[ProgressRecord]:
        """Progress of every user on the given lists."""
        raise NotImplementedError("Subclasses must implement this method")

    def update_progress(self, key: ProgressKey, updater: ProgressUpdater) -> ProgressRecord:
        """Apply updater to the record stored under key and store the result."""
        record = updater(self.get_progress_record(key))
        self.upsert_progress(key, record)
        return record


class DemoPersistenceService(PersistenceService):
    """Backend keeping everything in one snapshot of an injected storage."""

    def __init__(self, storage: BaseStorage):
        self.storage = storage
        self._data: Optional[Dict[str, Any]] = None

    def init(self) -> "DemoPersistenceService":
        """Load the snapshot. Must be called before any other operation."""
        self._data = self.storage.load()
        logger.info(
            "Demo storage loaded: %d users, %d word lists, %d text units, %d progress records",
            len(self._data["users"]),
            len(self._data["word_lists"]),
            len(self._data["text_units"]),
            len(self._data["progress"]),
        )
        return self

    @property
    def data(self) -> Dict[str, Any]:
        if self._data is None:
            raise PersistenceError("Demo storage used before init()", "init")
        return self._data

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[Dict[str, Any]]:
        """Apply changes to the snapshot and save it, or leave it untouched."""
        previous = copy.deepcopy(self.data)
        try:
            yield self.data
            self.storage.save(self.data)
        except PersistenceError as e:
            self._data = previous
            if not isinstance(e, NotFoundError):
                monitoring.persistence_errors.labels(operation=operation).inc()
                logger.error(f"Demo storage error during {operation}: {e}")
                e.operation = operation
            raise
        except Exception:
            self._data = previous
            raise

    # Users and game state

    def create_user(self, name, email=None, role=Role.STUDENT, user_id=None) -> UserData:
        user = UserData(
            id=user_id or new_id("user"),
            name=name,
            email=email,
            role=role,
            created_at=datetime.now(UTC),
        )
        with self._transaction("create_user") as data:
            if user.id in data["users"]:
                raise PersistenceError(f"User {user.id} already exists", "create_user")
            data["users"][user.id] = user.to_dict()
        return user

    def get_user(self, user_id: str) -> UserData:
        user = self.data["users"].get(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found", "get_user")
        return UserData.from_dict(user)

    def get_all_students(self) -> List[UserData]:
        return [
            UserData.from_dict(user)
            for user in self.data["users"].values()
            if user.get("role") == Role.STUDENT.value
        ]

    def save_game_state(self, user_id: str, state: UserGameState) -> None:
        with self._transaction("save_game_state") as data:
            user = data["users"].get(user_id)
            if not user:
                raise NotFoundError(f"User {user_id} not found", "save_game_state")
            user.update(
                xp=state.xp,
                level=state.level,
                total_score=state.total_score,
                badges=list(state.badges),
            )

    # Word lists

    def _find(self, collection: str, item_id: str) -> Dict[str, Any]:
        for item in self.data[collection]:
            if item["id"] == item_id:
                return item
        label = "Word list" if collection == "word_lists" else "Text unit"
        raise NotFoundError(f"{label} {item_id} not found", f"get_{collection}")

    def create_word_list(self, word_list: WordListData) -> WordListData:
        with self._transaction("create_word_list") as data:
            data["word_lists"].insert(0, word_list.to_dict())
        return word_list

    def get_word_lists(self, teacher_id=None) -> List[WordListData]:
        return [
            WordListData.from_dict(item)
            for item in self.data["word_lists"]
            if teacher_id is None or item["teacher_id"] == teacher_id
        ]

    def get_word_list(self, list_id: str) -> WordListData:
        return WordListData.from_dict(self._find("word_lists", list_id))

    def update_word_list(self, list_id, name=None, words=None) -> WordListData:
        with self._transaction("update_word_list"):
            item = self._find("word_lists", list_id)
            if name is not None:
                item["name"] = name
            if words is not None:
                item["words"] = [word.to_dict() for word in words]
        return WordListData.from_dict(item)

    def delete_word_list(self, list_id: str) -> None:
        with self._transaction("delete_word_list") as data:
            data["word_lists"] = [i for i in data["word_lists"] if i["id"] != list_id]

    # Text units

    def create_text_unit(self, unit: TextUnitData) -> TextUnitData:
        with self._transaction("create_text_unit") as data:
            data["text_units"].insert(0, unit.to_dict())
        return unit

    def get_text_units(self, teacher_id=None) -> List[TextUnitData]:
        return [
            TextUnitData.from_dict(item)
            for item in self.data["text_units"]
            if teacher_id is None or item["teacher_id"] == teacher_id
        ]

    def get_text_unit(self, unit_id: str) -> TextUnitData:
        return TextUnitData.from_dict(self._find("text_units", unit_id))

    def update_text_unit(self, unit_id, title=None, text=None, words=None) -> TextUnitData:
        with self._transaction("update_text_unit"):
            item = self._find("text_units", unit_id)
            if title is not None:
                item["title"] = title
            if text is not None:
                item["text"] = text
            if words is not None:
                item["words"] = [word.to_dict() for word in words]
        return TextUnitData.from_dict(item)

    def delete_text_unit(self, unit_id: str) -> None:
        with self._transaction("delete_text_unit") as data:
            data["text_units"] = [i for i in data["text_units"] if i["id"] != unit_id]

    # Progress

    def get_progress(self, user_id, list_id=None) -> List[ProgressRecord]:
        return [
            ProgressRecord.from_dict(item)
            for item in self.data["progress"]
            if item["user_id"] == user_id and (list_id is None or item["list_id"] == list_id)
        ]

    def _progress_index(self, key: ProgressKey) -> Optional[int]:
        for index, item in enumerate(self.data["progress"]):
            if (item["user_id"], item["word_id"], item["list_id"]) == (
                key.user_id,
                key.word_id,
                key.list_id,
            ):
                return index
        return None

    def get_progress_record(self, key: ProgressKey) -> Optional[ProgressRecord]:
        index = self._progress_index(key)
        if index is None:
            return None
        return ProgressRecord.from_dict(self.data["progress"][index])

    def upsert_progress(self, key: ProgressKey, record: ProgressRecord) -> None:
        if record.key != key:
            raise ValueError(f"Record {record.key} does not match key {key}")
        with self._transaction("upsert_progress") as data:
            index = self._progress_index(key)
            if index is None:
                data["progress"].append(record.to_dict())
            else:
                data["progress"][index] = record.to_dict()

    def get_all_progress(self, list_ids: Sequence[str]) -> List[ProgressRecord]:
        wanted = set(list_ids)
        return [
            ProgressRecord.from_dict(item)
            for item in self.data["progress"]
            if item["list_id"] in wanted
        ]


class DatabasePersistenceService(PersistenceService):
    """Backend storing everything through SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            monitoring.persistence_errors.labels(operation=operation).inc()
            logger.error(f"Database error during {operation}: {e}")
            raise PersistenceError(f"Database error during {operation}: {e}", operation) from e
        except Exception:
            self.db.rollback()
            raise

    @contextmanager
    def _read(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            monitoring.persistence_errors.labels(operation=operation).inc()
            logger.error(f"Database error during {operation}: {e}")
            raise PersistenceError(f"Database error during {operation}: {e}", operation) from e

    # Conversions

    @staticmethod
    def _user_to_data(user: models.User) -> UserData:
        return UserData(
            id=user.id,
            name=user.name,
            email=user.email,
            role=Role(user.role),
            game=UserGameState(
                xp=user.xp,
                level=user.level,
                total_score=user.total_score,
                badges=[badge.badge_id for badge in user.badges],
            ),
            created_at=_as_utc(user.created_at),
        )

    @staticmethod
    def _word_to_data(row: models.ListWord) -> Word:
        return Word(
            id=row.word_id,
            en=row.en,
            he=row.he,
            difficulty=row.difficulty,
            image_url=row.image_url,
            audio_url=row.audio_url,
            sentence_in_text=row.sentence_in_text,
        )

    @staticmethod
    def _words_to_rows(words: Sequence[Word]) -> List[models.ListWord]:
        return [
            models.ListWord(
                word_id=word.id,
                position=position,
                en=word.en,
                he=word.he,
                difficulty=word.difficulty,
                image_url=word.image_url,
                audio_url=word.audio_url,
                sentence_in_text=word.sentence_in_text,
            )
            for position, word in enumerate(words)
        ]

    def _word_list_to_data(self, row: models.WordList) -> WordListData:
        return WordListData(
            id=row.id,
            teacher_id=row.teacher_id,
            name=row.name,
            words=[self._word_to_data(w) for w in row.words],
            created_at=_as_utc(row.created_at),
        )

    def _text_unit_to_data(self, row: models.TextUnit) -> TextUnitData:
        return TextUnitData(
            id=row.id,
            teacher_id=row.teacher_id,
            title=row.title,
            text=row.text,
            words=[self._word_to_data(w) for w in row.words],
            created_at=_as_utc(row.created_at),
        )

    @staticmethod
    def _progress_to_record(row: models.Progress) -> ProgressRecord:
        return ProgressRecord(
            user_id=row.user_id,
            word_id=row.word_id,
            list_id=row.list_id,
            repetitions=row.repetitions,
            correct_count=row.correct_count,
            wrong_count=row.wrong_count,
            last_seen=_as_utc(row.last_seen),
            next_review=_as_utc(row.next_review),
            interval=row.interval,
        )

    # Users and game state

    def _get_user_row(self, user_id: str, operation: str) -> models.User:
        user = self.db.query(models.User).filter(models.User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found", operation)
        return user

    def create_user(self, name, email=None, role=Role.STUDENT, user_id=None) -> UserData:
        user = models.User(
            id=user_id or new_id("user"),
            name=name,
            email=email,
            role=role.value,
            xp=0,
            level=1,
            total_score=0,
        )
        with self._transaction("create_user"):
            self.db.add(user)
        self.db.refresh(user)
        return self._user_to_data(user)

    def get_user(self, user_id: str) -> UserData:
        with self._read("get_user"):
            return self._user_to_data(self._get_user_row(user_id, "get_user"))

    def get_all_students(self) -> List[UserData]:
        with self._read("get_all_students"):
            users = (
                self.db.query(models.User)
                .filter(models.User.role == Role.STUDENT.value)
                .all()
            )
            return [self._user_to_data(user) for user in users]

    def save_game_state(self, user_id: str, state: UserGameState) -> None:
        with self._transaction("save_game_state"):
            user = self._get_user_row(user_id, "save_game_state")
            user.xp = state.xp
            user.level = state.level
            user.total_score = state.total_score
            earned = {badge.badge_id for badge in user.badges}
            for badge_id in state.badges:
                if badge_id not in earned:
                    user.badges.append(models.UserBadge(badge_id=badge_id))

    # Word lists

    def _get_word_list_row(self, list_id: str) -> models.WordList:
        row = self.db.query(models.WordList).filter(models.WordList.id == list_id).first()
        if not row:
            raise NotFoundError(f"Word list {list_id} not found", "get_word_list")
        return row

    def create_word_list(self, word_list: WordListData) -> WordListData:
        row = models.WordList(
            id=word_list.id,
            teacher_id=word_list.teacher_id,
            name=word_list.name,
            created_at=word_list.created_at or datetime.now(UTC),
            words=self._words_to_rows(word_list.words),
        )
        with self._transaction("create_word_list"):
            self.db.add(row)
        return self._word_list_to_data(row)

    def get_word_lists(self, teacher_id=None) -> List[WordListData]:
        with self._read("get_word_lists"):
            query = self.db.query(models.WordList)
            if teacher_id is not None:
                query = query.filter(models.WordList.teacher_id == teacher_id)
            rows = query.order_by(models.WordList.created_at.desc()).all()
            return [self._word_list_to_data(row) for row in rows]

    def get_word_list(self, list_id: str) -> WordListData:
        with self._read("get_word_list"):
            return self._word_list_to_data(self._get_word_list_row(list_id))

    def update_word_list(self, list_id, name=None, words=None) -> WordListData:
        with self._transaction("update_word_list"):
            row = self._get_word_list_row(list_id)
            if name is not None:
                row.name = name
            if words is not None:
                row.words = self._words_to_rows(words)
        return self._word_list_to_data(row)

    def delete_word_list(self, list_id: str) -> None:
        with self._transaction("delete_word_list"):
            row = self.db.query(models.WordList).filter(models.WordList.id == list_id).first()
            if row:
                self.db.delete(row)

    # Text units

    def _get_text_unit_row(self, unit_id: str) -> models.TextUnit:
        row = self.db.query(models.TextUnit).filter(models.TextUnit.id == unit_id).first()
        if not row:
            raise NotFoundError(f"Text unit {unit_id} not found", "get_text_unit")
        return row

    def create_text_unit(self, unit: TextUnitData) -> TextUnitData:
        row = models.TextUnit(
            id=unit.id,
            teacher_id=unit.teacher_id,
            title=unit.title,
            text=unit.text,
            created_at=unit.created_at or datetime.now(UTC),
            words=self._words_to_rows(unit.words),
        )
        with self._transaction("create_text_unit"):
            self.db.add(row)
        return self._text_unit_to_data(row)

    def get_text_units(self, teacher_id=None) -> List[TextUnitData]:
        with self._read("get_text_units"):
            query = self.db.query(models.TextUnit)
            if teacher_id is not None:
                query = query.filter(models.TextUnit.teacher_id == teacher_id)
            rows = query.order_by(models.TextUnit.created_at.desc()).all()
            return [self._text_unit_to_data(row) for row in rows]

    def get_text_unit(self, unit_id: str) -> TextUnitData:
        with self._read("get_text_unit"):
            return self._text_unit_to_data(self._get_text_unit_row(unit_id))

    def update_text_unit(self, unit_id, title=None, text=None, words=None) -> TextUnitData:
        with self._transaction("update_text_unit"):
            row = self._get_text_unit_row(unit_id)
            if title is not None:
                row.title = title
            if text is not None:
                row.text = text
            if words is not None:
                row.words = self._words_to_rows(words)
        return self._text_unit_to_data(row)

    def delete_text_unit(self, unit_id: str) -> None:
        with self._transaction("delete_text_unit"):
            row = self.db.query(models.TextUnit).filter(models.TextUnit.id == unit_id).first()
            if row:
                self.db.delete(row)

    # Progress

    def _progress_query(self, key: ProgressKey):
        return self.db.query(models.Progress).filter(
            models.Progress.user_id == key.user_id,
            models.Progress.word_id == key.word_id,
            models.Progress.list_id == key.list_id,
        )

    def get_progress(self, user_id, list_id=None) -> List[ProgressRecord]:
        with self._read("get_progress"):
            query = self.db.query(models.Progress).filter(models.Progress.user_id == user_id)
            if list_id is not None:
                query = query.filter(models.Progress.list_id == list_id)
            return [self._progress_to_record(row) for row in query.all()]

    def get_progress_record(self, key: ProgressKey) -> Optional[ProgressRecord]:
        with self._read("get_progress_record"):
            row = self._progress_query(key).first()
            return self._progress_to_record(row) if row else None

    @staticmethod
    def _apply_record(row: models.Progress, record: ProgressRecord) -> None:
        row.repetitions = record.repetitions
        row.correct_count = record.correct_count
        row.wrong_count = record.wrong_count
        row.last_seen = record.last_seen
        row.next_review = record.next_review
        row.interval = record.interval

    def upsert_progress(self, key: ProgressKey, record: ProgressRecord) -> None:
        if record.key != key:
            raise ValueError(f"Record {record.key} does not match key {key}")
        with self._transaction("upsert_progress"):
            row = self._progress_query(key).first()
            if row is None:
                row = models.Progress(user_id=key.user_id, word_id=key.word_id, list_id=key.list_id)
                self.db.add(row)
            self._apply_record(row, record)

    def update_progress(self, key: ProgressKey, updater: ProgressUpdater) -> ProgressRecord:
        """Read, update and write the record inside one transaction."""
        with self._transaction("update_progress"):
            row = self._progress_query(key).with_for_update().first()
            record = updater(self._progress_to_record(row) if row else None)
            if record.key != key:
                raise ValueError(f"Record {record.key} does not match key {key}")
            if row is None:
                row = models.Progress(user_id=key.user_id, word_id=key.word_id, list_id=key.list_id)
                self.db.add(row)
            self._apply_record(row, record)
        return record

    def get_all_progress(self, list_ids: Sequence[str]) -> List[ProgressRecord]:
        if not list_ids:
            return []
        with self._read("get_all_progress"):
            rows = (
                self.db.query(models.Progress)
                .filter(models.Progress.list_id.in_(list(list_ids)))
                .all()
            )
            return [self._progress_to_record(row) for row in rows]


def create_persistence_service(
    settings: Settings,
    storage: Optional[BaseStorage] = None,
    db: Optional[Session] = None,
) -> PersistenceService:
    """Pick the persistence backend once, at startup, from configuration."""
    if settings.storage.mode == "demo":
        logger.info("Using demo persistence backend")
        storage = storage or JsonFileStorage(settings.paths.demo_storage_file)
        return DemoPersistenceService(storage).init()

    from vocabmaster.models.base import SessionLocal, init_db

    logger.info("Using database persistence backend")
    if db is None:
        init_db()
        db = SessionLocal()
    return DatabasePersistenceService(db)
