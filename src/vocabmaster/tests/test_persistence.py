"""Tests for the persistence backends."""
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from faker import Faker
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from vocabmaster.config import Settings, StorageSettings
from vocabmaster.exceptions import NotFoundError, PersistenceError
from vocabmaster.models.learning_models import (
    ProgressKey,
    ProgressRecord,
    Role,
    TextUnitData,
    UserGameState,
    Word,
    WordListData,
)
from vocabmaster.services.persistence import (
    DatabasePersistenceService,
    DemoPersistenceService,
    PersistenceService,
    create_persistence_service,
    new_id,
)
from vocabmaster.services.storage import BaseStorage, JsonFileStorage, MemoryStorage

fake = Faker()


@pytest.fixture(params=["persistence", "db_persistence"])
def backend(request) -> PersistenceService:
    """Run against both persistence backends."""
    return request.getfixturevalue(request.param)


def make_word_list(teacher_id: str, name: str, created_at: datetime) -> WordListData:
    return WordListData(
        id=new_id("list"),
        teacher_id=teacher_id,
        name=name,
        words=[Word("w1", "apple", "תפוח", 1), Word("w2", "book", "ספר", 2)],
        created_at=created_at,
    )


def test_new_id() -> None:
    """Test generated document ids."""
    first, second = new_id("list"), new_id("list")
    assert first.startswith("list_")
    assert first != second


def test_users(backend: PersistenceService) -> None:
    """Test creating and reading users."""
    student = backend.create_user(fake.name(), email=fake.email())
    teacher = backend.create_user(fake.name(), role=Role.TEACHER, user_id="teacher-1")

    assert backend.get_user(student.id).name == student.name
    assert backend.get_user("teacher-1").role is Role.TEACHER
    assert [u.id for u in backend.get_all_students()] == [student.id]
    assert backend.get_game_state(teacher.id) == UserGameState()

    with pytest.raises(NotFoundError):
        backend.get_user("missing")


def test_game_state(backend: PersistenceService) -> None:
    """Test saving game state, badges only ever grow."""
    user = backend.create_user(fake.name())
    backend.save_game_state(user.id, UserGameState(xp=120, level=2, total_score=120, badges=["first_steps"]))
    backend.save_game_state(
        user.id, UserGameState(xp=150, level=2, total_score=150, badges=["first_steps", "perfect_round"])
    )

    state = backend.get_game_state(user.id)
    assert (state.xp, state.level, state.total_score) == (150, 2, 150)
    assert sorted(state.badges) == ["first_steps", "perfect_round"]

    with pytest.raises(NotFoundError):
        backend.save_game_state("missing", UserGameState())


def test_word_lists(backend: PersistenceService) -> None:
    """Test word list create, read, update and delete."""
    now = datetime.now(UTC)
    older = backend.create_word_list(make_word_list("t1", "Fruit", now - timedelta(hours=1)))
    newer = backend.create_word_list(make_word_list("t1", "School", now))
    backend.create_word_list(make_word_list("t2", "Other", now))

    assert [wl.id for wl in backend.get_word_lists("t1")] == [newer.id, older.id]
    assert len(backend.get_word_lists()) == 3

    stored = backend.get_word_list(older.id)
    assert stored.name == "Fruit"
    assert [w.en for w in stored.words] == ["apple", "book"]
    assert stored.words[1].difficulty == 2

    updated = backend.update_word_list(older.id, name="Fruits", words=[Word("w3", "window", "חלון")])
    assert updated.name == "Fruits"
    assert [w.id for w in backend.get_word_list(older.id).words] == ["w3"]

    renamed = backend.update_word_list(older.id, name="Food")
    assert [w.id for w in renamed.words] == ["w3"]

    backend.delete_word_list(older.id)
    with pytest.raises(NotFoundError):
        backend.get_word_list(older.id)
    with pytest.raises(NotFoundError):
        backend.update_word_list(older.id, name="gone")


def test_text_units(backend: PersistenceService) -> None:
    """Test text unit create, read, update and delete."""
    unit = TextUnitData(
        id=new_id("text"),
        teacher_id="t1",
        title="At school",
        text="The teacher opens the book. We read together.",
        words=[Word("tw1", "book", "ספר", sentence_in_text="The teacher opens the book.")],
        created_at=datetime.now(UTC),
    )
    backend.create_text_unit(unit)

    stored = backend.get_text_unit(unit.id)
    assert stored.title == "At school"
    assert stored.words[0].sentence_in_text == "The teacher opens the book."
    assert [u.id for u in backend.get_text_units("t1")] == [unit.id]
    assert backend.get_text_units("t2") == []

    updated = backend.update_text_unit(unit.id, title="In class", text="New text.")
    assert (updated.title, updated.text) == ("In class", "New text.")
    assert len(updated.words) == 1

    backend.delete_text_unit(unit.id)
    with pytest.raises(NotFoundError):
        backend.get_text_unit(unit.id)


def test_progress_upsert(backend: PersistenceService) -> None:
    """Test that progress records are unique per key."""
    key = ProgressKey("u1", "w1", "list")
    now = datetime(2025, 1, 1, tzinfo=UTC)
    record = ProgressRecord("u1", "w1", "list", 1, 1, 0, now, now + timedelta(days=1), 1)

    assert backend.get_progress_record(key) is None
    backend.upsert_progress(key, record)
    record.repetitions = 2
    record.interval = 3
    backend.upsert_progress(key, record)

    records = backend.get_progress("u1")
    assert len(records) == 1
    assert records[0].repetitions == 2
    assert records[0].next_review == now + timedelta(days=1)
    assert backend.get_progress_record(key) == records[0]

    with pytest.raises(ValueError):
        backend.upsert_progress(ProgressKey("u1", "w2", "list"), record)


def test_update_progress(backend: PersistenceService) -> None:
    """Test the read-modify-write helper."""
    key = ProgressKey("u1", "w1", "list")
    seen = []

    def updater(current):
        seen.append(current)
        count = current.correct_count + 1 if current else 1
        return ProgressRecord("u1", "w1", "list", repetitions=count, correct_count=count)

    backend.update_progress(key, updater)
    result = backend.update_progress(key, updater)

    assert seen[0] is None
    assert seen[1].correct_count == 1
    assert result.correct_count == 2
    assert backend.get_progress_record(key).correct_count == 2


def test_get_all_progress(backend: PersistenceService) -> None:
    """Test reading progress of every user on a set of lists."""
    for user_id, list_id in [("u1", "a"), ("u2", "a"), ("u1", "b"), ("u3", "c")]:
        key = ProgressKey(user_id, "w1", list_id)
        backend.upsert_progress(key, ProgressRecord(user_id, "w1", list_id))

    assert len(backend.get_all_progress(["a", "b"])) == 3
    assert backend.get_all_progress([]) == []


def test_demo_requires_init() -> None:
    """Test that the demo backend refuses work before init()."""
    service = DemoPersistenceService(MemoryStorage())
    with pytest.raises(PersistenceError):
        service.get_word_lists()


def test_demo_snapshot_survives_restart(tmp_path: Path) -> None:
    """Test that the demo backend reloads what it wrote."""
    path = tmp_path / "demo.json"
    first = DemoPersistenceService(JsonFileStorage(path)).init()
    user = first.create_user("Dana", user_id="dana")
    first.upsert_progress(ProgressKey("dana", "w1", "list"), ProgressRecord("dana", "w1", "list", 1, 1))

    second = DemoPersistenceService(JsonFileStorage(path)).init()
    assert second.get_user(user.id).name == "Dana"
    assert len(second.get_progress("dana")) == 1
    assert json.loads(path.read_text(encoding="utf-8"))["users"]["dana"]["name"] == "Dana"


def test_demo_save_failure_raises_with_operation() -> None:
    """Test that storage write failures surface as PersistenceError."""
    storage = MagicMock(spec=BaseStorage)
    storage.load.return_value = {"users": {}, "word_lists": [], "text_units": [], "progress": []}
    storage.save.side_effect = PersistenceError("read-only", "save")
    service = DemoPersistenceService(storage).init()

    with pytest.raises(PersistenceError) as excinfo:
        service.create_user("Dana")
    assert excinfo.value.operation == "create_user"


class FlakyStorage(MemoryStorage):
    """Memory storage whose writes fail while broken is set."""

    broken = False

    def save(self, data) -> None:
        if self.broken:
            raise PersistenceError("disk full", "save")
        super().save(data)


def test_demo_failed_write_is_discarded() -> None:
    """Test that a failed write leaves neither the snapshot nor storage changed."""
    storage = FlakyStorage()
    service = DemoPersistenceService(storage).init()
    user = service.create_user("Dana", user_id="dana")
    key = ProgressKey("dana", "w1", "list")

    storage.broken = True
    with pytest.raises(PersistenceError) as excinfo:
        service.upsert_progress(key, ProgressRecord("dana", "w1", "list", 1, 1, interval=1))
    assert excinfo.value.operation == "upsert_progress"
    with pytest.raises(PersistenceError):
        service.save_game_state(user.id, UserGameState(xp=50, badges=["first_word"]))
    with pytest.raises(PersistenceError):
        service.delete_word_list("anything")

    assert service.get_progress("dana") == []
    assert service.get_game_state("dana").xp == 0

    storage.broken = False
    service.create_word_list(make_word_list("t1", "Fruit", datetime.now(UTC)))
    reloaded = DemoPersistenceService(storage).init()
    assert reloaded.get_progress("dana") == []
    assert reloaded.get_game_state("dana").badges == []
    assert len(reloaded.get_word_lists()) == 1


def test_demo_missing_item_leaves_snapshot(persistence: DemoPersistenceService) -> None:
    """Test that a not-found update does not touch the snapshot."""
    with pytest.raises(NotFoundError):
        persistence.update_word_list("missing", name="Renamed")
    assert persistence.get_word_lists() == []


def test_duplicate_user_id_is_rejected(backend: PersistenceService) -> None:
    """Test that creating a user twice keeps the existing user's progress."""
    backend.create_user("Dana", user_id="dana")
    backend.save_game_state("dana", UserGameState(xp=120, level=2, total_score=120, badges=["first_word"]))

    with pytest.raises(PersistenceError):
        backend.create_user("Someone Else", user_id="dana")

    user = backend.get_user("dana")
    assert user.name == "Dana"
    assert user.game.xp == 120
    assert user.game.badges == ["first_word"]


def test_database_error_is_wrapped(db: Session) -> None:
    """Test that SQLAlchemy errors become PersistenceError and roll back."""
    db.commit = MagicMock(side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error")))
    db.rollback = MagicMock()
    service = DatabasePersistenceService(db)

    with pytest.raises(PersistenceError) as excinfo:
        service.upsert_progress(ProgressKey("u1", "w1", "list"), ProgressRecord("u1", "w1", "list"))
    assert excinfo.value.operation == "upsert_progress"
    db.rollback.assert_called_once()


def test_database_missing_user_rolls_back(db: Session) -> None:
    """Test that a missing user inside a transaction is reported as not found."""
    service = DatabasePersistenceService(db)
    with pytest.raises(NotFoundError):
        service.save_game_state("missing", UserGameState())


def test_create_persistence_service_demo() -> None:
    """Test that demo mode builds an initialized demo backend."""
    storage = MemoryStorage()
    service = create_persistence_service(Settings(storage=StorageSettings(mode="demo")), storage=storage)
    assert isinstance(service, DemoPersistenceService)
    assert service.get_word_lists() == []


def test_create_persistence_service_database(db: Session) -> None:
    """Test that database mode wraps the given session."""
    service = create_persistence_service(Settings(storage=StorageSettings(mode="database")), db=db)
    assert isinstance(service, DatabasePersistenceService)
    assert service.db is db


if __name__ == "__main__":
    pytest.main([__file__])
