"""Key-value blob storage behind the demo persistence backend."""
import json
import logging
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional

from vocabmaster.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def empty_snapshot() -> Dict[str, Any]:
    """Layout of a fresh demo database."""
    return {"users": {}, "word_lists": [], "text_units": [], "progress": []}


class BaseStorage(ABC):
    """Loads and saves the whole demo snapshot at once."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def save(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError("Subclasses must implement this method")


class MemoryStorage(BaseStorage):
    """Snapshot kept in process memory."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self._data = deepcopy(data) if data is not None else None

    def load(self) -> Dict[str, Any]:
        if self._data is None:
            return empty_snapshot()
        return deepcopy(self._data)

    def save(self, data: Dict[str, Any]) -> None:
        self._data = deepcopy(data)


class JsonFileStorage(BaseStorage):
    """Snapshot kept in a JSON file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return empty_snapshot()
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except ValueError as e:
            # A corrupt snapshot is replaced by an empty one on the next save
            logger.error(f"Demo storage {self.path} is not valid JSON, starting empty: {e}")
            return empty_snapshot()
        except OSError as e:
            raise PersistenceError(f"Could not read demo storage {self.path}: {e}", "load") from e
        snapshot = empty_snapshot()
        snapshot.update(data)
        return snapshot

    def save(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write demo storage {self.path}: {e}", "save") from e
