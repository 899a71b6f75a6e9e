"""Models for learning and practice data structures."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


DEFAULT_LIST_ID = "default"


class Role(Enum):
    """User roles."""
    STUDENT = "student"
    TEACHER = "teacher"


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class Word:
    """A vocabulary item: English headword and its Hebrew translation."""
    id: str
    en: str
    he: str
    difficulty: int = 1  # 1-5
    image_url: Optional[str] = None
    audio_url: Optional[str] = None
    sentence_in_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Word":
        return cls(
            id=str(data["id"]),
            en=data["en"],
            he=data["he"],
            difficulty=int(data.get("difficulty") or 1),
            image_url=data.get("image_url"),
            audio_url=data.get("audio_url"),
            sentence_in_text=data.get("sentence_in_text"),
        )


@dataclass(frozen=True)
class ProgressKey:
    """Unique key of a progress record."""
    user_id: str
    word_id: str
    list_id: str


@dataclass
class ProgressRecord:
    """Spaced repetition state of one word for one user in one list."""
    user_id: str
    word_id: str
    list_id: str
    repetitions: int = 0
    correct_count: int = 0
    wrong_count: int = 0
    last_seen: Optional[datetime] = None
    next_review: Optional[datetime] = None
    interval: int = 1  # days

    @property
    def key(self) -> ProgressKey:
        return ProgressKey(self.user_id, self.word_id, self.list_id)

    @property
    def attempts(self) -> int:
        return self.correct_count + self.wrong_count

    @property
    def success_rate(self) -> float:
        """Share of correct answers, 0.0 when the word was never answered."""
        return self.correct_count / (self.attempts or 1)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_seen"] = _to_iso(self.last_seen)
        data["next_review"] = _to_iso(self.next_review)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        return cls(
            user_id=data["user_id"],
            word_id=data["word_id"],
            list_id=data["list_id"],
            repetitions=data.get("repetitions", 0),
            correct_count=data.get("correct_count", 0),
            wrong_count=data.get("wrong_count", 0),
            last_seen=_from_iso(data.get("last_seen")),
            next_review=_from_iso(data.get("next_review")),
            interval=data.get("interval", 1),
        )


@dataclass
class UserGameState:
    """Persistent gamification state of a user."""
    xp: int = 0
    level: int = 1
    total_score: int = 0
    badges: List[str] = field(default_factory=list)

    def has_badge(self, badge_id: str) -> bool:
        return badge_id in self.badges


@dataclass
class UserData:
    """User account as seen by the engine."""
    id: str
    name: str
    email: Optional[str] = None
    role: Role = Role.STUDENT
    game: UserGameState = field(default_factory=UserGameState)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "xp": self.game.xp,
            "level": self.game.level,
            "total_score": self.game.total_score,
            "badges": list(self.game.badges),
            "created_at": _to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserData":
        return cls(
            id=data["id"],
            name=data["name"],
            email=data.get("email"),
            role=Role(data.get("role", Role.STUDENT.value)),
            game=UserGameState(
                xp=data.get("xp", 0),
                level=data.get("level", 1),
                total_score=data.get("total_score", 0),
                badges=list(data.get("badges", [])),
            ),
            created_at=_from_iso(data.get("created_at")),
        )


@dataclass
class WordListData:
    """Teacher-authored word list."""
    id: str
    teacher_id: str
    name: str
    words: List[Word] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "teacher_id": self.teacher_id,
            "name": self.name,
            "words": [word.to_dict() for word in self.words],
            "created_at": _to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordListData":
        return cls(
            id=data["id"],
            teacher_id=data["teacher_id"],
            name=data["name"],
            words=[Word.from_dict(w) for w in data.get("words", [])],
            created_at=_from_iso(data.get("created_at")),
        )


@dataclass
class TextUnitData:
    """Reading text with the vocabulary picked from it."""
    id: str
    teacher_id: str
    title: str
    text: str
    words: List[Word] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "teacher_id": self.teacher_id,
            "title": self.title,
            "text": self.text,
            "words": [word.to_dict() for word in self.words],
            "created_at": _to_iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextUnitData":
        return cls(
            id=data["id"],
            teacher_id=data["teacher_id"],
            title=data["title"],
            text=data["text"],
            words=[Word.from_dict(w) for w in data.get("words", [])],
            created_at=_from_iso(data.get("created_at")),
        )


# Built-in word set for demo practice
DEFAULT_WORDS = [
    Word("1", "apple", "תפוח", 1),
    Word("2", "book", "ספר", 1),
    Word("3", "computer", "מחשב", 2),
    Word("4", "window", "חלון", 1),
    Word("5", "teacher", "מורה", 1),
    Word("6", "student", "תלמיד", 1),
    Word("7", "beautiful", "יפה", 2),
    Word("8", "important", "חשוב", 2),
    Word("9", "environment", "סביבה", 3),
    Word("10", "knowledge", "ידע", 3),
    Word("11", "understand", "להבין", 2),
    Word("12", "remember", "לזכור", 2),
    Word("13", "difficult", "קשה", 2),
    Word("14", "experience", "ניסיון", 3),
    Word("15", "communication", "תקשורת", 4),
]
