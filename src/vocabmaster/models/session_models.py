"""Models for practice-session data structures."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class SessionState(Enum):
    """Lifecycle of a practice session."""
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class Feedback(Enum):
    """Transient feedback shown after an answer."""
    CORRECT = "correct"
    INCORRECT = "incorrect"


class ExerciseType(Enum):
    """Available exercise kinds."""
    MATCHING = "matching"  # Pick the translation of the shown word
    VISUAL = "visual"  # Pick the translation of the shown picture
    AUDIO = "audio"  # Pick the translation of the spoken word
    SENTENCE = "sentence"  # Pick the translation of the word used in a sentence

    @property
    def delays_correct_advance(self) -> bool:
        """Whether positive feedback is shown before the next question loads."""
        return self in (ExerciseType.AUDIO, ExerciseType.SENTENCE)


@dataclass(frozen=True)
class AnswerLogEntry:
    """One answer given during a session."""
    word_id: str
    word: str
    correct: str
    selected: str
    is_correct: bool


@dataclass
class AnswerResult:
    """Outcome of an answer as reported back to the caller."""
    is_correct: bool
    points_awarded: Optional[int] = None


@dataclass
class SessionResult:
    """Aggregated outcome of a practice session, derived from its answer log."""
    correct: int
    wrong: int
    total: int
    accuracy: float  # 0-100
    answers: List[AnswerLogEntry] = field(default_factory=list)


@dataclass
class SessionStats:
    """Running gamification counters of the current session."""
    correct: int = 0
    wrong: int = 0
    streak: int = 0
    points: int = 0
    start_time: Optional[float] = None


@dataclass(frozen=True)
class LevelUpEvent:
    """Signalled when an XP update moves the user to a higher level."""
    user_id: str
    old_level: int
    new_level: int
