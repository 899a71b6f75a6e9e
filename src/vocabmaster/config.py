"""Configuration settings for the learning engine."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
AUDIO_DIR = DATA_DIR / "audio"
DEMO_STORAGE_FILE = DATA_DIR / "vocab_master_demo.json"

# Learning settings
SR_INTERVALS = [1, 3, 7, 14, 30]  # days between reviews
LEVEL_THRESHOLDS = [0, 100, 300, 600, 1000, 1500, 2100, 2800, 3600, 4500, 5500]
POINTS_BY_DIFFICULTY = {1: 10, 2: 20, 3: 30, 4: 40, 5: 50}

STORAGE_MODES = ("demo", "database")


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        AUDIO_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    audio_dir: Path = AUDIO_DIR
    demo_storage_file: Path = DEMO_STORAGE_FILE


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///vocabmaster.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class StorageSettings:
    """Persistence backend selection."""
    mode: str = os.getenv("STORAGE_MODE", "demo")


@dataclass
class LearningSettings:
    """Spaced repetition and practice session settings."""
    repetition_intervals: list[int] = field(default_factory=lambda: list(SR_INTERVALS))
    mastery_interval: int = int(os.getenv("MASTERY_INTERVAL", "30"))
    mastery_success_rate: float = float(os.getenv("MASTERY_SUCCESS_RATE", "0.8"))
    struggling_threshold: float = float(os.getenv("STRUGGLING_THRESHOLD", "0.5"))
    struggling_min_attempts: int = int(os.getenv("STRUGGLING_MIN_ATTEMPTS", "3"))
    analytics_min_attempts: int = int(os.getenv("ANALYTICS_MIN_ATTEMPTS", "5"))
    options_per_question: int = int(os.getenv("OPTIONS_PER_QUESTION", "4"))
    wrong_feedback_delay: float = float(os.getenv("WRONG_FEEDBACK_DELAY", "0.5"))  # seconds
    correct_advance_delay: float = float(os.getenv("CORRECT_ADVANCE_DELAY", "0.6"))  # seconds


@dataclass
class GameSettings:
    """Gamification settings."""
    level_thresholds: list[int] = field(default_factory=lambda: list(LEVEL_THRESHOLDS))
    points_by_difficulty: Dict[int, int] = field(default_factory=lambda: dict(POINTS_BY_DIFFICULTY))
    default_points: int = 10
    streak_bonus_step: int = 2
    streak_bonus_cap: int = 20
    badge_min_correct: int = int(os.getenv("BADGE_MIN_CORRECT", "10"))
    speed_demon_seconds: float = float(os.getenv("SPEED_DEMON_SECONDS", "30"))


@dataclass
class TranslationSettings:
    """Translation service settings."""
    source_lang: str = os.getenv("TRANSLATION_SOURCE_LANG", "en")
    target_lang: str = os.getenv("TRANSLATION_TARGET_LANG", "iw")
    request_delay: float = float(os.getenv("TRANSLATION_REQUEST_DELAY", "0.3"))  # seconds


@dataclass
class SpeechSettings:
    """Speech output settings."""
    default_lang: str = os.getenv("SPEECH_DEFAULT_LANG", "en")
    slow: bool = os.getenv("SPEECH_SLOW", "false").lower() == "true"


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
    enabled: bool = os.getenv("MONITORING_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("MONITORING_PORT", "9090"))


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_storage_settings() -> StorageSettings:
    """Get storage settings."""
    return StorageSettings()


def get_learning_settings() -> LearningSettings:
    """Get learning settings."""
    return LearningSettings()


def get_game_settings() -> GameSettings:
    """Get game settings."""
    return GameSettings()


def get_translation_settings() -> TranslationSettings:
    """Get translation settings."""
    return TranslationSettings()


def get_speech_settings() -> SpeechSettings:
    """Get speech settings."""
    return SpeechSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    storage: StorageSettings = field(default_factory=get_storage_settings)
    learning: LearningSettings = field(default_factory=get_learning_settings)
    game: GameSettings = field(default_factory=get_game_settings)
    translation: TranslationSettings = field(default_factory=get_translation_settings)
    speech: SpeechSettings = field(default_factory=get_speech_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.storage.mode not in STORAGE_MODES:
            raise ValueError(f"STORAGE_MODE must be one of {', '.join(STORAGE_MODES)}")

        intervals = self.learning.repetition_intervals
        if not intervals or any(days < 1 for days in intervals):
            raise ValueError("Repetition intervals must be positive")
        if intervals != sorted(intervals):
            raise ValueError("Repetition intervals must be non-decreasing")

        if self.learning.mastery_success_rate < 0 or self.learning.mastery_success_rate > 1:
            raise ValueError("MASTERY_SUCCESS_RATE must be between 0 and 1")

        if self.learning.options_per_question < 1:
            raise ValueError("OPTIONS_PER_QUESTION must be positive")

        if self.learning.wrong_feedback_delay < 0 or self.learning.correct_advance_delay < 0:
            raise ValueError("Feedback delays cannot be negative")

        thresholds = self.game.level_thresholds
        if not thresholds or thresholds[0] != 0:
            raise ValueError("Level thresholds must start at 0")
        if any(a >= b for a, b in zip(thresholds, thresholds[1:])):
            raise ValueError("Level thresholds must be strictly increasing")


# Create global settings instance
settings = Settings()
settings.validate()
