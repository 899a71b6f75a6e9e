"""Exceptions raised by the learning engine."""


class VocabMasterError(Exception):
    """Base class for all engine errors."""


class PersistenceError(VocabMasterError):
    """A progress, game state or content read/write failed."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation


class NotFoundError(PersistenceError):
    """The requested word list, text unit or user does not exist."""


class TranslationError(VocabMasterError):
    """The translation backend failed."""


class SpeechError(VocabMasterError):
    """Speech output could not be produced."""
