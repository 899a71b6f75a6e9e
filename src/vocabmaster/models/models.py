"""Database models for the durable persistence backend."""
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from vocabmaster.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """User account with its game state."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=True)
    role = Column(String, nullable=False, default="student")  # student, teacher
    xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    total_score = Column(Integer, nullable=False, default=0)

    # Relationships
    badges = relationship("UserBadge", back_populates="user", cascade="all, delete-orphan")


class UserBadge(Base, TimestampMixin):
    """Badge earned by a user."""

    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    badge_id = Column(String, nullable=False)

    # Relationships
    user = relationship("User", back_populates="badges")


class WordList(Base, TimestampMixin):
    """Teacher-authored word list."""

    __tablename__ = "word_lists"

    id = Column(String, primary_key=True)
    teacher_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)

    # Relationships
    words = relationship(
        "ListWord",
        back_populates="word_list",
        cascade="all, delete-orphan",
        order_by="ListWord.position",
    )


class TextUnit(Base, TimestampMixin):
    """Teacher-authored reading text with its vocabulary."""

    __tablename__ = "text_units"

    id = Column(String, primary_key=True)
    teacher_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    text = Column(Text, nullable=False)

    # Relationships
    words = relationship(
        "ListWord",
        back_populates="text_unit",
        cascade="all, delete-orphan",
        order_by="ListWord.position",
    )


class ListWord(Base, TimestampMixin):
    """Word belonging to either a word list or a text unit."""

    __tablename__ = "list_words"

    id = Column(Integer, primary_key=True)
    word_id = Column(String, nullable=False)
    word_list_id = Column(String, ForeignKey("word_lists.id"), nullable=True)
    text_unit_id = Column(String, ForeignKey("text_units.id"), nullable=True)
    position = Column(Integer, nullable=False, default=0)
    en = Column(String, nullable=False)
    he = Column(String, nullable=False)
    difficulty = Column(Integer, nullable=False, default=1)  # 1-5
    image_url = Column(String)
    audio_url = Column(String)
    sentence_in_text = Column(Text)

    # Relationships
    word_list = relationship("WordList", back_populates="words")
    text_unit = relationship("TextUnit", back_populates="words")


class Progress(Base, TimestampMixin):
    """Spaced repetition record for one (user, word, list) key."""

    __tablename__ = "progress"
    __table_args__ = (
        UniqueConstraint("user_id", "word_id", "list_id", name="uq_progress_key"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    word_id = Column(String, nullable=False)
    list_id = Column(String, nullable=False, index=True)
    repetitions = Column(Integer, nullable=False, default=0)
    correct_count = Column(Integer, nullable=False, default=0)
    wrong_count = Column(Integer, nullable=False, default=0)
    last_seen = Column(DateTime(timezone=True))
    next_review = Column(DateTime(timezone=True))
    interval = Column(Integer, nullable=False, default=1)  # days
