"""
SQLAlchemy ORM Models for the card store

Defines Word, CardState and ReviewEvent models. Table and column names match
the snapshot wire format (words / cards / reviews) so rows map 1:1.
"""

from datetime import timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

from enforcer.srs.memory_state import ensure_utc

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Stores naive UTC, returns aware UTC (SQLite drops tzinfo otherwise)."""
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Word(Base):
    """
    A vocabulary entry. Content fields only; never touched by scheduling.
    """
    __tablename__ = 'words'

    id = Column(String(36), primary_key=True)
    text = Column(Text, nullable=False)
    language = Column(String(20), nullable=False)
    translation = Column(Text, nullable=True)
    chapter = Column(String(255), nullable=True)
    group_name = Column(String(255), nullable=True)
    sentence = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False)

    card = relationship(
        "CardState",
        back_populates="word",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Word({self.id}, {self.text!r})>"


class CardState(Base):
    """
    Persistent retention record for a single word (1:1).

    `version` is SQLAlchemy's optimistic-concurrency counter: an UPDATE that
    finds a different version raises StaleDataError.
    """
    __tablename__ = 'cards'

    id = Column(String(36), primary_key=True)
    word_id = Column(String(36), ForeignKey('words.id'), nullable=False, unique=True)

    # Scheduling parameters
    due_at = Column(UTCDateTime, nullable=False)
    interval_days = Column(Float, nullable=False)
    ease = Column(Float, nullable=False)
    reps = Column(Integer, nullable=False, default=0)
    lapses = Column(Integer, nullable=False, default=0)

    # Local-only bookkeeping (never synced)
    seen_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    word = relationship("Word", back_populates="card")
    reviews = relationship(
        "ReviewEvent",
        back_populates="card",
        cascade="all, delete-orphan",
        order_by="ReviewEvent.reviewed_at",
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<CardState({self.id}, word={self.word_id}, due={self.due_at})>"


class ReviewEvent(Base):
    """
    Append-only log entry for one grading action.
    """
    __tablename__ = 'reviews'

    id = Column(String(36), primary_key=True)
    card_id = Column(String(36), ForeignKey('cards.id'), nullable=False)
    grade = Column(Integer, nullable=False)  # 1=AGAIN, 2=HARD, 3=GOOD, 4=EASY
    reviewed_at = Column(UTCDateTime, nullable=False)

    card = relationship("CardState", back_populates="reviews")

    def __repr__(self):
        return f"<ReviewEvent(id={self.id}, card={self.card_id}, grade={self.grade})>"


Index('idx_cards_due_at', CardState.due_at, CardState.id)
Index('idx_reviews_card', ReviewEvent.card_id, ReviewEvent.reviewed_at)
Index('idx_words_chapter_group', Word.chapter, Word.group_name)
