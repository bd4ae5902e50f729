"""
Card Store - durable storage for words, cards and the review log.

Every word owns exactly one card; both are created in one transaction and
removed together with the card's reviews. Grading runs load -> schedule ->
write card -> append review inside a single transaction.

Writes are serialized by a process-wide lock. A card that is being graded is
marked in flight; a second grade on it fails fast with Conflict instead of
interleaving. Reads take the same lock, so they never see a card without its
review (or a word without its card).
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from enforcer.errors import Conflict, NotFound
from enforcer.srs import database, models
from enforcer.srs.constants import Grade
from enforcer.srs.memory_state import CardState, ensure_utc, initialize_new_card
from enforcer.srs.scheduler import process_review
from enforcer.types import (
    ContentCorrection,
    DueCard,
    Language,
    ReviewEntry,
    WordEntry,
)

logger = logging.getLogger(__name__)

ReviewProcessor = Callable[[CardState, Grade, datetime], Tuple[CardState, dict]]


# ---- Row conversion ----

def word_from_row(row: models.Word) -> WordEntry:
    return WordEntry(
        id=row.id,
        text=row.text,
        language=Language(row.language),
        translation=row.translation,
        chapter=row.chapter,
        group=row.group_name,
        sentence=row.sentence,
        created_at=row.created_at,
    )


def card_from_row(row: models.CardState) -> CardState:
    return CardState(
        id=row.id,
        word_id=row.word_id,
        due_at=row.due_at,
        interval_days=row.interval_days,
        ease=row.ease,
        reps=row.reps,
        lapses=row.lapses,
    )


def review_from_row(row: models.ReviewEvent) -> ReviewEntry:
    return ReviewEntry(
        id=row.id,
        card_id=row.card_id,
        grade=row.grade,
        reviewed_at=row.reviewed_at,
    )


def due_card_from_rows(card: models.CardState, word: models.Word) -> DueCard:
    return DueCard(
        card_id=card.id,
        word_id=word.id,
        text=word.text,
        translation=word.translation,
        language=Language(word.language),
        chapter=word.chapter,
        group=word.group_name,
        due_at=card.due_at,
        is_new=card_from_row(card).is_new,
    )


def apply_card_state(row: models.CardState, card: CardState) -> None:
    """Copy scheduling fields of `card` onto an ORM row (in place)."""
    row.due_at = card.due_at
    row.interval_days = card.interval_days
    row.ease = card.ease
    row.reps = card.reps
    row.lapses = card.lapses


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CardStore:
    """
    Keyed storage for words, their cards and the append-only review log.
    """

    def __init__(self, engine: Engine, review_processor: ReviewProcessor = process_review):
        self.engine = engine
        self._session_factory = database.get_session_factory(engine)
        self._lock = threading.RLock()
        self._in_flight: set[str] = set()
        self._in_flight_guard = threading.Lock()
        self._process_review = review_processor

    @classmethod
    def open(cls, url: Optional[str] = None, **kwargs) -> "CardStore":
        """Create the engine for `url` (or DATABASE_URL), ensure the schema, wrap it."""
        engine = database.get_engine(url)
        database.init_db(engine)
        return cls(engine, **kwargs)

    # ---- Transactions ----

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        One serialized transaction: commits on success, rolls back on error.
        """
        with self._lock:
            with self._session_factory.begin() as session:
                yield session

    @contextmanager
    def _claim(self, card_id: str) -> Iterator[None]:
        with self._in_flight_guard:
            if card_id in self._in_flight:
                raise Conflict(card_id)
            self._in_flight.add(card_id)
        try:
            yield
        finally:
            with self._in_flight_guard:
                self._in_flight.discard(card_id)

    # ---- Creation ----

    def create(
        self,
        text: str,
        translation: Optional[str] = None,
        *,
        language: Language = Language.DUTCH,
        chapter: Optional[str] = None,
        group: Optional[str] = None,
        sentence: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Tuple[WordEntry, CardState]:
        """
        Create a word and its fresh card in one transaction.

        Args:
            text: Source text
            translation: Translation (optional)
            language: Language of `text`
            chapter: Chapter label (optional)
            group: Group label within the chapter (optional)
            sentence: Example sentence (optional)
            now: Creation time (defaults to now); the card is due at this time

        Returns:
            Tuple of (word, card)
        """
        if now is None:
            now = _utcnow()
        now = ensure_utc(now)

        word_id = str(uuid.uuid4())
        card = initialize_new_card(word_id, now)

        with self.session_scope() as session:
            word_row = models.Word(
                id=word_id,
                text=text,
                language=Language(language).value,
                translation=translation,
                chapter=chapter,
                group_name=group,
                sentence=sentence,
                created_at=now,
            )
            card_row = models.CardState(id=card.id, word_id=word_id, seen_count=0)
            apply_card_state(card_row, card)
            word_row.card = card_row
            session.add(word_row)
            session.flush()
            word = word_from_row(word_row)

        logger.debug("Created word %s (%r) with card %s", word_id, text, card.id)
        return word, card

    # ---- Queries ----

    def get_word(self, word_id: str) -> WordEntry:
        with self.session_scope() as session:
            row = session.get(models.Word, word_id)
            if row is None:
                raise NotFound("word", word_id)
            return word_from_row(row)

    def get_card(self, card_id: str) -> CardState:
        with self.session_scope() as session:
            row = session.get(models.CardState, card_id)
            if row is None:
                raise NotFound("card", card_id)
            return card_from_row(row)

    def get_card_for_word(self, word_id: str) -> CardState:
        with self.session_scope() as session:
            row = session.scalar(
                select(models.CardState).where(models.CardState.word_id == word_id)
            )
            if row is None:
                raise NotFound("card for word", word_id)
            return card_from_row(row)

    def get_due(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> list[DueCard]:
        """
        Cards due at `now`, joined with their words.

        Ordered by due_at ascending, ties broken by card id.

        Args:
            now: Evaluation time (defaults to now)
            limit: Maximum number of cards to return

        Returns:
            List of DueCard values, most overdue first
        """
        if now is None:
            now = _utcnow()

        stmt = (
            select(models.CardState, models.Word)
            .join(models.Word, models.CardState.word_id == models.Word.id)
            .where(models.CardState.due_at <= ensure_utc(now))
            .order_by(models.CardState.due_at, models.CardState.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with self.session_scope() as session:
            return [due_card_from_rows(card, word) for card, word in session.execute(stmt)]

    def counts(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """Return (due, total) card counts at `now`."""
        if now is None:
            now = _utcnow()

        with self.session_scope() as session:
            total = session.scalar(select(func.count()).select_from(models.CardState))
            due = session.scalar(
                select(func.count())
                .select_from(models.CardState)
                .where(models.CardState.due_at <= ensure_utc(now))
            )
        return due, total

    def reviews_for(self, card_id: str) -> list[ReviewEntry]:
        """Review log of a card, oldest first."""
        stmt = (
            select(models.ReviewEvent)
            .where(models.ReviewEvent.card_id == card_id)
            .order_by(models.ReviewEvent.reviewed_at, models.ReviewEvent.id)
        )
        with self.session_scope() as session:
            return [review_from_row(row) for row in session.scalars(stmt)]

    def word_exists(self, text: str, language: Language = Language.DUTCH) -> bool:
        """Case-insensitive duplicate check used by the importer."""
        stmt = (
            select(models.Word.id)
            .where(func.lower(models.Word.text) == text.lower())
            .where(models.Word.language == Language(language).value)
            .limit(1)
        )
        with self.session_scope() as session:
            return session.scalar(stmt) is not None

    def list_words(self) -> list[WordEntry]:
        """All words ordered by chapter, group and creation time."""
        stmt = select(models.Word).order_by(
            models.Word.chapter, models.Word.group_name, models.Word.created_at
        )
        with self.session_scope() as session:
            return [word_from_row(row) for row in session.scalars(stmt)]

    def list_chapters(self) -> list[str]:
        stmt = (
            select(models.Word.chapter)
            .where(models.Word.chapter.is_not(None))
            .where(func.trim(models.Word.chapter) != "")
            .distinct()
            .order_by(models.Word.chapter)
        )
        with self.session_scope() as session:
            return list(session.scalars(stmt))

    def last_group_for_chapter(self, chapter: str) -> Optional[str]:
        """Most recently used group label in a chapter (import continues there)."""
        stmt = (
            select(models.Word.group_name)
            .where(models.Word.chapter == chapter)
            .where(models.Word.group_name.is_not(None))
            .where(func.trim(models.Word.group_name) != "")
            .order_by(models.Word.created_at.desc())
            .limit(1)
        )
        with self.session_scope() as session:
            return session.scalar(stmt)

    # ---- Grading ----

    def apply_grade(
        self,
        card_id: str,
        grade: Grade,
        now: Optional[datetime] = None
    ) -> CardState:
        """
        Grade a card: schedule it, persist it and append a review.

        The card update and the review row commit together or not at all.

        Args:
            card_id: Card to grade
            grade: AGAIN, HARD, GOOD or EASY (or its int/name)
            now: Review time (defaults to now)

        Returns:
            The updated CardState

        Raises:
            NotFound: unknown card id
            Conflict: the card is already being graded, or changed underneath
        """
        grade = Grade.parse(grade)
        if now is None:
            now = _utcnow()
        now = ensure_utc(now)

        with self._claim(card_id):
            try:
                with self.session_scope() as session:
                    row = session.get(models.CardState, card_id)
                    if row is None:
                        raise NotFound("card", card_id)

                    updated, event_data = self._process_review(card_from_row(row), grade, now)

                    apply_card_state(row, updated)
                    row.seen_count = (row.seen_count or 0) + 1
                    self._append_review(session, event_data)
                    session.flush()
            except StaleDataError:
                logger.warning("Card %s changed during grading", card_id)
                raise Conflict(card_id, "card changed underneath; reload and retry")

        logger.debug(
            "Graded card %s %s: interval=%.4f ease=%.2f reps=%d lapses=%d",
            card_id, grade.name, updated.interval_days, updated.ease, updated.reps, updated.lapses,
        )
        return updated

    def _append_review(self, session: Session, event_data: dict) -> None:
        session.add(models.ReviewEvent(
            id=event_data["id"],
            card_id=event_data["card_id"],
            grade=int(event_data["grade"]),
            reviewed_at=event_data["reviewed_at"],
        ))

    # ---- Content ----

    def correct_content(self, word_id: str, correction: ContentCorrection) -> Optional[WordEntry]:
        """
        Apply a text/translation correction. Never touches the card.

        Returns:
            The updated word, or None when the correction changes nothing

        Raises:
            NotFound: unknown word id (non-empty corrections only)
        """
        changes = correction.changes()
        if not changes:
            return None

        with self.session_scope() as session:
            row = session.get(models.Word, word_id)
            if row is None:
                raise NotFound("word", word_id)
            for field, value in changes.items():
                setattr(row, field, value)
            session.flush()
            word = word_from_row(row)

        logger.info("Corrected word %s: %s", word_id, sorted(changes))
        return word

    # ---- Deletion ----

    def delete(self, word_id: str, *, confirm: bool = False) -> None:
        """
        DANGEROUS: delete a word with its card and review history.

        The caller must pass confirm=True after asking the learner.
        """
        if not confirm:
            raise ValueError("delete() is destructive; pass confirm=True")

        with self.session_scope() as session:
            row = session.get(models.Word, word_id)
            if row is None:
                raise NotFound("word", word_id)
            session.delete(row)

        logger.info("Deleted word %s", word_id)

    def delete_all(self, *, confirm: bool = False) -> None:
        """
        DANGEROUS: delete every word, card and review.

        The caller must pass confirm=True after asking the learner.
        """
        if not confirm:
            raise ValueError("delete_all() is destructive; pass confirm=True")

        with self.session_scope() as session:
            session.execute(delete(models.ReviewEvent))
            session.execute(delete(models.CardState))
            session.execute(delete(models.Word))

        logger.warning("Deleted all words, cards and reviews")

    # ---- Export ----

    def snapshot(self) -> dict:
        """
        Dump the whole store in the snapshot wire format.

        Rows are sorted by id so two dumps of the same state compare equal.
        """
        with self.session_scope() as session:
            words = session.scalars(select(models.Word).order_by(models.Word.id)).all()
            cards = session.scalars(select(models.CardState).order_by(models.CardState.id)).all()
            reviews = session.scalars(select(models.ReviewEvent).order_by(models.ReviewEvent.id)).all()

            return {
                "words": [
                    {
                        "id": row.id,
                        "text": row.text,
                        "language": row.language,
                        "translation": row.translation,
                        "chapter": row.chapter,
                        "group_name": row.group_name,
                        "sentence": row.sentence,
                        "created_at": row.created_at.isoformat(),
                    }
                    for row in words
                ],
                "cards": [
                    {
                        "id": row.id,
                        "word_id": row.word_id,
                        "due_at": row.due_at.isoformat(),
                        "interval_days": row.interval_days,
                        "ease": row.ease,
                        "reps": row.reps,
                        "lapses": row.lapses,
                    }
                    for row in cards
                ],
                "reviews": [
                    {
                        "id": row.id,
                        "card_id": row.card_id,
                        "grade": row.grade,
                        "reviewed_at": row.reviewed_at.isoformat(),
                    }
                    for row in reviews
                ],
            }
