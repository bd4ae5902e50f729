"""
Reconciliation - merge the remote copy into the local card store.

Merge policy:
- Words and cards are matched by id.
- Content fields (text, translation, language, chapter, group, sentence):
  the remote wins.
- Scheduling fields (due_at, interval, ease, reps, lapses): the local store
  wins; a card seen for the first time is seeded from the remote values.
  A local card that was never graded (for example one seeded for a
  card-less word) gives way to the remote card for the same word.
- Reviews: append-only union keyed by review id; known ids are skipped.

A snapshot is validated completely (row shapes and every cross-row
reference) before anything is written, then applied in one transaction, so
a rejected or failed ingest leaves the store untouched. Re-ingesting the
same snapshot is a no-op, which makes wholesale retries safe.

Every remote-touching operation takes an explicit AuthContext.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from enforcer.card_store import CardStore, apply_card_state
from enforcer.errors import AuthRequired, NotFound, Transient, ValidationError
from enforcer.remote import RemoteStore
from enforcer.schemas import DataApiSnapshot, WordRow
from enforcer.srs import models
from enforcer.srs.memory_state import CardState, initialize_new_card
from enforcer.types import ContentCorrection, WordEntry

logger = logging.getLogger(__name__)

WORD_CONTENT_FIELDS = ("text", "language", "translation", "chapter", "group_name", "sentence")


@dataclass(frozen=True)
class AuthContext:
    """
    Signed-in session passed to every remote-touching call.
    """
    user_id: str
    token: str

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id) and bool(self.token)


def require_auth(auth: Optional[AuthContext], operation: str) -> AuthContext:
    """Raise AuthRequired unless `auth` is a signed-in session."""
    if auth is None or not auth.is_authenticated:
        logger.warning("%s refused: no authenticated session", operation)
        raise AuthRequired(operation)
    return auth


@dataclass
class IngestResult:
    """Counts of what one snapshot ingest changed."""
    words_added: int = 0
    words_updated: int = 0
    cards_added: int = 0
    cards_seeded: int = 0
    cards_replaced: int = 0
    reviews_added: int = 0
    reviews_skipped: int = 0

    @property
    def changed(self) -> bool:
        return any((
            self.words_added, self.words_updated, self.cards_added,
            self.cards_seeded, self.cards_replaced, self.reviews_added,
        ))


def parse_snapshot(snapshot: Union[DataApiSnapshot, dict]) -> DataApiSnapshot:
    """
    Validate the row shapes of a snapshot.

    Raises:
        ValidationError: listing every malformed row
    """
    if isinstance(snapshot, DataApiSnapshot):
        return snapshot
    try:
        return DataApiSnapshot.model_validate(snapshot)
    except PydanticValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        raise ValidationError("Malformed snapshot", errors) from exc


def _duplicates(ids: list[str]) -> list[str]:
    return sorted(key for key, count in Counter(ids).items() if count > 1)


def _untouched_cards(session: Session) -> set[str]:
    """Ids of local cards that were never graded and have no review history."""
    reviewed = set(session.scalars(select(models.ReviewEvent.card_id).distinct()))
    rows = session.execute(
        select(models.CardState.id).where(
            models.CardState.reps == 0,
            models.CardState.lapses == 0,
            models.CardState.interval_days == 0.0,
        )
    )
    return {card_id for (card_id,) in rows if card_id not in reviewed}


class ReconciliationEngine:
    """
    Bidirectional sync between the local CardStore and a RemoteStore.
    """

    def __init__(self, store: CardStore, remote: Optional[RemoteStore] = None):
        self.store = store
        self.remote = remote

    # ---- Inbound ----

    def ingest_snapshot(
        self,
        snapshot: Union[DataApiSnapshot, dict],
        auth: Optional[AuthContext],
        now: Optional[datetime] = None
    ) -> IngestResult:
        """
        Merge a remote snapshot into the local store (all-or-nothing).

        Args:
            snapshot: `{words, cards, reviews}` dict or parsed DataApiSnapshot
            auth: Signed-in session
            now: Due time for cards seeded for card-less words (defaults to now)

        Returns:
            IngestResult with per-table counts

        Raises:
            AuthRequired: no signed-in session (nothing is touched)
            ValidationError: malformed rows or dangling references
            Transient: local storage failure; safe to retry
        """
        require_auth(auth, "ingest_snapshot")
        parsed = parse_snapshot(snapshot)
        if now is None:
            now = datetime.now(timezone.utc)

        try:
            with self.store.session_scope() as session:
                self._check_references(session, parsed)
                result = self._merge(session, parsed, now)
        except OperationalError as exc:
            logger.error("ingest_snapshot: storage failure: %s", exc)
            raise Transient(f"Snapshot ingest failed: {exc}") from exc

        logger.info("Ingested snapshot: %s", result)
        return result

    def _check_references(self, session: Session, snapshot: DataApiSnapshot) -> None:
        errors: list[str] = []

        for table, rows in (("words", snapshot.words), ("cards", snapshot.cards), ("reviews", snapshot.reviews)):
            for duplicate in _duplicates([row.id for row in rows]):
                errors.append(f"{table}: duplicate id {duplicate}")

        local_words = set(session.scalars(select(models.Word.id)))
        local_cards = dict(session.execute(select(models.CardState.id, models.CardState.word_id)).all())
        local_card_by_word = {word_id: card_id for card_id, word_id in local_cards.items()}
        replaceable = _untouched_cards(session)

        known_words = local_words | {row.id for row in snapshot.words}
        known_cards = set(local_cards) | {row.id for row in snapshot.cards}

        for duplicate in _duplicates([row.word_id for row in snapshot.cards]):
            errors.append(f"cards: more than one card for word {duplicate}")

        for row in snapshot.cards:
            if row.word_id not in known_words:
                errors.append(f"cards: card {row.id} references unknown word {row.word_id}")
            if row.id in local_cards and local_cards[row.id] != row.word_id:
                errors.append(
                    f"cards: card {row.id} belongs to word {local_cards[row.id]} locally, "
                    f"not {row.word_id}"
                )
            existing = local_card_by_word.get(row.word_id)
            if existing is not None and existing != row.id and existing not in replaceable:
                errors.append(f"cards: word {row.word_id} already has card {existing}")

        for row in snapshot.reviews:
            if row.card_id not in known_cards:
                errors.append(f"reviews: review {row.id} references unknown card {row.card_id}")

        if errors:
            logger.warning("Snapshot rejected with %d error(s)", len(errors))
            raise ValidationError("Snapshot references are inconsistent", errors)

    def _merge(self, session: Session, snapshot: DataApiSnapshot, now: datetime) -> IngestResult:
        result = IngestResult()

        for row in snapshot.words:
            word = session.get(models.Word, row.id)
            if word is None:
                session.add(_word_from_wire(row))
                result.words_added += 1
            elif _update_word_content(word, row):
                result.words_updated += 1

        cards_by_word: dict[str, str] = dict(
            session.execute(select(models.CardState.word_id, models.CardState.id)).all()
        )
        for row in snapshot.cards:
            if session.get(models.CardState, row.id) is not None:
                continue  # local scheduling state wins
            placeholder = cards_by_word.get(row.word_id)
            if placeholder is not None:
                # Only untouched cards get this far (see _check_references)
                session.delete(session.get(models.CardState, placeholder))
                session.flush()
                result.cards_replaced += 1
                logger.info("Replaced unreviewed card %s with remote card %s", placeholder, row.id)
            card = CardState(
                id=row.id,
                word_id=row.word_id,
                due_at=row.due_at,
                interval_days=row.interval_days,
                ease=row.ease,
                reps=row.reps,
                lapses=row.lapses,
            )
            session.add(_card_row(card))
            cards_by_word[row.word_id] = row.id
            result.cards_added += 1

        for row in snapshot.words:
            if row.id not in cards_by_word:
                card = initialize_new_card(row.id, now)
                session.add(_card_row(card))
                cards_by_word[row.id] = card.id
                result.cards_seeded += 1
                logger.info("Seeded card %s for card-less word %s", card.id, row.id)

        known_reviews = set(session.scalars(select(models.ReviewEvent.id)))
        for row in snapshot.reviews:
            if row.id in known_reviews:
                result.reviews_skipped += 1
                continue
            session.add(models.ReviewEvent(
                id=row.id,
                card_id=row.card_id,
                grade=row.grade,
                reviewed_at=row.reviewed_at,
            ))
            known_reviews.add(row.id)
            result.reviews_added += 1

        session.flush()
        return result

    def refresh_from_remote(self, auth: Optional[AuthContext]) -> IngestResult:
        """
        Fetch a full snapshot from the remote and ingest it.

        Raises:
            AuthRequired, ValidationError, Transient
        """
        require_auth(auth, "refresh_from_remote")
        remote = self._require_remote()
        return self.ingest_snapshot(remote.fetch_snapshot(), auth)

    # ---- Outbound ----

    def push_correction(
        self,
        word_id: str,
        correction: ContentCorrection,
        auth: Optional[AuthContext]
    ) -> Optional[WordEntry]:
        """
        Send a content correction to the remote, then apply it locally.

        The remote is the system of record for content, so nothing changes
        locally unless the remote accepted the edit.

        Returns:
            The updated local word, or None for an empty correction

        Raises:
            AuthRequired: no signed-in session
            NotFound: the local store or the remote does not know the word;
                the local store is checked first so the remote stays untouched
            Transient: the remote call failed or timed out; safe to retry
        """
        require_auth(auth, "push_correction")
        changes = correction.changes()
        if not changes:
            return None

        remote = self._require_remote()
        self.store.get_word(word_id)
        matched = remote.update_word(word_id, changes)
        if matched == 0:
            logger.warning("push_correction: word %s not found remotely", word_id)
            raise NotFound("remote word", word_id)

        return self.store.correct_content(word_id, correction)

    def _require_remote(self) -> RemoteStore:
        if self.remote is None:
            raise Transient("No remote store configured")
        return self.remote


def _word_from_wire(row: WordRow) -> models.Word:
    return models.Word(
        id=row.id,
        text=row.text,
        language=row.language.value,
        translation=row.translation,
        chapter=row.chapter,
        group_name=row.group_name,
        sentence=row.sentence,
        created_at=row.created_at,
    )


def _update_word_content(word: models.Word, row: WordRow) -> bool:
    changed = False
    for field in WORD_CONTENT_FIELDS:
        value = getattr(row, field)
        if field == "language":
            value = value.value
        if getattr(word, field) != value:
            setattr(word, field, value)
            changed = True
    return changed


def _card_row(card: CardState) -> models.CardState:
    row = models.CardState(id=card.id, word_id=card.word_id, seen_count=0)
    apply_card_state(row, card)
    return row
