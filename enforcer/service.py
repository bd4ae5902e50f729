"""
ReviewService - the operations the front ends call.

One object wires the card store, the session manager, the reconciliation
engine, the importer and the issue log together. Front ends own rendering,
retries and messages; this layer only raises the typed errors from
enforcer.errors.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Tuple, Union

from enforcer.card_store import CardStore
from enforcer.config import SessionConfig
from enforcer.importer import ImportAdapter, ImportReport, Translator
from enforcer.issues import IssueLog
from enforcer.reconciliation import AuthContext, IngestResult, ReconciliationEngine
from enforcer.remote import RemoteStore
from enforcer.schemas import DataApiSnapshot, IssueReport, OcrLine
from enforcer.session import SessionManager, SessionState
from enforcer.srs.constants import Grade
from enforcer.types import UNCHANGED, CardView, ContentCorrection, FieldUpdate, WordEntry

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Facade over the review engine.
    """

    def __init__(
        self,
        store: CardStore,
        *,
        remote: Optional[RemoteStore] = None,
        session_config: Optional[SessionConfig] = None,
        issue_log: Optional[IssueLog] = None,
        translator: Optional[Translator] = None
    ):
        self.store = store
        self.session = SessionManager(store, session_config or SessionConfig.from_env())
        self.reconciliation = ReconciliationEngine(store, remote)
        self.importer = ImportAdapter(store, translator)
        self.issue_log = issue_log or IssueLog()

    @classmethod
    def open(cls, database_url: Optional[str] = None, **kwargs) -> "ReviewService":
        """Open the configured card store and build a service around it."""
        return cls(CardStore.open(database_url), **kwargs)

    # ---- Review ----

    def counts(self, now: Optional[datetime] = None) -> Tuple[int, int]:
        """(due, total) card counts."""
        return self.store.counts(now)

    @property
    def session_state(self) -> SessionState:
        return self.session.state

    def start_session(self, now: Optional[datetime] = None) -> None:
        self.session.start_session(now)

    def next_due_card(self, now: Optional[datetime] = None) -> Optional[CardView]:
        return self.session.next_due_card(now)

    def grade_card(
        self,
        card_id: str,
        grade: Union[Grade, int, str],
        now: Optional[datetime] = None
    ) -> None:
        """
        Grade a card.

        Raises:
            NotFound: unknown card id
            Conflict: the card is being graded concurrently
        """
        self.session.grade_card(card_id, Grade.parse(grade), now)

    def end_session(self) -> None:
        self.session.end_session()

    def continue_session(self, now: Optional[datetime] = None) -> None:
        self.session.continue_session(now)

    def decline(self) -> None:
        self.session.decline()

    # ---- Content ----

    def apply_correction_local(
        self,
        word_id: str,
        text: FieldUpdate = UNCHANGED,
        translation: FieldUpdate = UNCHANGED
    ) -> Optional[WordEntry]:
        """Correct text and/or translation in the local store only."""
        return self.store.correct_content(word_id, ContentCorrection(text=text, translation=translation))

    def apply_correction(
        self,
        word_id: str,
        text: FieldUpdate = UNCHANGED,
        translation: FieldUpdate = UNCHANGED,
        *,
        auth: Optional[AuthContext]
    ) -> Optional[WordEntry]:
        """
        Correct a word on the remote first, then locally.

        Raises:
            AuthRequired, NotFound, Transient
        """
        correction = ContentCorrection(text=text, translation=translation)
        return self.reconciliation.push_correction(word_id, correction, auth)

    def report_issue(
        self,
        card_id: str,
        word_id: str,
        note: Optional[str] = None,
        reported_at: Optional[datetime] = None
    ) -> IssueReport:
        """
        Record learner feedback about a card. Scheduling is not affected.

        Raises:
            NotFound: unknown word id
        """
        word = self.store.get_word(word_id)
        report = IssueReport(
            card_id=card_id,
            word_id=word_id,
            text=word.text,
            translation=word.translation,
            note=note,
            reported_at=reported_at or datetime.now(timezone.utc),
        )
        self.issue_log.append(report)
        return report

    # ---- Sync ----

    def refresh_from_data_api(
        self,
        snapshot: Union[DataApiSnapshot, dict],
        auth: Optional[AuthContext]
    ) -> IngestResult:
        """
        Merge a remote snapshot into the local store.

        The drawn card is dropped afterwards so the session re-reads the
        merged due queue.

        Raises:
            AuthRequired, ValidationError, Transient
        """
        result = self.reconciliation.ingest_snapshot(snapshot, auth)
        self.session.clear_queue()
        return result

    def refresh_from_remote(self, auth: Optional[AuthContext]) -> IngestResult:
        """Fetch the remote snapshot and merge it (see refresh_from_data_api)."""
        result = self.reconciliation.refresh_from_remote(auth)
        self.session.clear_queue()
        return result

    # ---- Import ----

    def import_ocr(
        self,
        lines: Iterable[Union[OcrLine, dict]],
        chapter: str,
        initial_group: Optional[str] = None
    ) -> ImportReport:
        return self.importer.import_lines(lines, chapter, initial_group=initial_group)
