"""
Review session lifecycle.

A session is an in-memory run over the due queue:

    IDLE --start_session--> ACTIVE --(cap / queue drained / limits)--> PROMPT
    PROMPT --continue_session--> ACTIVE
    PROMPT --decline--> IDLE
    any  --end_session--> IDLE

The manager never writes scheduling state itself; grading goes through
CardStore.apply_grade. Counters live only here and are discarded on end.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from enforcer.card_store import CardStore
from enforcer.config import SessionConfig
from enforcer.srs.constants import Grade
from enforcer.srs.memory_state import CardState, ensure_utc
from enforcer.types import DueCard

logger = logging.getLogger(__name__)

# Rows fetched per due-queue lookup; new cards over the limit are skipped
DUE_LOOKAHEAD = 200


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PROMPT = "prompt"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """
    Sequences one bounded review run over the CardStore's due queue.
    """

    def __init__(self, store: CardStore, config: Optional[SessionConfig] = None):
        self.store = store
        self.config = config or SessionConfig()
        self.state = SessionState.IDLE
        self.current: Optional[DueCard] = None
        self.prompt_reason: Optional[str] = None
        self._reset_counters()

    def _reset_counters(self) -> None:
        self.reviewed = 0
        self.correct = 0
        self.new_reviewed = 0
        self.started_at: Optional[datetime] = None

    # ---- Transitions ----

    def start_session(self, now: Optional[datetime] = None) -> Optional[DueCard]:
        """
        Start (or restart) an Active run and draw its first card.

        Returns:
            The first due card, or None when nothing is due
        """
        now = ensure_utc(now or _utcnow())
        self._reset_counters()
        self.started_at = now
        self.state = SessionState.ACTIVE
        self.prompt_reason = None
        self.current = None
        logger.info("Session started (cap=%d)", self.config.max_cards)
        return self.next_due_card(now)

    def continue_session(self, now: Optional[datetime] = None) -> Optional[DueCard]:
        """Accept the Prompt: begin a fresh Active run."""
        if self.state is not SessionState.PROMPT:
            raise RuntimeError(f"continue_session() needs PROMPT state, not {self.state.value}")
        return self.start_session(now)

    def decline(self) -> None:
        """Decline the Prompt: the session ends."""
        if self.state is not SessionState.PROMPT:
            raise RuntimeError(f"decline() needs PROMPT state, not {self.state.value}")
        self.end_session()

    def end_session(self) -> None:
        """Return to Idle and drop session counters. Cards are not touched."""
        if self.state is not SessionState.IDLE:
            logger.info("Session ended after %d review(s)", self.reviewed)
        self.state = SessionState.IDLE
        self.current = None
        self.prompt_reason = None
        self._reset_counters()

    def clear_queue(self) -> None:
        """Forget the drawn card so the next draw re-reads the store."""
        self.current = None

    def _prompt(self, reason: str) -> None:
        self.state = SessionState.PROMPT
        self.current = None
        self.prompt_reason = reason
        logger.info("Session paused for prompt: %s", reason)

    # ---- Queue ----

    def _limit_reached(self, now: datetime) -> Optional[str]:
        cfg = self.config
        if self.reviewed >= cfg.max_cards:
            return "session cap reached"
        if cfg.stop_after_correct is not None and self.correct >= cfg.stop_after_correct:
            return "correct-answer target reached"
        if cfg.max_minutes is not None and self.started_at is not None:
            if now - self.started_at >= timedelta(minutes=cfg.max_minutes):
                return "time limit reached"
        return None

    def _draw(self, now: datetime) -> Optional[DueCard]:
        allow_new = self.new_reviewed < self.config.max_new_cards
        for card in self.store.get_due(now, limit=DUE_LOOKAHEAD):
            if card.is_new and not allow_new:
                continue
            return card
        return None

    def next_due_card(self, now: Optional[datetime] = None) -> Optional[DueCard]:
        """
        Next card of the Active run, or None.

        Returns None without a transition outside ACTIVE. Inside ACTIVE the
        run moves to PROMPT once a limit is reached, or when the queue runs
        dry after at least one review.
        """
        if self.state is not SessionState.ACTIVE:
            return None
        now = ensure_utc(now or _utcnow())

        reason = self._limit_reached(now)
        if reason:
            self._prompt(reason)
            return None

        card = self._draw(now)
        if card is None:
            self.current = None
            if self.reviewed > 0:
                self._prompt("no more cards due")
            return None

        self.current = card
        return card

    # ---- Grading ----

    def grade_card(
        self,
        card_id: str,
        grade: Grade,
        now: Optional[datetime] = None
    ) -> CardState:
        """
        Grade a card through the store and count it for the Active run.

        Does not draw the next card; call next_due_card() for that.

        Raises:
            NotFound, Conflict: from CardStore.apply_grade
        """
        grade = Grade.parse(grade)
        was_new = self.store.get_card(card_id).is_new
        updated = self.store.apply_grade(card_id, grade, now)

        if self.state is SessionState.ACTIVE:
            self.reviewed += 1
            if grade is not Grade.AGAIN:
                self.correct += 1
            if was_new:
                self.new_reviewed += 1
        if self.current is not None and self.current.card_id == card_id:
            self.current = None
        return updated
