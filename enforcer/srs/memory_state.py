"""
Memory State - retention record of a single card.

Key concepts:
- Interval: days between the last grading and the next due date
- Ease: growth multiplier of the interval (SM-2 "E-factor")
- Reps / Lapses: consecutive successes and total failures
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from enforcer.srs.constants import INITIAL_EASE, INITIAL_INTERVAL_DAYS


@dataclass
class CardState:
    """
    Scheduling state for exactly one word.

    Mutated only through the scheduler's output.
    """
    id: str
    word_id: str
    due_at: datetime
    interval_days: float
    ease: float
    reps: int
    lapses: int

    @property
    def is_new(self) -> bool:
        """True until the card is graded for the first time."""
        return self.interval_days <= 0 and self.reps == 0 and self.lapses == 0

    def is_due(self, now: datetime) -> bool:
        return self.due_at <= now


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def initialize_new_card(
    word_id: str,
    now: Optional[datetime] = None,
    card_id: Optional[str] = None
) -> CardState:
    """
    Initialize state for a new card (never graded).

    The card is due immediately.

    Args:
        word_id: Word the card belongs to
        now: Creation time (defaults to now)
        card_id: Explicit card id (defaults to a fresh UUID)

    Returns:
        New CardState initialized with defaults
    """
    if now is None:
        now = datetime.now(timezone.utc)

    return CardState(
        id=card_id or str(uuid.uuid4()),
        word_id=word_id,
        due_at=ensure_utc(now),
        interval_days=INITIAL_INTERVAL_DAYS,
        ease=INITIAL_EASE,
        reps=0,
        lapses=0,
    )
