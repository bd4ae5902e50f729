"""
Scheduler - SM-2 Algorithm Logic

Pure scheduling and state updates (no database calls).

Main workflow:
1. Load card state (caller's responsibility)
2. Decide lapse vs. success from the grade
3. Update ease, interval and counters
4. Return updated card + event data dict

This module handles ONLY the algorithm logic.
Database I/O is handled by the card store.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from enforcer.srs.constants import (
    EASE_CEILING,
    EASE_FLOOR,
    EASY_BONUS,
    FIRST_INTERVAL_DAYS,
    HARD_INTERVAL_FACTOR,
    INITIAL_EASE,
    LAPSE_EASE_PENALTY,
    MIN_SUCCESS_INTERVAL_DAYS,
    QUALITY,
    RELAPSE_INTERVAL_DAYS,
    SECOND_INTERVAL_DAYS,
    SEED_FACTOR,
    Grade,
)
from enforcer.srs.memory_state import CardState, ensure_utc


def ease_delta(quality: int) -> float:
    """
    SM-2 ease adjustment for a quality score.

    Formula:
        delta = 0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)

    q=5 (Easy) -> +0.10, q=4 (Good) -> 0.00, q=3 (Hard) -> -0.14
    """
    miss = 5 - quality
    return 0.1 - miss * (0.08 + miss * 0.02)


def clamp_ease(ease: float) -> float:
    """Clamp ease into [EASE_FLOOR, EASE_CEILING]; non-finite values reset."""
    if not math.isfinite(ease):
        return INITIAL_EASE
    return min(max(ease, EASE_FLOOR), EASE_CEILING)


def _normalized(card: CardState) -> CardState:
    # Remote data may carry values the scheduler would never produce
    interval = card.interval_days
    if not math.isfinite(interval) or interval < 0:
        interval = 0.0
    return replace(
        card,
        ease=clamp_ease(card.ease),
        interval_days=interval,
        reps=max(card.reps, 0),
        lapses=max(card.lapses, 0),
    )


def next_success_interval(
    previous_interval: float,
    ease: float,
    reps: int,
    grade: Grade
) -> float:
    """
    Interval after a successful recall.

    Seed intervals for the first two successes, multiplicative growth
    afterwards. Never shorter than the previous interval or one day.

    Args:
        previous_interval: Interval before this review (days)
        ease: Ease after this review's adjustment
        reps: Repetition count after this review (>= 1)
        grade: HARD, GOOD or EASY

    Returns:
        New interval in days
    """
    if reps == 1:
        interval = FIRST_INTERVAL_DAYS * SEED_FACTOR[grade]
    elif reps == 2:
        interval = SECOND_INTERVAL_DAYS * SEED_FACTOR[grade]
    elif grade == Grade.HARD:
        interval = previous_interval * HARD_INTERVAL_FACTOR
    elif grade == Grade.EASY:
        interval = previous_interval * ease * EASY_BONUS
    else:
        interval = previous_interval * ease

    return max(MIN_SUCCESS_INTERVAL_DAYS, previous_interval, interval)


def schedule(card: CardState, feedback_grade: Grade, now: datetime) -> CardState:
    """
    Compute the next retention state of a card.

    Total and deterministic: returns a new CardState and leaves the input
    untouched.

    Lapse (AGAIN):
        lapses += 1, reps = 0, ease -= LAPSE_EASE_PENALTY (floored),
        interval = RELAPSE_INTERVAL_DAYS
    Success (HARD/GOOD/EASY):
        reps += 1, ease += ease_delta(quality) (clamped),
        interval = next_success_interval(...)

    In both cases due_at = now + interval.
    """
    grade = Grade.parse(feedback_grade)
    now = ensure_utc(now)
    card = _normalized(card)

    if grade == Grade.AGAIN:
        interval = RELAPSE_INTERVAL_DAYS
        return replace(
            card,
            ease=max(card.ease - LAPSE_EASE_PENALTY, EASE_FLOOR),
            interval_days=interval,
            reps=0,
            lapses=card.lapses + 1,
            due_at=now + timedelta(days=interval),
        )

    ease = clamp_ease(card.ease + ease_delta(QUALITY[grade]))
    reps = card.reps + 1
    interval = next_success_interval(card.interval_days, ease, reps, grade)
    return replace(
        card,
        ease=ease,
        interval_days=interval,
        reps=reps,
        due_at=now + timedelta(days=interval),
    )


def process_review(
    card: CardState,
    feedback_grade: Grade,
    timestamp: Optional[datetime] = None
) -> Tuple[CardState, dict]:
    """
    Process a review and return updated card state + event data.

    No database calls. Caller is responsible for:
    1. Loading the card
    2. Saving the card after review
    3. Persisting the event (in the same transaction)

    Args:
        card: CardState to grade
        feedback_grade: User feedback (AGAIN, HARD, GOOD, EASY)
        timestamp: Review timestamp (defaults to now)

    Returns:
        Tuple of (updated_card, event_data_dict)
    """
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
    timestamp = ensure_utc(timestamp)
    grade = Grade.parse(feedback_grade)

    updated = schedule(card, grade, timestamp)

    event_data = {
        "id": str(uuid.uuid4()),
        "card_id": card.id,
        "grade": int(grade),
        "reviewed_at": timestamp,
    }
    return updated, event_data
