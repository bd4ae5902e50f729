"""
SRS - SM-2 style spaced repetition scheduling

Scheduling engine and persistence models of the review engine.

- Ease factor per card, adjusted by the SM-2 quality of each grade
- Seed intervals of 1 and 6 days, then geometric growth by ease
- Lapses reset repetitions and bring the card back in 10 minutes

Quick start:
    from enforcer import srs

    # Process a review (algorithm only, no DB calls)
    card, event_data = srs.process_review(card, srs.Grade.GOOD)

    # Create tables
    engine = srs.get_engine("sqlite:///data/words.db")
    srs.init_db(engine)
"""

# Core scheduler API (algorithm logic)
from enforcer.srs.scheduler import process_review, schedule

# Database API
from enforcer.srs.database import (
    get_engine,
    get_session_factory,
    init_db,
    reset_db,
)

# Constants and parameters
from enforcer.srs.constants import (
    Grade,
    QUALITY,
    INITIAL_EASE,
    EASE_FLOOR,
    EASE_CEILING,
    LAPSE_EASE_PENALTY,
    RELAPSE_INTERVAL_DAYS,
    FIRST_INTERVAL_DAYS,
    SECOND_INTERVAL_DAYS,
    MIN_SUCCESS_INTERVAL_DAYS,
    HARD_INTERVAL_FACTOR,
    HARD_SEED_FACTOR,
    EASY_BONUS,
)

# Memory state
from enforcer.srs.memory_state import (
    CardState,
    ensure_utc,
    initialize_new_card,
)


__all__ = [
    # Core algorithm
    "process_review",
    "schedule",

    # Database operations
    "get_engine",
    "get_session_factory",
    "init_db",
    "reset_db",

    # Enums
    "Grade",

    # Memory state
    "CardState",
    "ensure_utc",
    "initialize_new_card",

    # Parameters
    "QUALITY",
    "INITIAL_EASE",
    "EASE_FLOOR",
    "EASE_CEILING",
    "LAPSE_EASE_PENALTY",
    "RELAPSE_INTERVAL_DAYS",
    "FIRST_INTERVAL_DAYS",
    "SECOND_INTERVAL_DAYS",
    "MIN_SUCCESS_INTERVAL_DAYS",
    "HARD_INTERVAL_FACTOR",
    "HARD_SEED_FACTOR",
    "EASY_BONUS",
]
