"""
SM-2 Constants and Parameters

All tunable values of the scheduler in one place. The test suite pins them;
change them together with tests/test_scheduler.py.
"""

from enum import IntEnum


# ---- Grades ----

class Grade(IntEnum):
    """Learner's self-reported recall quality."""
    AGAIN = 1   # Retrieval failed (lapse)
    HARD = 2    # Retrieved with high effort
    GOOD = 3    # Retrieved normally
    EASY = 4    # Retrieved fluently

    @classmethod
    def parse(cls, value) -> "Grade":
        """Accept a Grade, its integer value, or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            if name.isdigit():
                return cls(int(name))
            raise ValueError(f"Unknown grade: {value!r}")
        return cls(value)


# SM-2 quality score per grade (0-5 scale, lower = worse recall)
QUALITY = {
    Grade.AGAIN: 1,
    Grade.HARD: 3,
    Grade.GOOD: 4,
    Grade.EASY: 5,
}


# ---- Ease ----

INITIAL_EASE = 2.5
EASE_FLOOR = 1.3
EASE_CEILING = 3.5
LAPSE_EASE_PENALTY = 0.2


# ---- Intervals (days) ----

RELAPSE_INTERVAL_DAYS = 10 / 1440  # 10 minutes
FIRST_INTERVAL_DAYS = 1.0
SECOND_INTERVAL_DAYS = 6.0
MIN_SUCCESS_INTERVAL_DAYS = 1.0
INITIAL_INTERVAL_DAYS = 0.0  # Fresh card, never graded


# ---- Interval growth by grade ----

HARD_INTERVAL_FACTOR = 1.2
HARD_SEED_FACTOR = 0.5
EASY_BONUS = 1.3

SEED_FACTOR = {
    Grade.HARD: HARD_SEED_FACTOR,
    Grade.GOOD: 1.0,
    Grade.EASY: EASY_BONUS,
}
