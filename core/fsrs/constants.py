"""
FSRS Constants and Parameters

All configurable parameters for the simplified scheduling formula in one place.
"""

from __future__ import annotations

from enum import Enum, IntEnum


# ---- Grades ----

class Grade(IntEnum):
    """Learner's self-assessed recall quality for one review."""
    AGAIN = 1   # Forgot
    HARD = 2    # Recalled with high effort
    GOOD = 3    # Recalled normally
    EASY = 4    # Recalled fluently

    @classmethod
    def parse(cls, value: "Grade | int | str") -> "Grade":
        """
        Coerce a raw grade (enum, 1-4 integer or member name) into a Grade.

        Raises:
            ValueError: if the value is not one of the four grades
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            if name.isdigit():
                value = int(name)
            else:
                raise ValueError(f"Unknown grade: {value!r}")
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ValueError(f"Grade must be 1-4, got {value!r}") from None

    @property
    def is_correct(self) -> bool:
        """Any grade but AGAIN is a successful recall in session totals."""
        return self != Grade.AGAIN


class CardPhase(str, Enum):
    """Lifecycle phase of a card."""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


# ---- Initial State ----

INITIAL_STABILITY = 1.0   # Days
INITIAL_DIFFICULTY = 5.0  # Middle of the 0-10 scale


# ---- Bounds ----

S_MIN = 0.5      # Minimum stability after a lapse (days)
S_STORED_MIN = 0.01  # Smallest stability that survives two-decimal rounding
D_MIN = 0.0      # Minimum difficulty
D_MAX = 10.0     # Maximum difficulty
MIN_INTERVAL_DAYS = 1


# ---- Difficulty Update ----

D_STEP_FAIL = 0.5      # Added on AGAIN
D_STEP_SUCCESS = -0.3  # Added on HARD/GOOD/EASY


# ---- Stability Update ----

LAPSE_FACTOR = 0.5     # Stability multiplier on AGAIN
HARD_FACTOR = 1.2      # Stability multiplier on HARD
GROWTH_BASE = 2.5      # GOOD multiplier = GROWTH_BASE - GROWTH_SLOPE * D
GROWTH_SLOPE = 0.15
EASY_BONUS = 1.3       # Extra multiplier on top of the GOOD growth


# ---- Retrievability ----

R_TARGET = 0.70  # Retrievability below which a card is considered fading
