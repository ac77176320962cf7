"""
FSRS - simplified Free Spaced Repetition Scheduler

Card-level scheduling for the review core.

This module implements a small, deterministic scheduling formula with:
- Four grades (Again, Hard, Good, Easy)
- Stability growth damped by item difficulty
- Exponential forgetting curve: R = exp(-Δt/S)
- Interpretable state (Stability, Difficulty, Repetitions, Lapses)

Quick start:
    from core import fsrs

    state = fsrs.initial_state()
    state = fsrs.next_state(state, fsrs.Grade.GOOD)
"""

# Core scheduler API (algorithm logic)
from core.fsrs.scheduler import next_state, process_review, interval_days

# Constants and parameters
from core.fsrs.constants import (
    Grade,
    CardPhase,
    INITIAL_STABILITY,
    INITIAL_DIFFICULTY,
    R_TARGET,
    S_MIN,
    D_MIN,
    D_MAX,
)

# Memory state
from core.fsrs.memory_state import (
    CardSchedulingState,
    initial_state,
    calculate_retrievability,
    get_days_since_review,
    retrievability_at,
    is_due,
)

# Review log value types
from core.fsrs.review_log import ReviewEvent, ReviewOutcome, SessionTotals, StudySession


__all__ = [
    # Core algorithm
    "next_state",
    "process_review",
    "interval_days",

    # Enums
    "Grade",
    "CardPhase",

    # Memory state
    "CardSchedulingState",
    "initial_state",
    "calculate_retrievability",
    "get_days_since_review",
    "retrievability_at",
    "is_due",

    # Review log
    "ReviewEvent",
    "ReviewOutcome",
    "SessionTotals",
    "StudySession",

    # Parameters
    "INITIAL_STABILITY",
    "INITIAL_DIFFICULTY",
    "R_TARGET",
    "S_MIN",
    "D_MIN",
    "D_MAX",
]
