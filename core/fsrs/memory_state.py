"""
Memory State - Card Scheduling State and Retrievability

Defines the per (learner, item) scheduling state and derived quantities.

Key concepts:
- Stability (S): Days until recall decays to the reference threshold
- Difficulty (D): How hard the item is (0-10 scale)
- Retrievability (R): Probability of successful recall at time t
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import math

from core.fsrs.constants import (
    CardPhase,
    INITIAL_DIFFICULTY,
    INITIAL_STABILITY,
)


@dataclass(frozen=True)
class CardSchedulingState:
    """
    Scheduling state for a single (learner, item) pair.

    Instances are immutable: the scheduler returns a new state for every
    graded review and the previous one is simply superseded.
    """
    stability: float  # S, in days
    difficulty: float  # D, range 0-10
    due_at: datetime  # Next scheduled review instant
    repetitions: int = 0  # Consecutive successes since the last lapse
    lapses: int = 0  # Lifetime failed reviews
    phase: CardPhase = CardPhase.NEW
    last_review_at: Optional[datetime] = None  # None until first review

    @property
    def is_new(self) -> bool:
        return self.phase == CardPhase.NEW


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def initial_state(now: Optional[datetime] = None) -> CardSchedulingState:
    """
    Build the default state for an item seen for the first time.

    A new item is due immediately.
    """
    return CardSchedulingState(
        stability=INITIAL_STABILITY,
        difficulty=INITIAL_DIFFICULTY,
        due_at=now or utcnow(),
        repetitions=0,
        lapses=0,
        phase=CardPhase.NEW,
        last_review_at=None,
    )


def calculate_retrievability(
    stability: float,
    days_since_review: float
) -> float:
    """
    Calculate retrievability using exponential decay.

    Formula: R = exp(-Δt / S)

    Args:
        stability: Current stability in days
        days_since_review: Time since last review in days

    Returns:
        Retrievability between 0 and 1
    """
    if days_since_review <= 0:
        return 1.0
    if stability <= 0:
        return 0.0

    return math.exp(-days_since_review / stability)


def get_days_since_review(
    last_review_at: Optional[datetime],
    now: Optional[datetime] = None
) -> float:
    """
    Days elapsed since the last review (0 if never reviewed).
    """
    if last_review_at is None:
        return 0.0

    now = now or utcnow()
    delta = now - last_review_at
    return delta.total_seconds() / 86400.0


def retrievability_at(
    state: CardSchedulingState,
    now: Optional[datetime] = None
) -> float:
    """
    Current recall probability for a state.

    A never-reviewed state has nothing to recall and reports 0.0.
    """
    if state.last_review_at is None:
        return 0.0
    days = get_days_since_review(state.last_review_at, now)
    return calculate_retrievability(state.stability, days)


def is_due(
    state: Optional[CardSchedulingState],
    now: Optional[datetime] = None
) -> bool:
    """A missing state is always due; otherwise due once due_at has passed."""
    if state is None:
        return True
    return state.due_at <= (now or utcnow())


def is_older_state(
    incoming: CardSchedulingState,
    stored: Optional[CardSchedulingState]
) -> bool:
    """
    True when `incoming` comes from an earlier review than `stored`.

    Stores use this to drop late or retried writes: the state of the most
    recent review wins, ties go to the incoming write.
    """
    if stored is None or stored.last_review_at is None:
        return False
    if incoming.last_review_at is None:
        return True
    return incoming.last_review_at < stored.last_review_at
