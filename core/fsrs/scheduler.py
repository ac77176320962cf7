"""
Scheduler - Card Scheduling Engine

Pure scheduling transitions (no database calls, no clock reads beyond the
optional default for `now`).

Main workflow:
1. Caller loads the current state (or builds an initial one)
2. Adjust difficulty from the grade
3. Grow or shrink stability on the grade's branch
4. Schedule the next review max(1, round(S)) days out
5. Round S and D to two decimals and return the new state

Stability growth uses the difficulty the item had going into the review;
the adjusted difficulty only affects the next transition.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional, Tuple
import math

from core.fsrs import memory_state
from core.fsrs.constants import (
    CardPhase,
    D_MAX,
    D_MIN,
    D_STEP_FAIL,
    D_STEP_SUCCESS,
    EASY_BONUS,
    GROWTH_BASE,
    GROWTH_SLOPE,
    Grade,
    HARD_FACTOR,
    LAPSE_FACTOR,
    MIN_INTERVAL_DAYS,
    S_MIN,
    S_STORED_MIN,
)
from core.fsrs.memory_state import CardSchedulingState
from core.fsrs.review_log import ReviewOutcome


def _round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def update_difficulty(difficulty: float, grade: Grade) -> float:
    """
    Failures make an item harder, any success makes it easier.

    Returns:
        New difficulty value (clipped to [0, 10])
    """
    step = D_STEP_FAIL if grade == Grade.AGAIN else D_STEP_SUCCESS
    return max(D_MIN, min(D_MAX, difficulty + step))


def growth_factor(difficulty: float) -> float:
    """Stability multiplier for a GOOD answer at the given difficulty."""
    return GROWTH_BASE - GROWTH_SLOPE * difficulty


def update_stability(stability: float, difficulty: float, grade: Grade) -> float:
    """
    Apply the grade's stability branch.

    Formula by grade:
        AGAIN: max(S_MIN, S * 0.5)
        HARD:  S * 1.2
        GOOD:  S * (2.5 - 0.15 * D)
        EASY:  S * (2.5 - 0.15 * D) * 1.3
    """
    if grade == Grade.AGAIN:
        return max(S_MIN, stability * LAPSE_FACTOR)
    if grade == Grade.HARD:
        return stability * HARD_FACTOR
    if grade == Grade.GOOD:
        return stability * growth_factor(difficulty)
    return stability * growth_factor(difficulty) * EASY_BONUS


def interval_days(stability: float) -> int:
    """Days until the next review: round(S), never less than one."""
    return max(MIN_INTERVAL_DAYS, int(_round_half_up(stability)))


def next_state(
    current: CardSchedulingState,
    grade: Grade,
    now: Optional[datetime] = None
) -> CardSchedulingState:
    """
    Compute the state that follows a graded review.

    Total and deterministic: every state and every grade yields a valid
    state whose due_at is strictly after `now`. A NEW state runs through the
    same branches as any other.

    Args:
        current: State before the review
        grade: Learner's grade
        now: Review instant (defaults to the current UTC time)

    Returns:
        New CardSchedulingState
    """
    grade = Grade.parse(grade)
    if now is None:
        now = memory_state.utcnow()

    stability = update_stability(current.stability, current.difficulty, grade)
    difficulty = update_difficulty(current.difficulty, grade)

    if grade == Grade.AGAIN:
        repetitions = 0
        lapses = current.lapses + 1
        phase = CardPhase.RELEARNING
    else:
        repetitions = current.repetitions + 1
        lapses = current.lapses
        phase = CardPhase.REVIEW

    return replace(
        current,
        stability=max(S_STORED_MIN, _round_half_up(stability, 2)),
        difficulty=_round_half_up(difficulty, 2),
        due_at=now + timedelta(days=interval_days(stability)),
        repetitions=repetitions,
        lapses=lapses,
        phase=phase,
        last_review_at=now,
    )


def process_review(
    current: CardSchedulingState,
    grade: Grade,
    now: Optional[datetime] = None
) -> Tuple[CardSchedulingState, ReviewOutcome]:
    """
    Process a review and return the new state plus a before/after outcome.

    The outcome is meant for logging and analytics; the state is what gets
    persisted.
    """
    grade = Grade.parse(grade)
    if now is None:
        now = memory_state.utcnow()

    updated = next_state(current, grade, now)
    outcome = ReviewOutcome(
        grade=grade,
        reviewed_at=now,
        phase_before=current.phase,
        phase_after=updated.phase,
        stability_before=current.stability,
        stability_after=updated.stability,
        difficulty_before=current.difficulty,
        difficulty_after=updated.difficulty,
        interval_days=(updated.due_at - now).days,
        retrievability_before=memory_state.retrievability_at(current, now),
    )
    return updated, outcome
