"""
Knowledge probabilities and the simplified per-attempt update.

A KnowledgeProbability is the learner's estimated chance of knowing one
concept subpart (subtopic). The aggregator only reads these; the update
below is the lightweight rule applied after a flashcard or quiz attempt.
It is not a parameter-learning knowledge tracing model.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Literal, Optional


InstrumentType = Literal["flashcard", "quiz"]

P_LEARN = 0.18
P_FORGET = 0.25
RECOVERY_FACTOR = 3.0

INSTRUMENT_MULTIPLIER: dict[str, float] = {
    "flashcard": 1.00,
    "quiz": 0.70,
}


@dataclass(frozen=True)
class KnowledgeProbability:
    """Knowledge estimate for one subtopic."""
    subtopic_id: str
    p_know: float = 0.0
    total_attempts: int = 0
    correct_attempts: int = 0
    last_attempt_at: Optional[datetime] = None
    max_p_know: Optional[float] = None  # Highest p_know ever reached
    scope: Optional[str] = None  # Course or keyword grouping


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def update_p_know(
    p_know: float,
    is_correct: bool,
    instrument: InstrumentType = "flashcard",
    previous_max: Optional[float] = None
) -> float:
    """
    Move a knowledge probability after one attempt.

    Formula:
        correct:   p + (1 - p) * P_LEARN * type * recovery
        incorrect: p * (1 - P_FORGET)

    recovery is RECOVERY_FACTOR when the learner previously reached a higher
    value (relearning is faster than first learning), 1.0 otherwise.

    Raises:
        ValueError: for an unknown instrument type
    """
    if instrument not in INSTRUMENT_MULTIPLIER:
        raise ValueError(f"Unknown instrument type: {instrument!r}")

    if not is_correct:
        return _clamp(p_know * (1.0 - P_FORGET))

    type_multiplier = INSTRUMENT_MULTIPLIER[instrument]
    recovery = RECOVERY_FACTOR if previous_max is not None and previous_max > p_know else 1.0
    return _clamp(p_know + (1.0 - p_know) * P_LEARN * type_multiplier * recovery)


def record_attempt(
    probability: KnowledgeProbability,
    is_correct: bool,
    attempted_at: datetime,
    instrument: InstrumentType = "flashcard"
) -> KnowledgeProbability:
    """
    Return a new KnowledgeProbability reflecting one more attempt.
    """
    new_p = update_p_know(
        probability.p_know,
        is_correct,
        instrument,
        previous_max=probability.max_p_know,
    )
    peak = max(new_p, probability.max_p_know or 0.0, probability.p_know)
    return replace(
        probability,
        p_know=new_p,
        max_p_know=peak,
        total_attempts=probability.total_attempts + 1,
        correct_attempts=probability.correct_attempts + (1 if is_correct else 0),
        last_attempt_at=attempted_at,
    )
