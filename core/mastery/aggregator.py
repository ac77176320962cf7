"""
Mastery Aggregator

Reduces a set of per-subtopic knowledge probabilities to the coarse mastery
signal painted next to a concept:

    Mastered  mean p_know >= 0.80
    Learning  mean p_know >= 0.50
    Weak      otherwise
    Unknown   no data (value is the -1 sentinel)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from core.mastery.knowledge import KnowledgeProbability


MASTERED_THRESHOLD = 0.80
LEARNING_THRESHOLD = 0.50
UNKNOWN_VALUE = -1.0


class MasteryBucket(str, Enum):
    MASTERED = "mastered"
    LEARNING = "learning"
    WEAK = "weak"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def color(self) -> str:
        return _COLORS[self]


_LABELS = {
    MasteryBucket.MASTERED: "Mastered",
    MasteryBucket.LEARNING: "Learning",
    MasteryBucket.WEAK: "Weak",
    MasteryBucket.UNKNOWN: "No data",
}

_COLORS = {
    MasteryBucket.MASTERED: "green",
    MasteryBucket.LEARNING: "yellow",
    MasteryBucket.WEAK: "red",
    MasteryBucket.UNKNOWN: "gray",
}


@dataclass(frozen=True)
class MasteryResult:
    bucket: MasteryBucket
    value: float


def bucket_for(value: float) -> MasteryBucket:
    """Map a mean knowledge probability to its bucket (negative = no data)."""
    if value < 0:
        return MasteryBucket.UNKNOWN
    if value >= MASTERED_THRESHOLD:
        return MasteryBucket.MASTERED
    if value >= LEARNING_THRESHOLD:
        return MasteryBucket.LEARNING
    return MasteryBucket.WEAK


def aggregate(probabilities: Iterable[KnowledgeProbability]) -> MasteryResult:
    """
    Average p_know over all inputs and bucket the mean.

    Pure and total: an empty input yields (UNKNOWN, -1).
    """
    values = [p.p_know for p in probabilities]
    if not values:
        return MasteryResult(MasteryBucket.UNKNOWN, UNKNOWN_VALUE)

    mean = sum(values) / len(values)
    return MasteryResult(bucket_for(mean), mean)
