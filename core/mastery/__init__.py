"""
Mastery package exports.
"""

from core.mastery.aggregator import (
    LEARNING_THRESHOLD,
    MASTERED_THRESHOLD,
    UNKNOWN_VALUE,
    MasteryBucket,
    MasteryResult,
    aggregate,
    bucket_for,
)
from core.mastery.hysteresis import HysteresisConfig, IndicatorState, apply_hysteresis
from core.mastery.knowledge import KnowledgeProbability, record_attempt, update_p_know

__all__ = [
    "LEARNING_THRESHOLD",
    "MASTERED_THRESHOLD",
    "UNKNOWN_VALUE",
    "MasteryBucket",
    "MasteryResult",
    "aggregate",
    "bucket_for",
    "HysteresisConfig",
    "IndicatorState",
    "apply_hysteresis",
    "KnowledgeProbability",
    "record_attempt",
    "update_p_know",
]
