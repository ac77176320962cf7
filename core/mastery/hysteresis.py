"""
Mastery indicator hysteresis.

A raw bucket flips every time the mean crosses a threshold, which makes the
indicator flicker for learners hovering around 0.5 or 0.8. The indicator
below moves up only past the strict thresholds, moves down only past looser
ones, and only after the condition held for several evaluations in a row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.mastery.aggregator import MasteryBucket, MasteryResult, bucket_for


@dataclass(frozen=True)
class HysteresisConfig:
    mastered_up: float = 0.80
    mastered_down: float = 0.70
    learning_up: float = 0.50
    learning_down: float = 0.40
    stability_required: int = 2


@dataclass(frozen=True)
class IndicatorState:
    """Displayed bucket plus the count of consecutive evaluations pushing it."""
    bucket: MasteryBucket = MasteryBucket.UNKNOWN
    counter: int = 0


def _step(state: IndicatorState, moving: bool, target: MasteryBucket, required: int) -> IndicatorState:
    if not moving:
        return IndicatorState(state.bucket, 0)
    counter = state.counter + 1
    if counter >= required:
        return IndicatorState(target, 0)
    return IndicatorState(state.bucket, counter)


def apply_hysteresis(
    state: IndicatorState,
    result: MasteryResult,
    config: Optional[HysteresisConfig] = None
) -> IndicatorState:
    """
    Advance the displayed indicator with a freshly aggregated result.

    - No data resets the indicator to UNKNOWN.
    - An UNKNOWN indicator adopts the plain bucket straight away.
    - WEAK -> LEARNING needs value >= learning_up
    - LEARNING -> MASTERED needs value >= mastered_up
    - LEARNING -> WEAK needs value < learning_down
    - MASTERED -> LEARNING needs value < mastered_down
    Each move must hold for `stability_required` consecutive calls.
    """
    config = config or HysteresisConfig()
    value = result.value

    if result.bucket == MasteryBucket.UNKNOWN:
        return IndicatorState()
    if state.bucket == MasteryBucket.UNKNOWN:
        return IndicatorState(bucket_for(value), 0)

    required = config.stability_required

    if state.bucket == MasteryBucket.WEAK:
        return _step(state, value >= config.learning_up, MasteryBucket.LEARNING, required)

    if state.bucket == MasteryBucket.MASTERED:
        return _step(state, value < config.mastered_down, MasteryBucket.LEARNING, required)

    # LEARNING can move either way
    if value >= config.mastered_up:
        return _step(state, True, MasteryBucket.MASTERED, required)
    if value < config.learning_down:
        return _step(state, True, MasteryBucket.WEAK, required)
    return IndicatorState(state.bucket, 0)
