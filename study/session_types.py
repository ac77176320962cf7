"""
Session value types used by the review session controller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from core.fsrs.constants import Grade
from core.fsrs.memory_state import CardSchedulingState


class SessionError(RuntimeError):
    """Controller misuse: stale handle, out-of-order grade, nothing to grade."""


class SessionPhase(str, Enum):
    IDLE = "idle"
    REVIEWING = "reviewing"
    FINISHED = "finished"


@dataclass(frozen=True)
class ReviewItem:
    """
    A single item queued for review.

    state is None for an item never reviewed; the controller creates the
    default state lazily on first grade.
    """
    item_id: str
    state: Optional[CardSchedulingState] = None
    subtopic_id: Optional[str] = None


@dataclass(frozen=True)
class SessionHandle:
    """
    Identity of one sitting, passed explicitly to every controller call.

    is_local marks an id generated on the device because the store could not
    open the session.
    """
    session_id: str
    item_type: str
    started_at: datetime
    course_scope: Optional[str] = None
    is_local: bool = False


@dataclass(frozen=True)
class SessionStats:
    """Snapshot of session progress for the presentation layer."""
    reviewed: int
    correct: int
    remaining: int
    elapsed_seconds: float
    grade_counts: dict[Grade, int] = field(default_factory=dict)

    @property
    def accuracy(self) -> float:
        if self.reviewed == 0:
            return 0.0
        return self.correct / self.reviewed
