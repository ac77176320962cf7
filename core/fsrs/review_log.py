"""
Review log value types.

ReviewEvent is the append-only fact that drives every scheduling change.
StudySession describes one sitting and its closing totals.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from core.fsrs.constants import CardPhase, Grade


@dataclass(frozen=True)
class ReviewEvent:
    """One graded review of one item inside one session."""
    session_id: str
    item_id: str
    grade: Grade
    graded_at: datetime
    response_time_ms: Optional[int] = None


@dataclass(frozen=True)
class SessionTotals:
    """Counts written when a session is closed."""
    completed_at: datetime
    total_reviews: int
    correct_reviews: int


@dataclass(frozen=True)
class StudySession:
    """
    A study sitting.

    completed_at stays None for an abandoned sitting that was never closed.
    """
    id: str
    item_type: str
    started_at: datetime
    course_scope: Optional[str] = None
    completed_at: Optional[datetime] = None
    total_reviews: int = 0
    correct_reviews: int = 0

    @property
    def is_closed(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True)
class ReviewOutcome:
    """Before/after snapshot of a single scheduling transition."""
    grade: Grade
    reviewed_at: datetime
    phase_before: CardPhase
    phase_after: CardPhase
    stability_before: float
    stability_after: float
    difficulty_before: float
    difficulty_after: float
    interval_days: int
    retrievability_before: float
