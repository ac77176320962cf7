"""
Pydantic record models for the scheduling core.

These define the serialized shapes of the domain entities: what the outbox
writes to disk and what an external store receives. Every record converts
to and from its frozen domain dataclass without losing numeric or enum
precision.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from core.fsrs.constants import CardPhase, Grade
from core.fsrs.memory_state import CardSchedulingState
from core.fsrs.review_log import ReviewEvent, SessionTotals
from core.mastery.knowledge import KnowledgeProbability


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---- Scheduling State ----

class CardSchedulingStateRecord(_Record):
    """Persisted scheduling state of one item."""
    stability: float = Field(..., gt=0, description="Days until recall decays to threshold")
    difficulty: float = Field(..., ge=0, le=10, description="Item hardness, 0-10")
    due_at: datetime = Field(..., description="Next scheduled review")
    repetitions: int = Field(0, ge=0)
    lapses: int = Field(0, ge=0)
    state: CardPhase = Field(CardPhase.NEW, description="Lifecycle phase")
    last_review_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, state: CardSchedulingState) -> "CardSchedulingStateRecord":
        return cls(
            stability=state.stability,
            difficulty=state.difficulty,
            due_at=state.due_at,
            repetitions=state.repetitions,
            lapses=state.lapses,
            state=state.phase,
            last_review_at=state.last_review_at,
        )

    def to_domain(self) -> CardSchedulingState:
        return CardSchedulingState(
            stability=self.stability,
            difficulty=self.difficulty,
            due_at=self.due_at,
            repetitions=self.repetitions,
            lapses=self.lapses,
            phase=self.state,
            last_review_at=self.last_review_at,
        )


class SchedulingUpsertRecord(_Record):
    """Scheduling state addressed to an item (one upsert)."""
    item_id: str
    state: CardSchedulingStateRecord


# ---- Review Events ----

class ReviewEventRecord(_Record):
    session_id: str
    item_id: str
    grade: Grade
    graded_at: datetime
    response_time_ms: Optional[int] = Field(None, ge=0)

    @classmethod
    def from_domain(cls, event: ReviewEvent) -> "ReviewEventRecord":
        return cls(
            session_id=event.session_id,
            item_id=event.item_id,
            grade=event.grade,
            graded_at=event.graded_at,
            response_time_ms=event.response_time_ms,
        )

    def to_domain(self) -> ReviewEvent:
        return ReviewEvent(
            session_id=self.session_id,
            item_id=self.item_id,
            grade=Grade(self.grade),
            graded_at=self.graded_at,
            response_time_ms=self.response_time_ms,
        )


# ---- Sessions ----

class SessionCloseRecord(_Record):
    session_id: str
    completed_at: datetime
    total_reviews: int = Field(..., ge=0)
    correct_reviews: int = Field(..., ge=0)

    @classmethod
    def from_domain(cls, session_id: str, totals: SessionTotals) -> "SessionCloseRecord":
        return cls(
            session_id=session_id,
            completed_at=totals.completed_at,
            total_reviews=totals.total_reviews,
            correct_reviews=totals.correct_reviews,
        )

    def to_totals(self) -> SessionTotals:
        return SessionTotals(
            completed_at=self.completed_at,
            total_reviews=self.total_reviews,
            correct_reviews=self.correct_reviews,
        )


# ---- Knowledge ----

class KnowledgeProbabilityRecord(_Record):
    subtopic_id: str
    p_know: float = Field(..., ge=0, le=1)
    total_attempts: int = Field(0, ge=0)
    correct_attempts: int = Field(0, ge=0)
    last_attempt_at: Optional[datetime] = None
    max_p_know: Optional[float] = Field(None, ge=0, le=1)
    scope: Optional[str] = None

    @classmethod
    def from_domain(cls, probability: KnowledgeProbability) -> "KnowledgeProbabilityRecord":
        return cls(
            subtopic_id=probability.subtopic_id,
            p_know=probability.p_know,
            total_attempts=probability.total_attempts,
            correct_attempts=probability.correct_attempts,
            last_attempt_at=probability.last_attempt_at,
            max_p_know=probability.max_p_know,
            scope=probability.scope,
        )

    def to_domain(self) -> KnowledgeProbability:
        return KnowledgeProbability(
            subtopic_id=self.subtopic_id,
            p_know=self.p_know,
            total_attempts=self.total_attempts,
            correct_attempts=self.correct_attempts,
            last_attempt_at=self.last_attempt_at,
            max_p_know=self.max_p_know,
            scope=self.scope,
        )
