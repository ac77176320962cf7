"""
Persistence Gateway contract.

The review core never talks to a database directly; it writes through a
learner-scoped gateway. Implementations own the storage encoding and the
concurrency discipline (the most recent review wins per item).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from core.fsrs.memory_state import CardSchedulingState
from core.fsrs.review_log import ReviewEvent, SessionTotals
from core.mastery.knowledge import KnowledgeProbability


class PersistenceError(RuntimeError):
    """A store operation failed (network, database, unknown session...)."""


class PersistenceGateway(ABC):
    """Storage operations the review core depends on, for one learner."""

    @abstractmethod
    def create_session(
        self,
        item_type: str,
        course_scope: Optional[str] = None,
        started_at: Optional[datetime] = None
    ) -> str:
        """Open a study session and return its id."""

    @abstractmethod
    def close_session(self, session_id: str, totals: SessionTotals) -> None:
        """Record completion and totals for a session."""

    @abstractmethod
    def record_review(self, event: ReviewEvent) -> None:
        """Append one review event."""

    @abstractmethod
    def upsert_scheduling_state(self, item_id: str, state: CardSchedulingState) -> None:
        """Store the scheduling state of an item unless a newer review is already stored."""

    @abstractmethod
    def list_knowledge_probabilities(self, scope: Optional[str] = None) -> list[KnowledgeProbability]:
        """List knowledge probabilities, optionally restricted to a scope."""

    @abstractmethod
    def upsert_knowledge_probability(self, probability: KnowledgeProbability) -> None:
        """Store the latest knowledge probability of a subtopic."""

    @abstractmethod
    def list_review_events(self, since: Optional[datetime] = None) -> list[ReviewEvent]:
        """List review events, oldest first."""
