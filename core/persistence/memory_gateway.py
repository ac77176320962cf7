"""
In-process Persistence Gateway.

Keeps everything in dictionaries guarded by a lock. Useful offline, in
demos and in tests; it honours the same contract as the SQL gateway.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from core.fsrs.memory_state import CardSchedulingState, is_older_state
from core.fsrs.review_log import ReviewEvent, SessionTotals, StudySession
from core.mastery.knowledge import KnowledgeProbability
from core.persistence.gateway import PersistenceError, PersistenceGateway


class InMemoryPersistenceGateway(PersistenceGateway):

    def __init__(self, probabilities: Optional[list[KnowledgeProbability]] = None):
        self._lock = threading.Lock()
        self.sessions: dict[str, StudySession] = {}
        self.events: list[ReviewEvent] = []
        self.states: dict[str, CardSchedulingState] = {}
        self.probabilities: dict[str, KnowledgeProbability] = {
            p.subtopic_id: p for p in (probabilities or [])
        }

    def create_session(
        self,
        item_type: str,
        course_scope: Optional[str] = None,
        started_at: Optional[datetime] = None
    ) -> str:
        session_id = str(uuid.uuid4())
        with self._lock:
            self.sessions[session_id] = StudySession(
                id=session_id,
                item_type=item_type,
                started_at=started_at or datetime.now(timezone.utc),
                course_scope=course_scope,
            )
        return session_id

    def close_session(self, session_id: str, totals: SessionTotals) -> None:
        with self._lock:
            session = self.sessions.get(session_id)
            if session is None:
                raise PersistenceError(f"Unknown study session: {session_id}")
            if session.is_closed:
                return
            self.sessions[session_id] = replace(
                session,
                completed_at=totals.completed_at,
                total_reviews=totals.total_reviews,
                correct_reviews=totals.correct_reviews,
            )

    def record_review(self, event: ReviewEvent) -> None:
        with self._lock:
            self.events.append(event)

    def upsert_scheduling_state(self, item_id: str, state: CardSchedulingState) -> None:
        with self._lock:
            if is_older_state(state, self.states.get(item_id)):
                logger.debug("Ignoring stale scheduling state for {}", item_id)
                return
            self.states[item_id] = state

    def list_knowledge_probabilities(self, scope: Optional[str] = None) -> list[KnowledgeProbability]:
        with self._lock:
            values = sorted(self.probabilities.values(), key=lambda p: p.subtopic_id)
        if scope is None:
            return values
        return [p for p in values if p.scope == scope]

    def upsert_knowledge_probability(self, probability: KnowledgeProbability) -> None:
        with self._lock:
            self.probabilities[probability.subtopic_id] = probability

    def list_review_events(self, since: Optional[datetime] = None) -> list[ReviewEvent]:
        with self._lock:
            events = list(self.events)
        if since is None:
            return events
        return [e for e in events if e.graded_at >= since]
