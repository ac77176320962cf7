"""
Review session lifecycle.

The controller walks a fixed queue of items through grading, one current
item at a time:

1. start_session(items) opens a StudySession and shows the first item
2. grade(handle, grade) schedules the current item, logs a ReviewEvent and
   hands both to the dispatcher without waiting for the store
3. after the last item the session is closed with its totals

Persistence is best effort: a store that is down costs history, never the
learner's progress through the queue.
"""

from __future__ import annotations

import uuid
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from loguru import logger

from core.fsrs.constants import Grade
from core.fsrs.memory_state import CardSchedulingState, initial_state, utcnow
from core.fsrs.review_log import ReviewEvent, SessionTotals
from core.fsrs.scheduler import next_state
from core.mastery.knowledge import InstrumentType, KnowledgeProbability, record_attempt
from core.persistence.gateway import PersistenceError, PersistenceGateway
from study.dispatch import Dispatcher, build_dispatcher
from study.session_types import (
    ReviewItem,
    SessionError,
    SessionHandle,
    SessionPhase,
    SessionStats,
)


class ReviewSessionController:
    """
    Sequences one learner's review sitting.

    Usage:
        controller = ReviewSessionController(gateway)
        handle = controller.start_session(items)
        while controller.current_item is not None:
            controller.grade(handle, Grade.GOOD)
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        dispatcher: Optional[Dispatcher] = None,
        item_type: str = "flashcard",
        course_scope: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        requeue_failed: bool = False,
        track_knowledge: bool = True,
        instrument: InstrumentType = "flashcard",
    ):
        self.gateway = gateway
        self.dispatcher = dispatcher or build_dispatcher(gateway)
        self.item_type = item_type
        self.course_scope = course_scope
        self.requeue_failed = requeue_failed
        self.track_knowledge = track_knowledge
        self.instrument = instrument
        self._clock = clock or utcnow

        # Latest state per item produced by this controller, across restarts
        self._states: dict[str, CardSchedulingState] = {}
        self._initial_items: list[ReviewItem] = []
        self._reset()

    def _reset(self) -> None:
        self._phase = SessionPhase.IDLE
        self._handle: Optional[SessionHandle] = None
        self._queue: list[ReviewItem] = []
        self._position = 0
        self._grades: list[Grade] = []
        self._events: list[ReviewEvent] = []
        self._shown_at: Optional[datetime] = None
        self._finished_at: Optional[datetime] = None
        self._totals: Optional[SessionTotals] = None
        self._knowledge: dict[str, KnowledgeProbability] = {}

    # ---- Observable state ----

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def handle(self) -> Optional[SessionHandle]:
        return self._handle

    @property
    def current_item(self) -> Optional[ReviewItem]:
        if self._phase != SessionPhase.REVIEWING or self._position >= len(self._queue):
            return None
        return self._queue[self._position]

    @property
    def is_complete(self) -> bool:
        return self._phase == SessionPhase.FINISHED

    @property
    def events(self) -> tuple[ReviewEvent, ...]:
        return tuple(self._events)

    @property
    def totals(self) -> Optional[SessionTotals]:
        return self._totals

    @property
    def session_stats(self) -> SessionStats:
        elapsed = 0.0
        if self._handle is not None:
            end = self._finished_at or self._clock()
            elapsed = max(0.0, (end - self._handle.started_at).total_seconds())

        return SessionStats(
            reviewed=len(self._grades),
            correct=sum(1 for g in self._grades if g.is_correct),
            remaining=max(0, len(self._queue) - self._position) if self._phase == SessionPhase.REVIEWING else 0,
            elapsed_seconds=elapsed,
            grade_counts=dict(Counter(self._grades)),
        )

    def latest_state(self, item_id: str) -> Optional[CardSchedulingState]:
        """Most recent state this controller computed for an item."""
        return self._states.get(item_id)

    # ---- Lifecycle ----

    def start_session(self, items: Iterable[ReviewItem]) -> Optional[SessionHandle]:
        """
        Start a sitting over `items`.

        An empty queue is a no-op: the controller stays idle, nothing is
        persisted and None is returned.
        """
        items = list(items)
        if not items:
            logger.info("Review queue is empty; session not started")
            return None

        self._initial_items = items
        return self._open(items)

    def restart(self, handle: SessionHandle) -> Optional[SessionHandle]:
        """
        Run the same queue again in a fresh session.

        Counters start over; items carry the latest state computed so far so
        nothing already persisted is rolled back.
        """
        self._check_handle(handle)
        items = [
            replace(item, state=self._states.get(item.item_id, item.state))
            for item in self._initial_items
        ]
        logger.info("Restarting review session {} with {} items", handle.session_id, len(items))
        return self._open(items)

    def end_session(self, handle: SessionHandle) -> SessionTotals:
        """
        Close the sitting now with the totals so far (learner abandoned it).

        Closing an already finished session returns its totals unchanged.
        """
        self._check_handle(handle)
        if self._totals is not None:
            return self._totals
        return self._finish(self._clock())

    def shutdown(self, wait: bool = True) -> None:
        """Stop the dispatcher (waits for in-flight writes by default)."""
        self.dispatcher.close(wait=wait)

    # ---- Grading ----

    def grade(
        self,
        handle: SessionHandle,
        grade: Grade,
        item_id: Optional[str] = None
    ) -> CardSchedulingState:
        """
        Grade the current item and advance the queue.

        Args:
            handle: Handle returned by start_session/restart
            grade: Learner's grade
            item_id: Optional guard; must match the current item

        Returns:
            The item's new scheduling state

        Raises:
            SessionError: stale handle, no current item, or item_id mismatch
            ValueError: grade outside Again..Easy
        """
        self._check_handle(handle)
        item = self.current_item
        if item is None:
            raise SessionError("No item to grade: session is not reviewing")
        if item_id is not None and item_id != item.item_id:
            raise SessionError(
                f"Grades apply in queue order: current item is {item.item_id}, got {item_id}"
            )

        grade = Grade.parse(grade)
        now = self._clock()
        response_time_ms = None
        if self._shown_at is not None:
            response_time_ms = max(0, int((now - self._shown_at).total_seconds() * 1000))

        current = self._states.get(item.item_id) or item.state or initial_state(now)
        updated = next_state(current, grade, now)
        self._states[item.item_id] = updated

        event = ReviewEvent(
            session_id=handle.session_id,
            item_id=item.item_id,
            grade=grade,
            graded_at=now,
            response_time_ms=response_time_ms,
        )
        self._events.append(event)
        self._grades.append(grade)

        self.dispatcher.submit("record_review", event)
        self.dispatcher.submit("upsert_scheduling_state", item.item_id, updated)

        if self.track_knowledge and item.subtopic_id:
            self._record_knowledge(item.subtopic_id, grade, now)

        logger.debug(
            "Graded {} as {} in {}ms: S={} D={} due {}",
            item.item_id, grade.name, response_time_ms,
            updated.stability, updated.difficulty, updated.due_at.isoformat(),
        )

        if self.requeue_failed and grade == Grade.AGAIN:
            self._queue.append(replace(item, state=updated))

        self._position += 1
        if self._position >= len(self._queue):
            self._finish(now)
        else:
            self._shown_at = now

        return updated

    # ---- Internals ----

    def _check_handle(self, handle: SessionHandle) -> None:
        if self._handle is None:
            raise SessionError("No session has been started")
        if handle is None or handle.session_id != self._handle.session_id:
            raise SessionError(
                f"Stale session handle {getattr(handle, 'session_id', None)}; "
                f"active session is {self._handle.session_id}"
            )

    def _open(self, items: list[ReviewItem]) -> SessionHandle:
        now = self._clock()
        try:
            session_id = self.gateway.create_session(self.item_type, self.course_scope, now)
            is_local = False
        except (PersistenceError, OSError) as exc:
            session_id = f"local-{uuid.uuid4()}"
            is_local = True
            logger.warning("Could not open study session, continuing as {}: {}", session_id, exc)

        self._reset()
        self._queue = list(items)
        self._handle = SessionHandle(
            session_id=session_id,
            item_type=self.item_type,
            started_at=now,
            course_scope=self.course_scope,
            is_local=is_local,
        )
        self._phase = SessionPhase.REVIEWING
        self._shown_at = now

        if self.track_knowledge and any(item.subtopic_id for item in items):
            self._knowledge = self._load_knowledge()

        logger.info("Review session {} started with {} items", session_id, len(items))
        return self._handle

    def _load_knowledge(self) -> dict[str, KnowledgeProbability]:
        try:
            probabilities = self.gateway.list_knowledge_probabilities(self.course_scope)
        except (PersistenceError, OSError) as exc:
            logger.warning("Could not load knowledge probabilities, starting empty: {}", exc)
            return {}
        return {p.subtopic_id: p for p in probabilities}

    def _record_knowledge(self, subtopic_id: str, grade: Grade, now: datetime) -> None:
        current = self._knowledge.get(subtopic_id) or KnowledgeProbability(
            subtopic_id=subtopic_id,
            scope=self.course_scope,
        )
        # Knowledge attempts need a fluent recall; HARD counts against p_know
        updated = record_attempt(current, grade >= Grade.GOOD, now, self.instrument)
        self._knowledge[subtopic_id] = updated
        self.dispatcher.submit("upsert_knowledge_probability", updated)

    def _finish(self, now: datetime) -> SessionTotals:
        totals = SessionTotals(
            completed_at=now,
            total_reviews=len(self._grades),
            correct_reviews=sum(1 for g in self._grades if g.is_correct),
        )
        self._totals = totals
        self._finished_at = now
        self._phase = SessionPhase.FINISHED
        self._shown_at = None

        if self._handle.is_local:
            logger.info(
                "Session {} was never opened in the store; skipping close ({} reviews)",
                self._handle.session_id, totals.total_reviews,
            )
        else:
            self.dispatcher.submit("close_session", self._handle.session_id, totals)

        logger.info(
            "Review session {} finished: {}/{} correct",
            self._handle.session_id, totals.correct_reviews, totals.total_reviews,
        )
        return totals
