"""
SQL-backed Persistence Gateway.

Thin adapter over core.fsrs.database: scopes every call to one learner and
turns SQLAlchemy failures into PersistenceError.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from core.fsrs import database
from core.fsrs.memory_state import CardSchedulingState
from core.fsrs.review_log import ReviewEvent, SessionTotals
from core.mastery.knowledge import KnowledgeProbability
from core.persistence.gateway import PersistenceError, PersistenceGateway


class SqlPersistenceGateway(PersistenceGateway):
    """
    Gateway storing everything in the review database.

    Usage:
        gateway = SqlPersistenceGateway(user_id="ana")
        gateway.init_schema()
    """

    def __init__(self, user_id: Optional[str] = None, database_url: Optional[str] = None):
        self.user_id = user_id or database.get_default_user_id()
        self.engine = database.get_engine(database_url)

    def init_schema(self) -> None:
        database.init_db(self.engine)

    def create_session(
        self,
        item_type: str,
        course_scope: Optional[str] = None,
        started_at: Optional[datetime] = None
    ) -> str:
        try:
            return database.create_study_session(
                self.user_id, item_type, course_scope, started_at, engine=self.engine
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not create study session: {exc}") from exc

    def close_session(self, session_id: str, totals: SessionTotals) -> None:
        try:
            closed = database.close_study_session(self.user_id, session_id, totals, engine=self.engine)
        except KeyError as exc:
            raise PersistenceError(str(exc)) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not close session {session_id}: {exc}") from exc

        if not closed:
            logger.warning("Study session {} was already closed; keeping first totals", session_id)

    def record_review(self, event: ReviewEvent) -> None:
        try:
            database.log_review_event(self.user_id, event, engine=self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not record review of {event.item_id}: {exc}") from exc

    def upsert_scheduling_state(self, item_id: str, state: CardSchedulingState) -> None:
        try:
            written = database.save_scheduling_state(self.user_id, item_id, state, engine=self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not save scheduling state of {item_id}: {exc}") from exc

        if not written:
            logger.debug("Ignoring stale scheduling state for {}", item_id)

    def load_scheduling_states(self) -> dict[str, CardSchedulingState]:
        try:
            return database.load_scheduling_states(self.user_id, engine=self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not load scheduling states: {exc}") from exc

    def list_knowledge_probabilities(self, scope: Optional[str] = None) -> list[KnowledgeProbability]:
        try:
            return database.list_knowledge_probabilities(self.user_id, scope, engine=self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not list knowledge probabilities: {exc}") from exc

    def upsert_knowledge_probability(self, probability: KnowledgeProbability) -> None:
        try:
            database.save_knowledge_probability(self.user_id, probability, engine=self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not save knowledge probability of {probability.subtopic_id}: {exc}"
            ) from exc

    def list_review_events(self, since: Optional[datetime] = None) -> list[ReviewEvent]:
        try:
            return database.get_review_events(self.user_id, since, engine=self.engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not list review events: {exc}") from exc
