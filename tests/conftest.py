"""
Pytest Configuration and Fixtures.

Shared fixtures for the review core tests: a fixed clock, gateways that
work or always fail, and a throwaway SQLite database per test.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from core.fsrs import database  # noqa: E402
from core.persistence.gateway import PersistenceError  # noqa: E402
from core.persistence.memory_gateway import InMemoryPersistenceGateway  # noqa: E402
from study.dispatch import InlineDispatcher  # noqa: E402


NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FailingGateway(InMemoryPersistenceGateway):
    """Gateway whose every call fails like an unreachable store."""

    def __init__(self):
        super().__init__()
        self.calls: list[str] = []

    def _fail(self, operation: str):
        self.calls.append(operation)
        raise PersistenceError(f"{operation}: store unreachable")

    def create_session(self, item_type, course_scope=None, started_at=None):
        self._fail("create_session")

    def close_session(self, session_id, totals):
        self._fail("close_session")

    def record_review(self, event):
        self._fail("record_review")

    def upsert_scheduling_state(self, item_id, state):
        self._fail("upsert_scheduling_state")

    def list_knowledge_probabilities(self, scope=None):
        self._fail("list_knowledge_probabilities")

    def upsert_knowledge_probability(self, probability):
        self._fail("upsert_knowledge_probability")


class RecordingGateway(InMemoryPersistenceGateway):
    """In-memory gateway that also remembers the order of calls."""

    def __init__(self, probabilities=None):
        super().__init__(probabilities)
        self.calls: list[str] = []

    def create_session(self, item_type, course_scope=None, started_at=None):
        self.calls.append("create_session")
        return super().create_session(item_type, course_scope, started_at)

    def close_session(self, session_id, totals):
        self.calls.append("close_session")
        return super().close_session(session_id, totals)

    def record_review(self, event):
        self.calls.append("record_review")
        return super().record_review(event)

    def upsert_scheduling_state(self, item_id, state):
        self.calls.append("upsert_scheduling_state")
        return super().upsert_scheduling_state(item_id, state)

    def list_knowledge_probabilities(self, scope=None):
        self.calls.append("list_knowledge_probabilities")
        return super().list_knowledge_probabilities(scope)

    def upsert_knowledge_probability(self, probability):
        self.calls.append("upsert_knowledge_probability")
        return super().upsert_knowledge_probability(probability)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_gateway():
    return RecordingGateway()


@pytest.fixture
def failing_gateway():
    return FailingGateway()


@pytest.fixture
def inline_dispatcher(memory_gateway):
    return InlineDispatcher(memory_gateway)


@pytest.fixture
def sqlite_url(tmp_path):
    """SQLite database file with the review schema created."""
    url = f"sqlite:///{tmp_path / 'review.db'}"
    database.init_db(database.get_engine(url))
    yield url
    database.dispose_engines()
