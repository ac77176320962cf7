"""
Tests for persistence dispatchers.
"""
from datetime import timedelta

import pytest

from core.fsrs.constants import Grade
from core.fsrs.memory_state import initial_state
from core.fsrs.review_log import ReviewEvent, SessionTotals
from core.fsrs.scheduler import next_state
from core.persistence.gateway import PersistenceError
from core.persistence.memory_gateway import InMemoryPersistenceGateway
from study.dispatch import (
    BackgroundDispatcher,
    InlineDispatcher,
    OutboxDispatcher,
    build_dispatcher,
)


class FlakyGateway(InMemoryPersistenceGateway):
    """Fails record_review a set number of times, then recovers."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures

    def record_review(self, event):
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("connection reset")
        super().record_review(event)


class FlakyStateGateway(InMemoryPersistenceGateway):
    """Fails the first scheduling-state write, then recovers."""

    def __init__(self):
        super().__init__()
        self.failed = False

    def upsert_scheduling_state(self, item_id, state):
        if not self.failed:
            self.failed = True
            raise PersistenceError("connection reset")
        super().upsert_scheduling_state(item_id, state)


def _event(now, item_id="word-1"):
    return ReviewEvent("s-1", item_id, Grade.GOOD, now)


def test_inline_delivers_immediately(memory_gateway, now):
    InlineDispatcher(memory_gateway).submit("record_review", _event(now))
    assert memory_gateway.events == [_event(now)]


def test_inline_swallows_failures(failing_gateway, now):
    InlineDispatcher(failing_gateway).submit("record_review", _event(now))
    assert failing_gateway.calls == ["record_review"]


def test_unknown_operation_rejected(memory_gateway):
    with pytest.raises(ValueError):
        InlineDispatcher(memory_gateway).submit("drop_everything")


def test_background_delivers_all(memory_gateway, now):
    dispatcher = BackgroundDispatcher(memory_gateway, max_workers=2)
    for i in range(20):
        dispatcher.submit("record_review", _event(now, f"word-{i}"))
    dispatcher.close(wait=True)

    assert len(memory_gateway.events) == 20
    assert dispatcher.in_flight == 0


def test_background_failure_does_not_raise(failing_gateway, now):
    dispatcher = BackgroundDispatcher(failing_gateway)
    dispatcher.submit("close_session", "s-1", SessionTotals(now, 0, 0))
    dispatcher.close(wait=True)

    assert failing_gateway.calls == ["close_session"]


class TestOutboxDispatcher:

    def test_flush_delivers_and_empties(self, tmp_path, clock, now):
        gateway = InMemoryPersistenceGateway()
        dispatcher = OutboxDispatcher(gateway, tmp_path / "outbox.jsonl", clock=clock)

        dispatcher.submit("record_review", _event(now))
        assert dispatcher.pending_count == 1

        assert dispatcher.flush() == 1
        assert dispatcher.pending_count == 0
        assert gateway.events == [_event(now)]

    def test_retries_with_backoff(self, tmp_path, clock, now):
        gateway = FlakyGateway(failures=2)
        dispatcher = OutboxDispatcher(gateway, tmp_path / "outbox.jsonl", clock=clock)
        dispatcher.submit("record_review", _event(now))

        assert dispatcher.flush() == 0
        # Not due again until the backoff has passed
        assert dispatcher.flush() == 0
        assert gateway.failures == 1

        clock.advance(seconds=1)
        assert dispatcher.flush() == 0
        clock.advance(seconds=2)
        assert dispatcher.flush() == 1
        assert gateway.events == [_event(now)]

    def test_gives_up_after_max_attempts(self, tmp_path, clock, now):
        gateway = FlakyGateway(failures=10)
        dispatcher = OutboxDispatcher(gateway, tmp_path / "outbox.jsonl", max_attempts=2, clock=clock)
        dispatcher.submit("record_review", _event(now))

        dispatcher.flush()
        clock.advance(minutes=10)
        dispatcher.flush()

        assert dispatcher.pending_count == 0
        assert gateway.events == []

    def test_pending_writes_survive_restart(self, tmp_path, clock, now):
        path = tmp_path / "outbox.jsonl"
        OutboxDispatcher(InMemoryPersistenceGateway(), path, clock=clock).submit(
            "record_review", _event(now)
        )

        gateway = InMemoryPersistenceGateway()
        assert OutboxDispatcher(gateway, path, clock=clock).flush() == 1
        assert gateway.events == [_event(now)]

    def test_retried_state_does_not_roll_back_newer_one(self, tmp_path, clock, now):
        gateway = FlakyStateGateway()
        dispatcher = OutboxDispatcher(gateway, tmp_path / "outbox.jsonl", clock=clock)
        first = next_state(initial_state(now), Grade.GOOD, now)
        second = next_state(first, Grade.GOOD, now + timedelta(minutes=1))

        dispatcher.submit("upsert_scheduling_state", "word-1", first)
        dispatcher.submit("upsert_scheduling_state", "word-1", second)

        # First write fails and waits for its backoff; second lands
        assert dispatcher.flush() == 1
        assert gateway.states["word-1"] == second

        clock.advance(seconds=1)
        assert dispatcher.flush() == 1
        assert dispatcher.pending_count == 0
        assert gateway.states["word-1"] == second
        assert gateway.states["word-1"].stability == 3.14

    def test_queue_failure_does_not_raise(self, tmp_path, clock, now, monkeypatch):
        gateway = InMemoryPersistenceGateway()
        dispatcher = OutboxDispatcher(gateway, tmp_path / "outbox.jsonl", clock=clock)

        def disk_full(operation, args):
            raise OSError("No space left on device")

        monkeypatch.setattr(dispatcher.outbox, "append", disk_full)
        dispatcher.submit("record_review", _event(now))

        assert dispatcher.pending_count == 0
        assert dispatcher.flush() == 0
        assert gateway.events == []

    def test_backoff_is_capped(self, tmp_path):
        dispatcher = OutboxDispatcher(InMemoryPersistenceGateway(), tmp_path / "o.jsonl")
        assert dispatcher.backoff(1) == timedelta(seconds=1)
        assert dispatcher.backoff(4) == timedelta(seconds=8)
        assert dispatcher.backoff(30) == timedelta(seconds=300)

    def test_background_thread_delivers_on_close(self, tmp_path, now):
        gateway = InMemoryPersistenceGateway()
        dispatcher = OutboxDispatcher(gateway, tmp_path / "outbox.jsonl", poll_interval_seconds=0.01)
        dispatcher.start()
        dispatcher.submit("record_review", _event(now))
        dispatcher.close(wait=True)

        assert gateway.events == [_event(now)]
        assert dispatcher.pending_count == 0


class TestBuildDispatcher:

    def test_default_is_fire_and_forget(self, memory_gateway, monkeypatch):
        monkeypatch.delenv("PERSISTENCE_MODE", raising=False)
        dispatcher = build_dispatcher(memory_gateway)
        assert isinstance(dispatcher, BackgroundDispatcher)
        dispatcher.close()

    def test_inline(self, memory_gateway):
        assert isinstance(build_dispatcher(memory_gateway, "inline"), InlineDispatcher)

    def test_outbox_from_env(self, memory_gateway, monkeypatch, tmp_path):
        monkeypatch.setenv("PERSISTENCE_MODE", "outbox")
        monkeypatch.setenv("OUTBOX_PATH", str(tmp_path / "env-outbox.jsonl"))
        dispatcher = build_dispatcher(memory_gateway)
        try:
            assert isinstance(dispatcher, OutboxDispatcher)
            assert dispatcher.outbox.path == tmp_path / "env-outbox.jsonl"
        finally:
            dispatcher.close()

    def test_unknown_mode(self, memory_gateway):
        with pytest.raises(ValueError):
            build_dispatcher(memory_gateway, "carrier-pigeon")
