"""
Tests for the durable outbox file and operation codec.
"""
import pytest

from core.fsrs.constants import Grade
from core.fsrs.memory_state import initial_state
from core.fsrs.review_log import ReviewEvent, SessionTotals
from core.fsrs.scheduler import next_state
from core.mastery.knowledge import KnowledgeProbability
from core.persistence.memory_gateway import InMemoryPersistenceGateway
from core.persistence.outbox import Outbox, decode_operation, deliver, encode_operation


@pytest.fixture
def outbox_path(tmp_path):
    return tmp_path / "outbox" / "pending.jsonl"


class TestCodec:

    def test_every_write_operation(self, now):
        state = next_state(initial_state(now), Grade.GOOD, now)
        calls = [
            ("record_review", (ReviewEvent("s-1", "word-1", Grade.GOOD, now, 900),)),
            ("upsert_scheduling_state", ("word-1", state)),
            ("upsert_knowledge_probability", (KnowledgeProbability("articles", 0.18, 1, 1, now, 0.18),)),
            ("close_session", ("s-1", SessionTotals(now, 1, 1))),
        ]
        for operation, args in calls:
            assert decode_operation(operation, encode_operation(operation, args)) == args

    def test_rejects_reads(self):
        with pytest.raises(ValueError):
            encode_operation("list_review_events", ())


class TestOutboxFile:

    def test_entries_survive_reopen(self, outbox_path, now):
        outbox = Outbox(outbox_path)
        outbox.append("record_review", (ReviewEvent("s-1", "word-1", Grade.EASY, now),))
        outbox.append("close_session", ("s-1", SessionTotals(now, 1, 1)))

        reopened = Outbox(outbox_path)
        assert [e.operation for e in reopened.pending()] == ["record_review", "close_session"]

    def test_remove_is_persisted(self, outbox_path, now):
        outbox = Outbox(outbox_path)
        entry = outbox.append("close_session", ("s-1", SessionTotals(now, 0, 0)))

        outbox.remove(entry.id)

        assert len(outbox) == 0
        assert len(Outbox(outbox_path)) == 0

    def test_mark_failed(self, outbox_path, now):
        outbox = Outbox(outbox_path)
        entry = outbox.append("close_session", ("s-1", SessionTotals(now, 0, 0)))

        updated = outbox.mark_failed(entry.id, "timeout", now)

        assert updated.attempts == 1
        assert updated.last_error == "timeout"
        assert Outbox(outbox_path).pending()[0].next_attempt_at == now

    def test_torn_line_is_skipped(self, outbox_path, now):
        outbox = Outbox(outbox_path)
        outbox.append("close_session", ("s-1", SessionTotals(now, 0, 0)))
        with open(outbox_path, "a", encoding="utf-8") as f:
            f.write('{"id": "half')

        assert len(Outbox(outbox_path)) == 1

    def test_deliver_replays_against_gateway(self, outbox_path, now):
        gateway = InMemoryPersistenceGateway()
        state = next_state(initial_state(now), Grade.HARD, now)
        entry = Outbox(outbox_path).append("upsert_scheduling_state", ("word-9", state))

        deliver(gateway, entry)

        assert gateway.states == {"word-9": state}
