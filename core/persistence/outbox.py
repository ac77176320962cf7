"""
Durable outbox for persistence writes.

Every write the review core wants delivered is appended to a JSON-lines file
before any delivery is attempted, so a crash or a network outage never loses
a graded review. Entries leave the file only once the gateway accepted them
or after `max_attempts` failures.

File format: one OutboxEntry per line (pydantic JSON).
"""

from __future__ import annotations

import os
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from core.persistence.gateway import PersistenceGateway
from core.schemas import (
    CardSchedulingStateRecord,
    KnowledgeProbabilityRecord,
    ReviewEventRecord,
    SchedulingUpsertRecord,
    SessionCloseRecord,
)


# ---- Operation codec ----

def encode_operation(operation: str, args: tuple) -> dict[str, Any]:
    """
    Serialize the arguments of a gateway write into a JSON-safe payload.

    Raises:
        ValueError: for operations the outbox cannot carry
    """
    if operation == "record_review":
        (event,) = args
        record: BaseModel = ReviewEventRecord.from_domain(event)
    elif operation == "upsert_scheduling_state":
        item_id, state = args
        record = SchedulingUpsertRecord(
            item_id=item_id,
            state=CardSchedulingStateRecord.from_domain(state),
        )
    elif operation == "upsert_knowledge_probability":
        (probability,) = args
        record = KnowledgeProbabilityRecord.from_domain(probability)
    elif operation == "close_session":
        session_id, totals = args
        record = SessionCloseRecord.from_domain(session_id, totals)
    else:
        raise ValueError(f"Operation cannot be queued: {operation!r}")
    return record.model_dump(mode="json")


def decode_operation(operation: str, payload: dict[str, Any]) -> tuple:
    """Rebuild gateway call arguments from a stored payload."""
    if operation == "record_review":
        return (ReviewEventRecord.model_validate(payload).to_domain(),)
    if operation == "upsert_scheduling_state":
        record = SchedulingUpsertRecord.model_validate(payload)
        return (record.item_id, record.state.to_domain())
    if operation == "upsert_knowledge_probability":
        return (KnowledgeProbabilityRecord.model_validate(payload).to_domain(),)
    if operation == "close_session":
        record = SessionCloseRecord.model_validate(payload)
        return (record.session_id, record.to_totals())
    raise ValueError(f"Unknown queued operation: {operation!r}")


# ---- Entries ----

class OutboxEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    operation: str
    payload: dict[str, Any]
    attempts: int = 0
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    next_attempt_at: Optional[datetime] = None
    last_error: Optional[str] = None


class Outbox:
    """
    Append-only file of pending writes.

    Appends are fsynced; removals and attempt bookkeeping rewrite the file
    atomically. Safe to share between the producer and one flushing thread.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._entries: list[OutboxEntry] = self._load()
        if self._entries:
            logger.info("Outbox {} holds {} undelivered writes", self.path, len(self._entries))

    def _load(self) -> list[OutboxEntry]:
        if not self.path.exists():
            return []

        entries = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(OutboxEntry.model_validate_json(line))
                except ValidationError as exc:
                    # A torn final line from a crash mid-append
                    logger.warning("Skipping unreadable outbox line {} in {}: {}", line_no, self.path, exc)
        return entries

    def _rewrite(self) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            for entry in self._entries:
                f.write(entry.model_dump_json() + "\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)

    def append(self, operation: str, args: tuple) -> OutboxEntry:
        entry = OutboxEntry(operation=operation, payload=encode_operation(operation, args))
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
                f.flush()
                os.fsync(f.fileno())
            self._entries.append(entry)
        return entry

    def pending(self) -> list[OutboxEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def remove(self, entry_id: str) -> None:
        with self._lock:
            self._entries = [e for e in self._entries if e.id != entry_id]
            self._rewrite()

    def mark_failed(self, entry_id: str, error: str, next_attempt_at: datetime) -> Optional[OutboxEntry]:
        with self._lock:
            for index, entry in enumerate(self._entries):
                if entry.id == entry_id:
                    updated = entry.model_copy(update={
                        "attempts": entry.attempts + 1,
                        "last_error": error,
                        "next_attempt_at": next_attempt_at,
                    })
                    self._entries[index] = updated
                    self._rewrite()
                    return updated
        return None


def deliver(gateway: PersistenceGateway, entry: OutboxEntry) -> None:
    """Replay one entry against the gateway (raises on failure)."""
    args = decode_operation(entry.operation, entry.payload)
    getattr(gateway, entry.operation)(*args)
