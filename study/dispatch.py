"""
Persistence dispatchers.

The session controller hands every write to a dispatcher and moves on. A
dispatcher decides when and how often the write reaches the gateway:

- InlineDispatcher: right away, on the caller's thread
- BackgroundDispatcher: fire-and-forget on a thread pool, never retried
- OutboxDispatcher: written to a durable outbox first, delivered by a
  background thread with exponential backoff

No dispatcher ever raises a persistence failure back to the caller.
"""

from __future__ import annotations

import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from core.persistence.gateway import PersistenceGateway
from core.persistence.outbox import Outbox, deliver


WRITE_OPERATIONS = frozenset({
    "record_review",
    "upsert_scheduling_state",
    "upsert_knowledge_probability",
    "close_session",
})

DEFAULT_WORKERS = 4
DEFAULT_OUTBOX_PATH = Path("logs") / "outbox.jsonl"
DEFAULT_MAX_ATTEMPTS = 8


def _check_operation(operation: str) -> None:
    if operation not in WRITE_OPERATIONS:
        raise ValueError(f"Not a gateway write operation: {operation!r}")


class Dispatcher:
    """Base class: deliver `gateway.<operation>(*args)` at some point."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def submit(self, operation: str, *args) -> None:
        raise NotImplementedError

    def close(self, wait: bool = True) -> None:
        """Release worker resources (no-op by default)."""

    def _call(self, operation: str, args: tuple) -> bool:
        try:
            getattr(self.gateway, operation)(*args)
            return True
        except Exception as exc:
            logger.warning("Persistence call {} failed (non-blocking): {}", operation, exc)
            return False


class InlineDispatcher(Dispatcher):
    """Deliver synchronously; failures are logged and dropped."""

    def submit(self, operation: str, *args) -> None:
        _check_operation(operation)
        self._call(operation, args)


class BackgroundDispatcher(Dispatcher):
    """
    Fire-and-forget delivery on a thread pool.

    Calls are not serialized relative to each other and are never retried:
    a failed write is logged and lost.
    """

    def __init__(self, gateway: PersistenceGateway, max_workers: int = DEFAULT_WORKERS):
        super().__init__(gateway)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="review-persist")
        self._futures: set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, operation: str, *args) -> None:
        _check_operation(operation)
        try:
            future = self._executor.submit(self._call, operation, args)
        except RuntimeError as exc:
            # Executor already shut down
            logger.error("Dropping {}: {}", operation, exc)
            return
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._futures)

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class OutboxDispatcher(Dispatcher):
    """
    Durable at-least-once delivery.

    Usage:
        dispatcher = OutboxDispatcher(gateway, "logs/outbox.jsonl")
        dispatcher.start()
        # ... session runs ...
        dispatcher.close()
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        path: Path | str = DEFAULT_OUTBOX_PATH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay_seconds: float = 1.0,
        max_delay_seconds: float = 300.0,
        poll_interval_seconds: float = 5.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__(gateway)
        self.outbox = Outbox(path)
        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._flush_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def submit(self, operation: str, *args) -> None:
        _check_operation(operation)
        try:
            self.outbox.append(operation, args)
        except (ValueError, OSError) as exc:
            logger.error("Could not queue {} in {}, write lost: {}", operation, self.outbox.path, exc)
            return
        self._wake.set()

    def backoff(self, attempts: int) -> timedelta:
        """Delay before the next try after `attempts` failures."""
        delay = self.base_delay_seconds * (2 ** max(0, attempts - 1))
        return timedelta(seconds=min(self.max_delay_seconds, delay))

    def flush(self) -> int:
        """
        Make one delivery pass over the pending entries that are due.

        Returns:
            Number of entries delivered
        """
        delivered = 0
        with self._flush_lock:
            for entry in self.outbox.pending():
                now = self._clock()
                if entry.next_attempt_at is not None and entry.next_attempt_at > now:
                    continue
                try:
                    deliver(self.gateway, entry)
                except Exception as exc:
                    attempts = entry.attempts + 1
                    if attempts >= self.max_attempts:
                        logger.error(
                            "Dropping {} after {} failed attempts: {}",
                            entry.operation, attempts, exc,
                        )
                        self.outbox.remove(entry.id)
                    else:
                        logger.warning(
                            "Delivery of {} failed (attempt {}/{}), retrying later: {}",
                            entry.operation, attempts, self.max_attempts, exc,
                        )
                        self.outbox.mark_failed(entry.id, str(exc), now + self.backoff(attempts))
                    continue
                self.outbox.remove(entry.id)
                delivered += 1
        return delivered

    @property
    def pending_count(self) -> int:
        return len(self.outbox)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="review-outbox", daemon=True)
        self._thread.start()
        logger.info("Outbox delivery started ({} pending)", self.pending_count)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self._wake.wait(self.poll_interval_seconds)
            self._wake.clear()
            self.flush()

    def close(self, wait: bool = True) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._wake.set()
        if wait:
            self._thread.join()
            # Last chance for writes queued while stopping
            self.flush()
        self._thread = None


def build_dispatcher(gateway: PersistenceGateway, mode: Optional[str] = None) -> Dispatcher:
    """
    Build the dispatcher selected by PERSISTENCE_MODE.

    Modes: fire_and_forget (default), outbox, inline.
    """
    mode = (mode or os.getenv("PERSISTENCE_MODE", "fire_and_forget")).lower()

    if mode == "inline":
        return InlineDispatcher(gateway)
    if mode == "fire_and_forget":
        workers = int(os.getenv("PERSISTENCE_WORKERS", str(DEFAULT_WORKERS)))
        return BackgroundDispatcher(gateway, max_workers=workers)
    if mode == "outbox":
        dispatcher = OutboxDispatcher(
            gateway,
            path=os.getenv("OUTBOX_PATH", str(DEFAULT_OUTBOX_PATH)),
            max_attempts=int(os.getenv("OUTBOX_MAX_ATTEMPTS", str(DEFAULT_MAX_ATTEMPTS))),
        )
        dispatcher.start()
        return dispatcher
    raise ValueError(f"Unknown PERSISTENCE_MODE: {mode!r}")
