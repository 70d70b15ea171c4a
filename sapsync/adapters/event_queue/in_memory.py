"""In-memory event queue store.

Per-process only; suitable for tests and single-worker deployments.
"""

from __future__ import annotations

import itertools
import threading
from datetime import datetime

from sapsync.adapters.event_queue.base import AbstractEventQueue, QueueEvent
from sapsync.core.sync_status import QueueStatus


class InMemoryEventQueue(AbstractEventQueue):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._events: dict[int, QueueEvent] = {}
        self._ids = itertools.count(1)

    def add(self, event: QueueEvent) -> tuple[QueueEvent, bool]:
        with self._lock:
            if event.idempotency_key:
                for existing in self._events.values():
                    if existing.idempotency_key == event.idempotency_key and existing.is_active:
                        return existing, False

            event.id = next(self._ids)
            self._events[event.id] = event
            return event, True

    def get(self, event_id: int) -> QueueEvent | None:
        with self._lock:
            return self._events.get(event_id)

    def save(self, event: QueueEvent) -> None:
        if event.id is None:
            raise ValueError("event must be added before it can be saved")
        with self._lock:
            self._events[event.id] = event

    def due(self, now: datetime, limit: int) -> list[QueueEvent]:
        with self._lock:
            ready = [
                e
                for e in self._events.values()
                if e.status == QueueStatus.PENDING and e.process_after <= now
            ]
        ready.sort(key=lambda e: (e.priority, e.created_at, e.id or 0))
        return ready[:limit]

    def count(self, status: QueueStatus | None = None) -> int:
        with self._lock:
            if status is None:
                return len(self._events)
            return sum(1 for e in self._events.values() if e.status == status)

    def locked_before(self, cutoff: datetime) -> list[QueueEvent]:
        with self._lock:
            return [
                e
                for e in self._events.values()
                if e.status == QueueStatus.PROCESSING and e.locked_at is not None and e.locked_at <= cutoff
            ]

    def delete_completed_before(self, cutoff: datetime, limit: int) -> int:
        with self._lock:
            expired = [
                event_id
                for event_id, e in self._events.items()
                if e.status == QueueStatus.COMPLETED and e.completed_at is not None and e.completed_at < cutoff
            ][:limit]
            for event_id in expired:
                del self._events[event_id]
            return len(expired)
