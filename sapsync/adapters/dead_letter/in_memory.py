"""In-memory dead letter store."""

from __future__ import annotations

import itertools
import threading

from sapsync.adapters.dead_letter.base import AbstractDeadLetterStore, DeadLetterRecord


class InMemoryDeadLetterStore(AbstractDeadLetterStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[int, DeadLetterRecord] = {}
        self._ids = itertools.count(1)

    def add(self, record: DeadLetterRecord) -> DeadLetterRecord:
        with self._lock:
            record.id = next(self._ids)
            self._records[record.id] = record
            return record

    def get(self, dead_letter_id: int) -> DeadLetterRecord | None:
        with self._lock:
            return self._records.get(dead_letter_id)

    def get_by_event_id(self, event_id: int) -> DeadLetterRecord | None:
        with self._lock:
            for record in self._records.values():
                if record.original_event_id == event_id:
                    return record
            return None

    def save(self, record: DeadLetterRecord) -> None:
        if record.id is None:
            raise ValueError("record must be added before it can be saved")
        with self._lock:
            self._records[record.id] = record

    def list_unresolved(self, limit: int = 20) -> list[DeadLetterRecord]:
        with self._lock:
            unresolved = [r for r in self._records.values() if not r.resolved]
        unresolved.sort(key=lambda r: (r.created_at, r.id or 0), reverse=True)
        return unresolved[:limit]

    def count_unresolved(self) -> int:
        with self._lock:
            return sum(1 for r in self._records.values() if not r.resolved)
