"""In-memory sync log store."""

from __future__ import annotations

import itertools
import threading
from datetime import datetime

from sapsync.adapters.sync_log.base import AbstractSyncLogStore, SyncLogEntry


class InMemorySyncLogStore(AbstractSyncLogStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: list[SyncLogEntry] = []
        self._ids = itertools.count(1)

    def add(self, entry: SyncLogEntry) -> SyncLogEntry:
        with self._lock:
            entry.id = next(self._ids)
            self._entries.append(entry)
            return entry

    def _matching_locked(self, entity_type: str | None, status: str | None) -> list[SyncLogEntry]:
        return [
            e
            for e in self._entries
            if (not entity_type or e.entity_type == entity_type)
            and (not status or e.status == status)
        ]

    def query(
        self,
        *,
        entity_type: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[SyncLogEntry]:
        with self._lock:
            matching = self._matching_locked(entity_type, status)
        matching.sort(key=lambda e: (e.created_at, e.id or 0), reverse=True)
        return matching[offset : offset + limit]

    def count(self, *, entity_type: str | None = None, status: str | None = None) -> int:
        with self._lock:
            return len(self._matching_locked(entity_type, status))

    def delete_before(self, cutoff: datetime, limit: int | None = None) -> int:
        with self._lock:
            stale = [e for e in self._entries if e.created_at < cutoff]
            if limit is not None:
                stale = stale[:limit]
            stale_ids = {e.id for e in stale}
            self._entries = [e for e in self._entries if e.id not in stale_ids]
            return len(stale)
