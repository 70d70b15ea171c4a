"""Sync log store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class SyncLogEntry:
    """One entity-level sync outcome, as shown in the admin log listing."""

    entity_type: str
    direction: str
    status: str
    message: str
    created_at: datetime
    entity_id: int | None = None
    request_payload: str | None = None
    response_payload: str | None = None
    id: int | None = None


class AbstractSyncLogStore(ABC):
    @abstractmethod
    def add(self, entry: SyncLogEntry) -> SyncLogEntry:
        raise NotImplementedError

    @abstractmethod
    def query(
        self,
        *,
        entity_type: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[SyncLogEntry]:
        """Return matching entries, newest first."""
        raise NotImplementedError

    @abstractmethod
    def count(self, *, entity_type: str | None = None, status: str | None = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def delete_before(self, cutoff: datetime, limit: int | None = None) -> int:
        """Delete entries created before cutoff; return how many were removed."""
        raise NotImplementedError
