"""Event queue store interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sapsync.core.sync_status import QueueStatus

ACTIVE_STATUSES = frozenset({QueueStatus.PENDING, QueueStatus.PROCESSING})


@dataclass
class QueueEvent:
    """A unit of sync work waiting for (or going through) the dispatcher.

    Attributes:
        event_type: Routing key, e.g. ``order.placed`` or ``item.stock_changed``.
        event_source: Origin system (``sap`` or ``wc``).
        priority: 1 is processed first, 10 last.
        attempts: Failed attempts so far; always equals len(error_history).
        idempotency_key: Optional key; only one active event may hold it.
        locked_at: When a dispatcher claimed the event; cleared on ack/nack.
    """

    event_type: str
    event_source: str
    payload: dict[str, Any]
    created_at: datetime
    process_after: datetime
    status: QueueStatus = QueueStatus.PENDING
    priority: int = 5
    attempts: int = 0
    max_attempts: int = 5
    error_history: list[str] = field(default_factory=list)
    last_error: str | None = None
    idempotency_key: str | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    locked_at: datetime | None = None
    id: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class AbstractEventQueue(ABC):
    """Persistent store of queue events."""

    @abstractmethod
    def add(self, event: QueueEvent) -> tuple[QueueEvent, bool]:
        """Insert event and assign its id.

        When event carries an idempotency key already held by an active
        event, nothing is inserted and the existing event is returned.

        Returns:
            Tuple of (stored event, created flag).
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, event_id: int) -> QueueEvent | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, event: QueueEvent) -> None:
        """Persist changes made to an existing event."""
        raise NotImplementedError

    @abstractmethod
    def due(self, now: datetime, limit: int) -> list[QueueEvent]:
        """Return pending events ready at now, by priority then age."""
        raise NotImplementedError

    @abstractmethod
    def count(self, status: QueueStatus | None = None) -> int:
        raise NotImplementedError

    @abstractmethod
    def locked_before(self, cutoff: datetime) -> list[QueueEvent]:
        """Return processing events claimed at or before cutoff."""
        raise NotImplementedError

    @abstractmethod
    def delete_completed_before(self, cutoff: datetime, limit: int) -> int:
        """Delete up to limit completed events finished before cutoff.

        Returns:
            Number of events deleted.
        """
        raise NotImplementedError
