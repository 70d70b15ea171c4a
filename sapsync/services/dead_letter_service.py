"""Dead letter accounting for queue events.

Tracks per-event failure history and decides when an event leaves active
retry. Exhaustion is an expected state transition, surfaced to operators
through the admin listing rather than raised. Retry cadence and backoff
belong to the queue dispatcher; nothing here retries.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

from sapsync.adapters.dead_letter.base import AbstractDeadLetterStore, DeadLetterRecord
from sapsync.adapters.event_queue.base import QueueEvent
from sapsync.core.errors import NotFoundAppError, ValidationAppError

if TYPE_CHECKING:
    from sapsync.services.queue_service import QueueService

logger = logging.getLogger(__name__)

REENQUEUE_PRIORITY = 1


class DeadLetterService:
    """Failure bookkeeping and operator actions on dead letter records."""

    def __init__(
        self,
        store: AbstractDeadLetterStore,
        *,
        queue: "QueueService | None" = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._queue = queue
        self._clock = clock
        self._lock = threading.RLock()

    def bind_queue(self, queue: "QueueService") -> None:
        """Attach the queue used by reenqueue()."""

        self._queue = queue

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def record_failure(self, event: QueueEvent, error_message: str) -> int:
        """Append a failed attempt to the event.

        Args:
            event: Queue event that just failed.
            error_message: Failure reason for this attempt.

        Returns:
            The updated attempt count.
        """

        event.error_history.append(error_message)
        event.attempts += 1
        event.last_error = error_message
        event.updated_at = self._now()
        return event.attempts

    @staticmethod
    def is_exhausted(event: QueueEvent, max_attempts: int) -> bool:
        """Return True once the event used its whole attempt budget."""

        return event.attempts >= max_attempts

    def move_to_dead_letter(self, event: QueueEvent) -> DeadLetterRecord:
        """Persist a dead letter record for event, once.

        Calling this again for the same event returns the existing record.

        Raises:
            ValidationAppError: If the event was never stored or never failed.
        """

        if event.id is None:
            raise ValidationAppError(
                code="event_not_persisted",
                message="Only stored queue events can be dead-lettered",
            )
        if event.attempts < 1:
            raise ValidationAppError(
                code="event_never_failed",
                message=f"Event {event.id} has no recorded failures",
                details={"event_id": event.id},
            )

        with self._lock:
            existing = self._store.get_by_event_id(event.id)
            if existing is not None:
                return existing

            record = self._store.add(
                DeadLetterRecord(
                    original_event_id=event.id,
                    event_type=event.event_type,
                    event_source=event.event_source,
                    payload=dict(event.payload),
                    error_history=list(event.error_history),
                    total_attempts=event.attempts,
                    created_at=self._now(),
                )
            )

        logger.error(
            "dead_letter.created",
            extra={
                "dead_letter_id": record.id,
                "event_id": event.id,
                "event_type": event.event_type,
                "total_attempts": record.total_attempts,
                "last_error": record.last_error,
            },
        )
        return record

    def get(self, dead_letter_id: int) -> DeadLetterRecord:
        record = self._store.get(dead_letter_id)
        if record is None:
            raise NotFoundAppError(
                code="dead_letter_not_found",
                message=f"Dead letter #{dead_letter_id} not found",
                details={"dead_letter_id": dead_letter_id},
            )
        return record

    def resolve(self, dead_letter_id: int, note: str | None = None) -> DeadLetterRecord:
        """Mark a record resolved. The record is kept and nothing is re-run."""

        with self._lock:
            record = self.get(dead_letter_id)
            if not record.resolved:
                record.resolved = True
                record.resolved_at = self._now()
                record.resolution_note = note or record.resolution_note
                self._store.save(record)

        logger.info(
            "dead_letter.resolved",
            extra={"dead_letter_id": dead_letter_id, "resolution_note": record.resolution_note},
        )
        return record

    def reenqueue(self, dead_letter_id: int, *, resolve: bool = False) -> tuple[QueueEvent, bool]:
        """Create a fresh queue event from a dead letter record.

        While the event from the previous re-enqueue is still pending or
        processing, that event is returned instead of a new one. A processing
        event whose lock has outlived the queue lock timeout no longer counts:
        it is retired as failed and the next generation is created. Each new
        event carries the idempotency key ``dead_letter:{id}:{generation}``,
        so processes racing on the same generation still produce one event.

        Args:
            dead_letter_id: Record to replay.
            resolve: Also mark the record resolved.

        Returns:
            Tuple of (new or already active queue event, created flag).
        """

        if self._queue is None:
            raise RuntimeError("DeadLetterService has no queue bound for reenqueue")

        with self._lock:
            record = self.get(dead_letter_id)
            active = self._queue.get(record.last_event_id) if record.last_event_id else None
            if active is not None and active.is_active and not self._queue.is_stale(active):
                event, created = active, False
            else:
                if active is not None and active.is_active:
                    self._queue.supersede_stale(
                        active, f"Lock expired; superseded by re-enqueue of dead letter #{record.id}"
                    )
                generation = record.generation + 1
                event, created = self._queue.enqueue(
                    record.event_type,
                    record.event_source,
                    dict(record.payload),
                    priority=REENQUEUE_PRIORITY,
                    idempotency_key=f"dead_letter:{record.id}:{generation}",
                )
                record.generation = generation
                record.last_event_id = event.id
                self._store.save(record)

        logger.info(
            "dead_letter.reenqueued",
            extra={
                "dead_letter_id": dead_letter_id,
                "event_id": event.id,
                "event_created": created,
                "generation": record.generation,
            },
        )

        if resolve:
            self.resolve(dead_letter_id, note=f"Re-enqueued as event #{event.id}")
        return event, created

    def list_unresolved(self, limit: int = 20) -> list[DeadLetterRecord]:
        return self._store.list_unresolved(limit)

    def count_unresolved(self) -> int:
        return self._store.count_unresolved()
