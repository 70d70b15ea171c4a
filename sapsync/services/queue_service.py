"""Event queue operations used by the sync dispatcher.

Delivery is at-least-once: handlers must be idempotent. The dispatcher
(external) pulls due events, runs them, and reports each outcome through
ack() or nack(). nack() delegates failure bookkeeping to DeadLetterService.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Sequence

from sapsync.adapters.event_queue.base import AbstractEventQueue, QueueEvent
from sapsync.core.errors import NotFoundAppError, ValidationAppError
from sapsync.core.sync_status import QueueStatus
from sapsync.services.dead_letter_service import DeadLetterService

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAYS = (60, 300, 900, 3600, 7200)
DEFAULT_LOCK_TIMEOUT = 300
CLEANUP_BATCH_SIZE = 1000


class QueueService:
    def __init__(
        self,
        store: AbstractEventQueue,
        dead_letters: DeadLetterService,
        *,
        max_attempts: int = 5,
        retry_delays: Sequence[int] = DEFAULT_RETRY_DELAYS,
        lock_timeout: int = DEFAULT_LOCK_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not retry_delays:
            raise ValueError("retry_delays must not be empty")
        if lock_timeout < 1:
            raise ValueError("lock_timeout must be >= 1")

        self._store = store
        self._dead_letters = dead_letters
        self._max_attempts = max_attempts
        self._retry_delays = tuple(retry_delays)
        self._lock_timeout = lock_timeout
        self._clock = clock
        dead_letters.bind_queue(self)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def enqueue(
        self,
        event_type: str,
        source: str,
        payload: dict[str, Any],
        *,
        priority: int = 5,
        delay_seconds: int = 0,
        idempotency_key: str | None = None,
    ) -> tuple[QueueEvent, bool]:
        """Add an event for processing.

        Args:
            event_type: e.g. ``order.placed``, ``item.stock_changed``.
            source: ``sap`` or ``wc``.
            payload: Event data.
            priority: 1 highest, 10 lowest.
            delay_seconds: Seconds to wait before the event becomes due.
            idempotency_key: When an active event already holds this key,
                that event is returned and nothing is added.

        Returns:
            Tuple of (event, created flag).
        """

        if not 1 <= priority <= 10:
            raise ValidationAppError(
                code="invalid_priority",
                message="priority must be between 1 and 10",
            )

        now = self._now()
        event, created = self._store.add(
            QueueEvent(
                event_type=event_type,
                event_source=source,
                payload=payload,
                priority=priority,
                max_attempts=self._max_attempts,
                created_at=now,
                updated_at=now,
                process_after=now + timedelta(seconds=max(0, delay_seconds)),
                idempotency_key=idempotency_key,
            )
        )

        logger.info(
            "queue.enqueued" if created else "queue.enqueue_deduplicated",
            extra={"event_id": event.id, "event_type": event_type, "priority": event.priority},
        )
        return event, created

    def get(self, event_id: int) -> QueueEvent | None:
        return self._store.get(event_id)

    def _require(self, event_id: int) -> QueueEvent:
        event = self._store.get(event_id)
        if event is None:
            raise NotFoundAppError(
                code="event_not_found",
                message=f"Queue event #{event_id} not found",
                details={"event_id": event_id},
            )
        return event

    def _require_active(self, event_id: int, operation: str) -> QueueEvent:
        event = self._require(event_id)
        if not event.is_active:
            raise ValidationAppError(
                code="invalid_event_state",
                message=f"Cannot {operation} queue event #{event_id} in status '{event.status.value}'",
                details={"event_id": event_id, "status": event.status.value},
            )
        return event

    def claim_due(self, limit: int = 10) -> list[QueueEvent]:
        """Mark up to limit due events as processing and return them."""

        now = self._now()
        events = self._store.due(now, limit)
        for event in events:
            event.status = QueueStatus.PROCESSING
            event.locked_at = now
            event.updated_at = now
            self._store.save(event)
        return events

    def ack(self, event_id: int) -> QueueEvent:
        """Record successful processing.

        Raises:
            ValidationAppError: The event is no longer pending or processing.
        """

        event = self._require_active(event_id, "ack")
        now = self._now()
        event.status = QueueStatus.COMPLETED
        event.completed_at = now
        event.locked_at = None
        event.updated_at = now
        self._store.save(event)
        return event

    def nack(self, event_id: int, error_message: str) -> QueueEvent:
        """Record a failed attempt; schedule a retry or dead-letter the event.

        Only pending or processing events can be nacked. A late nack for an
        event that already completed or went dead is rejected and leaves the
        event untouched.

        Returns:
            The updated event (status ``pending`` or ``dead``).

        Raises:
            ValidationAppError: The event is no longer pending or processing.
        """

        event = self._require_active(event_id, "nack")
        attempts = self._dead_letters.record_failure(event, error_message)
        event.locked_at = None

        if self._dead_letters.is_exhausted(event, event.max_attempts):
            event.status = QueueStatus.DEAD
            self._store.save(event)
            self._dead_letters.move_to_dead_letter(event)
            return event

        delay = self._retry_delays[min(attempts - 1, len(self._retry_delays) - 1)]
        event.status = QueueStatus.PENDING
        event.process_after = self._now() + timedelta(seconds=delay)
        self._store.save(event)

        logger.warning(
            "queue.retry_scheduled",
            extra={
                "event_id": event.id,
                "event_type": event.event_type,
                "attempt": attempts,
                "retry_in_s": delay,
                "last_error": error_message,
            },
        )
        return event

    def is_stale(self, event: QueueEvent) -> bool:
        """True when event has been processing for longer than the lock timeout."""

        if event.status != QueueStatus.PROCESSING or event.locked_at is None:
            return False
        return event.locked_at <= self._now() - timedelta(seconds=self._lock_timeout)

    def release_stale(self, lock_timeout: int | None = None) -> int:
        """Return events stuck in processing back to pending.

        A dispatcher that dies between claim_due() and ack()/nack() leaves its
        events locked; once the lock is older than lock_timeout seconds they
        become due again. The failed run is not counted as an attempt.

        Returns:
            Number of events released.
        """

        timeout = self._lock_timeout if lock_timeout is None else lock_timeout
        now = self._now()
        released = 0
        for event in self._store.locked_before(now - timedelta(seconds=timeout)):
            event.status = QueueStatus.PENDING
            event.locked_at = None
            event.updated_at = now
            self._store.save(event)
            released += 1

        if released:
            logger.warning("queue.stale_released", extra={"released": released, "lock_timeout_s": timeout})
        return released

    def supersede_stale(self, event: QueueEvent, reason: str) -> None:
        """Retire a stale processing event so a replacement can take its place.

        The event is marked ``failed``; a late ack()/nack() from the worker
        that lost it is then rejected.
        """

        now = self._now()
        event.status = QueueStatus.FAILED
        event.last_error = reason
        event.locked_at = None
        event.updated_at = now
        self._store.save(event)
        logger.warning("queue.stale_superseded", extra={"event_id": event.id, "reason": reason})

    def cleanup_completed(self, days: int = 7) -> int:
        """Delete completed events older than days, in batches.

        Returns:
            Number of events deleted.
        """

        if days < 0:
            raise ValidationAppError(code="invalid_retention", message="days must be >= 0")

        cutoff = self._now() - timedelta(days=days)
        deleted = 0
        while True:
            batch = self._store.delete_completed_before(cutoff, CLEANUP_BATCH_SIZE)
            deleted += batch
            if batch < CLEANUP_BATCH_SIZE:
                break

        if deleted:
            logger.info("queue.completed_cleaned", extra={"deleted": deleted, "retention_days": days})
        return deleted

    def queue_depth(self) -> int:
        return self._store.count(QueueStatus.PENDING)

    def dead_letter_count(self) -> int:
        return self._dead_letters.count_unresolved()
