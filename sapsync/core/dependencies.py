"""Process-wide service instances for the HTTP layer.

Instances are built lazily from settings and cached in-module, so routes
share one queue, dead letter store, sync log and circuit breaker per process.
reset_services() drops them (primarily for tests).
"""

from __future__ import annotations

from sapsync.adapters.dead_letter.in_memory import InMemoryDeadLetterStore
from sapsync.adapters.event_queue.in_memory import InMemoryEventQueue
from sapsync.adapters.sync_log.in_memory import InMemorySyncLogStore
from sapsync.core.config import settings
from sapsync.core.rate_limit import get_rate_limiter
from sapsync.services.circuit_breaker import CircuitBreaker
from sapsync.services.dead_letter_service import DeadLetterService
from sapsync.services.queue_service import QueueService
from sapsync.services.sync_logger import SyncLogger

_dead_letter_service: DeadLetterService | None = None
_queue_service: QueueService | None = None
_sync_logger: SyncLogger | None = None
_circuit_breaker: CircuitBreaker | None = None


def _build_queue_services() -> None:
    global _dead_letter_service, _queue_service

    _dead_letter_service = DeadLetterService(InMemoryDeadLetterStore())
    _queue_service = QueueService(
        InMemoryEventQueue(),
        _dead_letter_service,
        max_attempts=settings.queue.max_attempts,
        retry_delays=settings.queue.retry_delay_seconds,
        lock_timeout=settings.queue.lock_timeout,
    )


def get_queue_service() -> QueueService:
    if _queue_service is None:
        _build_queue_services()
    assert _queue_service is not None
    return _queue_service


def get_dead_letter_service() -> DeadLetterService:
    if _dead_letter_service is None:
        _build_queue_services()
    assert _dead_letter_service is not None
    return _dead_letter_service


def get_sync_logger() -> SyncLogger:
    global _sync_logger

    if _sync_logger is None:
        _sync_logger = SyncLogger(
            InMemorySyncLogStore(),
            enabled=settings.sync_log.enabled,
            max_payload_size=settings.sync_log.max_payload_size,
        )
    return _sync_logger


def get_circuit_breaker() -> CircuitBreaker:
    """Breaker state shares the rate limiter's counter store."""

    global _circuit_breaker

    if _circuit_breaker is None:
        _circuit_breaker = CircuitBreaker(
            get_rate_limiter().store,
            failure_threshold=settings.circuit.failure_threshold,
            failure_window=settings.circuit.failure_window,
            cooldown=settings.circuit.cooldown,
            key_prefix=settings.circuit.key_prefix,
        )
    return _circuit_breaker


def reset_services() -> None:
    global _dead_letter_service, _queue_service, _sync_logger, _circuit_breaker

    _dead_letter_service = None
    _queue_service = None
    _sync_logger = None
    _circuit_breaker = None
