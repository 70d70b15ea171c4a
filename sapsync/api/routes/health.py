from __future__ import annotations

from fastapi import APIRouter, Depends

from sapsync.core.dependencies import get_circuit_breaker, get_queue_service
from sapsync.services.circuit_breaker import CircuitBreaker, CircuitState
from sapsync.services.queue_service import QueueService

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(
    queue: QueueService = Depends(get_queue_service),
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
) -> dict:
    """Health check endpoint.

    Reports ``degraded`` while unresolved dead letters are waiting for an
    operator or the SAP circuit is not closed, ``ok`` otherwise.

    Returns:
        dict: status, pending queue depth, unresolved dead letter count and
        SAP circuit state.
    """

    dead_letters = queue.dead_letter_count()
    circuit = breaker.state
    return {
        "status": "degraded" if dead_letters or circuit != CircuitState.CLOSED else "ok",
        "queue_depth": queue.queue_depth(),
        "dead_letters": dead_letters,
        "circuit": circuit.value,
    }
