from fastapi import APIRouter, Depends, Query

from sapsync.core.auth import verify_api_key
from sapsync.core.dependencies import get_circuit_breaker, get_dead_letter_service, get_sync_logger
from sapsync.core.rate_limit import rate_limited
from sapsync.core.sync_status import EntityType, LogLevel
from sapsync.schemas.circuit import CircuitStatusResponse
from sapsync.schemas.dead_letter import (
    DeadLetterItem,
    DeadLetterList,
    ReenqueueResponse,
    ResolveResponse,
)
from sapsync.schemas.sync_log import SyncLogEntryResponse, SyncLogPage
from sapsync.services.circuit_breaker import CircuitBreaker
from sapsync.services.dead_letter_service import DeadLetterService
from sapsync.services.sync_logger import SyncLogger

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(verify_api_key)],
)


@router.get("/logs", response_model=SyncLogPage)
async def list_logs(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    entity_type: EntityType | None = Query(None, description="Filter by entity type."),
    status: LogLevel | None = Query(None, description="Filter by log status."),
    sync_logger: SyncLogger = Depends(get_sync_logger),
) -> SyncLogPage:
    """Paginated sync log, newest first."""

    entries, total, total_pages = sync_logger.get_logs(
        page=page,
        per_page=per_page,
        entity_type=entity_type.value if entity_type else None,
        status=status.value if status else None,
    )
    return SyncLogPage(
        items=[SyncLogEntryResponse.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=total_pages,
    )


@router.get("/dead-letters", response_model=DeadLetterList)
async def list_dead_letters(
    limit: int = Query(20, ge=1, le=100),
    dead_letters: DeadLetterService = Depends(get_dead_letter_service),
) -> DeadLetterList:
    """Unresolved dead letters, newest first."""

    records = dead_letters.list_unresolved(limit)
    return DeadLetterList(
        items=[DeadLetterItem.from_record(record) for record in records],
        unresolved_total=dead_letters.count_unresolved(),
    )


@router.post(
    "/dead-letters/{dead_letter_id}/reenqueue",
    response_model=ReenqueueResponse,
    dependencies=[Depends(rate_limited("retry_dead_letter"))],
)
async def reenqueue_dead_letter(
    dead_letter_id: int,
    resolve: bool = Query(True, description="Mark the record resolved after re-enqueueing."),
    dead_letters: DeadLetterService = Depends(get_dead_letter_service),
) -> ReenqueueResponse:
    """Replay a dead letter as a new high-priority queue event."""

    event, created = dead_letters.reenqueue(dead_letter_id, resolve=resolve)
    record = dead_letters.get(dead_letter_id)
    return ReenqueueResponse(
        dead_letter_id=dead_letter_id,
        event_id=event.id or 0,
        created=created,
        resolved=record.resolved,
        message=f"Dead letter re-enqueued as event #{event.id}",
    )


@router.post("/dead-letters/{dead_letter_id}/resolve", response_model=ResolveResponse)
async def resolve_dead_letter(
    dead_letter_id: int,
    note: str | None = Query(None, max_length=255),
    dead_letters: DeadLetterService = Depends(get_dead_letter_service),
) -> ResolveResponse:
    """Mark a dead letter resolved without replaying it."""

    record = dead_letters.resolve(dead_letter_id, note=note)
    return ResolveResponse(
        dead_letter_id=dead_letter_id,
        resolved=record.resolved,
        resolved_at=record.resolved_at,
        resolution_note=record.resolution_note,
    )


@router.get("/circuit", response_model=CircuitStatusResponse)
async def circuit_status(breaker: CircuitBreaker = Depends(get_circuit_breaker)) -> CircuitStatusResponse:
    """Current state of the SAP circuit breaker."""

    return CircuitStatusResponse(**breaker.get_status())


@router.post("/circuit/reset", response_model=CircuitStatusResponse)
async def reset_circuit(breaker: CircuitBreaker = Depends(get_circuit_breaker)) -> CircuitStatusResponse:
    """Close the circuit after SAP has been fixed, without waiting for the cooldown."""

    breaker.reset()
    return CircuitStatusResponse(**breaker.get_status())
