"""Entity-level sync log.

Persists one entry per sync outcome (entity type, direction, status,
message, truncated request/response payloads) for the admin log listing,
and mirrors each entry to the process logger.
"""

from __future__ import annotations

import json
import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sapsync.adapters.sync_log.base import AbstractSyncLogStore, SyncLogEntry
from sapsync.core.sync_status import EntityType, LogLevel, SyncDirection

logger = logging.getLogger(__name__)

CLEANUP_BATCH_SIZE = 1000

_LEVEL_MAP = {
    LogLevel.SUCCESS.value: logging.INFO,
    LogLevel.INFO.value: logging.INFO,
    LogLevel.DEBUG.value: logging.DEBUG,
    LogLevel.WARNING.value: logging.WARNING,
    LogLevel.ERROR.value: logging.ERROR,
}


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


class SyncLogger:
    def __init__(
        self,
        store: AbstractSyncLogStore,
        *,
        enabled: bool = True,
        max_payload_size: int = 65536,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._enabled = enabled
        self._max_payload_size = max_payload_size
        self._clock = clock

    def _truncate_payload(self, payload: Any) -> str | None:
        if payload is None:
            return None
        text = payload if isinstance(payload, str) else json.dumps(payload, default=str)
        if len(text) > self._max_payload_size:
            return text[: self._max_payload_size] + "...[truncated]"
        return text

    def log(
        self,
        entity_type: EntityType | str,
        entity_id: int | None,
        direction: SyncDirection | str,
        status: LogLevel | str,
        message: str,
        request: Any = None,
        response: Any = None,
    ) -> SyncLogEntry | None:
        """Record a sync outcome.

        Returns:
            The stored entry, or None when the sync log is disabled.
        """

        entity_type = _enum_value(entity_type)
        direction = _enum_value(direction)
        status = _enum_value(status)

        logger.log(
            _LEVEL_MAP.get(status, logging.INFO),
            "sync_log.%s",
            status,
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "direction": direction,
                "sync_message": message,
            },
        )

        if not self._enabled:
            return None

        return self._store.add(
            SyncLogEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                direction=direction,
                status=status,
                message=message,
                request_payload=self._truncate_payload(request),
                response_payload=self._truncate_payload(response),
                created_at=datetime.fromtimestamp(self._clock(), tz=timezone.utc),
            )
        )

    def _log_level(self, level: LogLevel, message: str, context: dict[str, Any]) -> SyncLogEntry | None:
        return self.log(
            context.get("entity_type", EntityType.SYSTEM),
            context.get("entity_id"),
            context.get("direction", SyncDirection.SAP_TO_WC),
            level,
            message,
            context.get("request"),
            context.get("response"),
        )

    def info(self, message: str, **context: Any) -> SyncLogEntry | None:
        return self._log_level(LogLevel.INFO, message, context)

    def success(self, message: str, **context: Any) -> SyncLogEntry | None:
        return self._log_level(LogLevel.SUCCESS, message, context)

    def warning(self, message: str, **context: Any) -> SyncLogEntry | None:
        return self._log_level(LogLevel.WARNING, message, context)

    def error(self, message: str, **context: Any) -> SyncLogEntry | None:
        return self._log_level(LogLevel.ERROR, message, context)

    def get_logs(
        self,
        *,
        page: int = 1,
        per_page: int = 50,
        entity_type: str | None = None,
        status: str | None = None,
    ) -> tuple[list[SyncLogEntry], int, int]:
        """Return one page of entries, newest first.

        Returns:
            Tuple of (entries, total matching, total pages).
        """

        page = max(1, page)
        per_page = max(1, per_page)
        total = self._store.count(entity_type=entity_type, status=status)
        entries = self._store.query(
            entity_type=entity_type,
            status=status,
            limit=per_page,
            offset=(page - 1) * per_page,
        )
        return entries, total, math.ceil(total / per_page)

    def count(self, *, entity_type: str | None = None, status: str | None = None) -> int:
        return self._store.count(entity_type=entity_type, status=status)

    def cleanup_old_logs(self, days: int = 30) -> int:
        """Delete entries older than days, in batches; return how many were removed."""

        cutoff = datetime.fromtimestamp(self._clock(), tz=timezone.utc) - timedelta(days=days)
        removed = 0
        while True:
            batch = self._store.delete_before(cutoff, limit=CLEANUP_BATCH_SIZE)
            removed += batch
            if batch < CLEANUP_BATCH_SIZE:
                break

        if removed:
            logger.info("sync_log.cleanup", extra={"removed": removed, "retention_days": days})
        return removed
