"""Pydantic schemas for the dead letter admin endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from sapsync.adapters.dead_letter.base import DeadLetterRecord
from sapsync.utils.text_normalizer import trim_words

LAST_ERROR_WORDS = 15


class DeadLetterItem(BaseModel):
    """Unresolved dead letter as shown to operators."""

    id: int
    created_at: datetime
    event_type: str
    total_attempts: int
    last_error: str = Field(..., description=f"Most recent error, trimmed to {LAST_ERROR_WORDS} words.")
    resolved: bool

    @classmethod
    def from_record(cls, record: DeadLetterRecord) -> "DeadLetterItem":
        return cls(
            id=record.id or 0,
            created_at=record.created_at,
            event_type=record.event_type,
            total_attempts=record.total_attempts,
            last_error=trim_words(record.last_error or "Unknown", LAST_ERROR_WORDS),
            resolved=record.resolved,
        )


class DeadLetterList(BaseModel):
    items: List[DeadLetterItem] = Field(default_factory=list)
    unresolved_total: int = Field(..., description="All unresolved records, not only the listed ones.")


class ReenqueueResponse(BaseModel):
    dead_letter_id: int
    event_id: int
    created: bool = Field(..., description="False when an active event from an earlier re-enqueue was returned.")
    resolved: bool
    message: str


class ResolveResponse(BaseModel):
    dead_letter_id: int
    resolved: bool
    resolved_at: datetime | None = None
    resolution_note: str | None = None
