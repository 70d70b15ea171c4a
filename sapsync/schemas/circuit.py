"""Pydantic schema for the SAP circuit breaker status."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CircuitStatusResponse(BaseModel):
    state: str = Field(..., description="closed, open or half_open.")
    is_healthy: bool
    failure_count: int = Field(..., description="Failures counted in the current window.")
    last_failure: datetime | None = None
    retry_after: int | None = Field(None, description="Seconds until a trial request is allowed, while open.")
