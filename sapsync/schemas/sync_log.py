"""Pydantic schemas for the sync log listing."""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class SyncLogEntryResponse(BaseModel):
    """One sync log row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    entity_type: str = Field(..., description="product, order, customer, inventory, api, queue or system.")
    entity_id: int | None = Field(default=None, description="WooCommerce entity id, when the entry concerns one.")
    direction: str = Field(..., description="sap_to_wc or wc_to_sap.")
    status: str = Field(..., description="success, error, warning, info or debug.")
    message: str


class SyncLogPage(BaseModel):
    """Paginated sync log listing."""

    items: List[SyncLogEntryResponse] = Field(default_factory=list)
    total: int = Field(..., description="Entries matching the filters.")
    page: int
    per_page: int
    total_pages: int
