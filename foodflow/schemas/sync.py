"""Offline sync request and response schemas."""

from datetime import datetime

from pydantic import Field

from foodflow.schemas.common import CamelModel
from foodflow.schemas.order import OrderItemPayload


class SyncOrderPayload(CamelModel):
    """An order buffered on the client while offline."""

    client_id: str = Field(min_length=1, max_length=128)
    restaurant_id: int
    delivery_address: str = Field(min_length=1)
    notes: str | None = None
    items: list[OrderItemPayload] = Field(min_length=1)
    created_at: datetime


class SyncRequest(CamelModel):
    orders: list[SyncOrderPayload]


class SyncItemResultRead(CamelModel):
    client_id: str
    success: bool
    order_id: int | None = None
    order_number: str | None = None
    error: str | None = None


class SyncResponse(CamelModel):
    total: int
    successful: int
    failed: int
    results: list[SyncItemResultRead]
