"""Background order queue schemas."""

from pydantic import Field

from foodflow.schemas.common import CamelModel
from foodflow.schemas.order import OrderItemPayload


class QueueOrderPayload(CamelModel):
    client_id: str | None = Field(default=None, min_length=1)
    customer_id: int
    restaurant_id: int
    delivery_address: str = Field(min_length=1)
    notes: str | None = None
    items: list[OrderItemPayload] = Field(min_length=1)


class QueueEnqueueRequest(CamelModel):
    orders: list[QueueOrderPayload] = Field(min_length=1)


class QueueStatusRead(CamelModel):
    length: int
    processing: bool


class QueueItemResultRead(CamelModel):
    success: bool
    client_id: str | None = None
    customer_id: int | None = None
    order_id: int | None = None
    order_number: str | None = None
    error: str | None = None


class QueueProcessRead(CamelModel):
    processed: int
    successful: int
    failed: int
    already_running: bool
    lease_lost: bool = False
    results: list[QueueItemResultRead]


class QueueEnqueueRead(CamelModel):
    queued: int
    length: int
