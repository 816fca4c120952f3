"""Order API schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from foodflow.models.delivery import DeliveryStatus
from foodflow.models.order import OrderStatus
from foodflow.schemas.common import CamelModel, PaginationRead


class OrderItemPayload(CamelModel):
    """Single order item payload."""

    menu_item_id: int
    quantity: int = Field(default=1, ge=1)
    notes: str | None = None


class OrderCreate(CamelModel):
    """Create an order from explicit items, or from the cart when ``items`` is omitted."""

    restaurant_id: int
    delivery_address: str = Field(min_length=1)
    notes: str | None = None
    items: list[OrderItemPayload] | None = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class OrderCancel(CamelModel):
    reason: str | None = None


class OrderItemRead(CamelModel):
    id: int
    menu_item_id: int
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    notes: str | None = None


class DeliverySummary(CamelModel):
    id: int
    driver_id: int
    status: DeliveryStatus
    estimated_time: int | None = None
    current_lat: float | None = None
    current_lng: float | None = None


class OrderRead(CamelModel):
    id: int
    order_number: str
    customer_id: int
    restaurant_id: int
    delivery_address: str
    notes: str | None = None
    subtotal: Decimal
    tax: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead]
    delivery: DeliverySummary | None = None


class OrderListRead(CamelModel):
    orders: list[OrderRead]
    pagination: PaginationRead
