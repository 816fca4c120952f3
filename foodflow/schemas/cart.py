"""Cart API schemas."""

from decimal import Decimal

from pydantic import Field

from foodflow.schemas.common import CamelModel


class CartItemAdd(CamelModel):
    menu_item_id: int
    quantity: int = Field(default=1, ge=1)
    notes: str | None = None


class CartItemUpdate(CamelModel):
    """Quantity of zero or less removes the line."""

    quantity: int | None = None
    notes: str | None = None


class CartItemRead(CamelModel):
    id: int
    menu_item_id: int
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    notes: str | None = None


class CartRead(CamelModel):
    id: int
    customer_id: int
    items: list[CartItemRead]
    subtotal: Decimal
    item_count: int
