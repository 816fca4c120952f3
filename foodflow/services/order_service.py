"""Order workflow engine: cart mutation, order creation and status transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from foodflow.core.config import settings
from foodflow.core.errors import BadRequestError, NotFoundError
from foodflow.db.session import atomic
from foodflow.models import Cart, CartItem, MenuItem, Order, OrderItem, OrderStatus, Restaurant
from foodflow.services.order_status import CUSTOMER_CANCELLABLE_STATUSES, ORDER_STATUS_MACHINE
from foodflow.utils.codes import generate_order_number
from foodflow.utils.pagination import Page, parse_pagination

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLineRequest:
    """Explicit order line as submitted by a client or replayed from a buffer."""

    menu_item_id: int
    quantity: int
    notes: str | None = None


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax: Decimal
    delivery_fee: Decimal
    total_amount: Decimal


def compute_totals(line_totals: list[Decimal]) -> OrderTotals:
    """Derive order money fields from snapshotted line totals."""
    subtotal = sum(line_totals, Decimal("0"))
    tax = subtotal * settings.order_tax_rate
    delivery_fee = settings.order_delivery_fee
    return OrderTotals(
        subtotal=subtotal,
        tax=tax,
        delivery_fee=delivery_fee,
        total_amount=subtotal + tax + delivery_fee,
    )


# ==================== CART ====================


def _find_cart(db: Session, customer_id: int) -> Cart | None:
    return db.scalar(select(Cart).where(Cart.customer_id == customer_id).limit(1))


def get_cart(db: Session, customer_id: int) -> Cart:
    """Return the customer's cart, creating it on first access."""
    cart = _find_cart(db, customer_id)
    if cart is None:
        cart = Cart(customer_id=customer_id)
        db.add(cart)
        db.commit()
        db.refresh(cart)
    return cart


def cart_subtotal(cart: Cart) -> Decimal:
    return sum((item.menu_item.price * item.quantity for item in cart.items), Decimal("0"))


def cart_item_count(cart: Cart) -> int:
    return sum(item.quantity for item in cart.items)


def add_cart_item(db: Session, customer_id: int, menu_item_id: int, quantity: int, notes: str | None = None) -> Cart:
    """Add a menu item to the cart, merging with an existing line for the same item."""
    if quantity < 1:
        raise BadRequestError("Quantity must be positive")
    menu_item = db.get(MenuItem, menu_item_id)
    if menu_item is None:
        raise NotFoundError("Menu item not found")
    if not menu_item.is_available:
        raise BadRequestError("Menu item is not available")

    cart = get_cart(db, customer_id)
    existing = db.scalar(
        select(CartItem).where(CartItem.cart_id == cart.id, CartItem.menu_item_id == menu_item_id).limit(1)
    )
    if existing is not None:
        existing.quantity += quantity
        existing.notes = notes or existing.notes
    else:
        db.add(CartItem(cart_id=cart.id, menu_item_id=menu_item_id, quantity=quantity, notes=notes))
    db.commit()
    db.refresh(cart)
    return cart


def _get_owned_cart_item(db: Session, customer_id: int, item_id: int) -> tuple[Cart, CartItem]:
    cart = _find_cart(db, customer_id)
    if cart is None:
        raise NotFoundError("Cart not found")
    cart_item = db.scalar(select(CartItem).where(CartItem.id == item_id, CartItem.cart_id == cart.id).limit(1))
    if cart_item is None:
        raise NotFoundError("Cart item not found")
    return cart, cart_item


def update_cart_item(
    db: Session,
    customer_id: int,
    item_id: int,
    *,
    quantity: int | None = None,
    notes: str | None = None,
) -> Cart:
    """Update a cart line; a quantity of zero or less removes the line."""
    cart, cart_item = _get_owned_cart_item(db, customer_id, item_id)
    if quantity is not None and quantity <= 0:
        db.delete(cart_item)
    else:
        if quantity is not None:
            cart_item.quantity = quantity
        if notes is not None:
            cart_item.notes = notes
    db.commit()
    db.refresh(cart)
    return cart


def remove_cart_item(db: Session, customer_id: int, item_id: int) -> Cart:
    cart, cart_item = _get_owned_cart_item(db, customer_id, item_id)
    db.delete(cart_item)
    db.commit()
    db.refresh(cart)
    return cart


def clear_cart(db: Session, customer_id: int) -> None:
    cart = _find_cart(db, customer_id)
    if cart is None:
        return
    for item in list(cart.items):
        db.delete(item)
    db.commit()


# ==================== ORDERS ====================


def _snapshot_line(menu_item: MenuItem, quantity: int, notes: str | None) -> OrderItem:
    return OrderItem(
        menu_item_id=menu_item.id,
        name=menu_item.name,
        quantity=quantity,
        unit_price=menu_item.price,
        total_price=menu_item.price * quantity,
        notes=notes,
    )


def _lines_from_request(db: Session, restaurant_id: int, items: list[OrderLineRequest]) -> list[OrderItem]:
    if not items:
        raise BadRequestError("At least one item is required")
    lines: list[OrderItem] = []
    for item in items:
        if item.quantity < 1:
            raise BadRequestError("Quantity must be positive")
        menu_item = db.get(MenuItem, item.menu_item_id)
        if menu_item is None:
            raise NotFoundError(f"Menu item {item.menu_item_id} not found")
        if not menu_item.is_available:
            raise BadRequestError(f"{menu_item.name} is not available")
        if menu_item.restaurant_id != restaurant_id:
            raise BadRequestError(f"{menu_item.name} does not belong to this restaurant")
        lines.append(_snapshot_line(menu_item, item.quantity, item.notes))
    return lines


def _lines_from_cart(db: Session, cart: Cart | None, restaurant_id: int) -> list[OrderItem]:
    if cart is None or not cart.items:
        raise BadRequestError("Cart is empty")
    lines: list[OrderItem] = []
    for cart_item in cart.items:
        menu_item = cart_item.menu_item
        if menu_item is None:
            raise NotFoundError(f"Menu item {cart_item.menu_item_id} not found")
        if menu_item.restaurant_id != restaurant_id:
            raise BadRequestError("All items must be from the same restaurant")
        if not menu_item.is_available:
            raise BadRequestError(f"{menu_item.name} is no longer available")
        lines.append(_snapshot_line(menu_item, cart_item.quantity, cart_item.notes))
    return lines


def create_order(
    db: Session,
    customer_id: int,
    restaurant_id: int,
    delivery_address: str,
    notes: str | None = None,
    items: list[OrderLineRequest] | None = None,
) -> Order:
    """Create an order from explicit items, or from the customer's cart when ``items`` is None.

    Validation happens before any write. The order, its lines and (cart path
    only) the cart clearing are committed together or not at all.
    """
    with atomic(db):
        restaurant = db.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")

        cart: Cart | None = None
        if items is None:
            cart = db.scalar(
                select(Cart)
                .where(Cart.customer_id == customer_id)
                .with_for_update()
                .execution_options(populate_existing=True)
                .limit(1)
            )
            lines = _lines_from_cart(db, cart, restaurant_id)
        else:
            lines = _lines_from_request(db, restaurant_id, items)

        totals = compute_totals([line.total_price for line in lines])
        order = Order(
            order_number=generate_order_number(),
            customer_id=customer_id,
            restaurant_id=restaurant_id,
            delivery_address=delivery_address,
            notes=notes,
            subtotal=totals.subtotal,
            tax=totals.tax,
            delivery_fee=totals.delivery_fee,
            total_amount=totals.total_amount,
            status=OrderStatus.PENDING,
            items=lines,
        )
        db.add(order)
        if cart is not None:
            for cart_item in list(cart.items):
                db.delete(cart_item)
    db.refresh(order)
    logger.info("[ORDER] Created %s for customer_id=%s restaurant_id=%s", order.order_number, customer_id, restaurant_id)
    return order


def get_order(db: Session, order_id: int, customer_id: int | None = None) -> Order:
    """Return an order; when ``customer_id`` is given, foreign orders look missing."""
    order = db.get(Order, order_id)
    if order is None or (customer_id is not None and order.customer_id != customer_id):
        raise NotFoundError("Order not found")
    return order


def list_orders(
    db: Session,
    *,
    customer_id: int | None = None,
    restaurant_id: int | None = None,
    status: OrderStatus | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> tuple[list[Order], int, Page]:
    """Return one page of orders, newest first, with the total match count."""
    paging = parse_pagination(page, limit)
    conditions = []
    if customer_id is not None:
        conditions.append(Order.customer_id == customer_id)
    if restaurant_id is not None:
        conditions.append(Order.restaurant_id == restaurant_id)
    if status is not None:
        conditions.append(Order.status == status)
    if start_date is not None:
        conditions.append(Order.created_at >= start_date)
    if end_date is not None:
        conditions.append(Order.created_at <= end_date)

    total = db.scalar(select(func.count(Order.id)).where(*conditions)) or 0
    orders = db.scalars(
        select(Order)
        .where(*conditions)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(paging.offset)
        .limit(paging.limit)
    ).all()
    return list(orders), total, paging


def update_order_status(db: Session, order_id: int, new_status: OrderStatus) -> Order:
    """Apply exactly one edge of the order state machine.

    Emitting realtime and notification side effects is left to the caller.
    """
    with atomic(db):
        order = db.scalar(
            select(Order).where(Order.id == order_id).with_for_update().execution_options(populate_existing=True)
        )
        if order is None:
            raise NotFoundError("Order not found")
        ORDER_STATUS_MACHINE.ensure_transition(order.status, new_status)
        previous = order.status
        order.status = new_status
    db.refresh(order)
    logger.info("[ORDER] %s status %s -> %s", order.order_number, previous.value, new_status.value)
    return order


def cancel_order(db: Session, order_id: int, customer_id: int, reason: str | None = None) -> Order:
    """Cancel the customer's own order while it is still PENDING or CONFIRMED."""
    order = get_order(db, order_id, customer_id=customer_id)
    if order.status not in CUSTOMER_CANCELLABLE_STATUSES:
        raise BadRequestError(f"Order cannot be cancelled at this stage ({order.status.value})")
    if reason:
        logger.info("[ORDER] %s cancellation reason: %s", order.order_number, reason)
    return update_order_status(db, order_id, OrderStatus.CANCELLED)
