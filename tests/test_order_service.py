"""Cart and order workflow engine tests."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from foodflow.core.errors import BadRequestError, InvalidTransitionError, NotFoundError
from foodflow.models import CartItem, MenuItem, Order, OrderStatus
from foodflow.services import order_service
from foodflow.services.order_service import OrderLineRequest


def _place(db: Session, world, quantity: int = 2, customer_id: int | None = None) -> Order:
    return order_service.create_order(
        db,
        customer_id=customer_id or world.customer_id,
        restaurant_id=world.restaurant_id,
        delivery_address="12 Elm Street",
        items=[OrderLineRequest(menu_item_id=world.burger_id, quantity=quantity)],
    )


def _order_count(db: Session) -> int:
    return db.scalar(select(func.count(Order.id)))


def test_totals_scenario(db: Session, world) -> None:
    """Two burgers at 8.99 produce the documented money fields."""
    order = _place(db, world, quantity=2)

    assert order.status == OrderStatus.PENDING
    assert order.subtotal == Decimal("17.98")
    assert order.tax == Decimal("1.798")
    assert order.delivery_fee == Decimal("5.00")
    assert order.total_amount == Decimal("24.778")
    assert order.order_number.startswith("ORD-")
    assert [(item.name, item.quantity, item.unit_price) for item in order.items] == [("Burger", 2, Decimal("8.99"))]


def test_order_lines_keep_price_snapshot(db: Session, world) -> None:
    order = _place(db, world)
    menu_item = db.get(MenuItem, world.burger_id)
    menu_item.price = Decimal("12.00")
    db.commit()

    reloaded = order_service.get_order(db, order.id)
    assert reloaded.items[0].unit_price == Decimal("8.99")
    assert reloaded.total_amount == Decimal("24.778")


def test_explicit_items_validation(db: Session, world) -> None:
    with pytest.raises(BadRequestError, match="At least one item is required"):
        order_service.create_order(db, world.customer_id, world.restaurant_id, "addr", items=[])
    with pytest.raises(NotFoundError):
        order_service.create_order(
            db, world.customer_id, world.restaurant_id, "addr", items=[OrderLineRequest(999, 1)]
        )
    with pytest.raises(BadRequestError, match="is not available"):
        order_service.create_order(
            db, world.customer_id, world.restaurant_id, "addr", items=[OrderLineRequest(world.sold_out_id, 1)]
        )
    with pytest.raises(BadRequestError, match="does not belong to this restaurant"):
        order_service.create_order(
            db, world.customer_id, world.restaurant_id, "addr", items=[OrderLineRequest(world.foreign_item_id, 1)]
        )
    with pytest.raises(NotFoundError, match="Restaurant not found"):
        order_service.create_order(db, world.customer_id, 999, "addr", items=[OrderLineRequest(world.burger_id, 1)])

    assert _order_count(db) == 0


def test_cart_path_creates_order_and_clears_cart(db: Session, world) -> None:
    order_service.add_cart_item(db, world.customer_id, world.burger_id, 1)
    order_service.add_cart_item(db, world.customer_id, world.fries_id, 2, notes="extra salt")

    order = order_service.create_order(db, world.customer_id, world.restaurant_id, "12 Elm Street")

    assert order.subtotal == Decimal("15.99")
    assert {item.name: item.quantity for item in order.items} == {"Burger": 1, "Fries": 2}
    cart = order_service.get_cart(db, world.customer_id)
    assert cart.items == []


def test_empty_cart_is_rejected(db: Session, world) -> None:
    with pytest.raises(BadRequestError, match="Cart is empty"):
        order_service.create_order(db, world.customer_id, world.restaurant_id, "12 Elm Street")


def test_failed_cart_checkout_leaves_cart_untouched(db: Session, world) -> None:
    """A validation failure aborts before any write: no order and the cart survives."""
    order_service.add_cart_item(db, world.customer_id, world.burger_id, 1)
    order_service.add_cart_item(db, world.customer_id, world.foreign_item_id, 1)

    with pytest.raises(BadRequestError, match="same restaurant"):
        order_service.create_order(db, world.customer_id, world.restaurant_id, "12 Elm Street")

    assert _order_count(db) == 0
    assert db.scalar(select(func.count(CartItem.id))) == 2


def test_item_becoming_unavailable_blocks_checkout(db: Session, world) -> None:
    order_service.add_cart_item(db, world.customer_id, world.fries_id, 1)
    db.get(MenuItem, world.fries_id).is_available = False
    db.commit()

    with pytest.raises(BadRequestError, match="no longer available"):
        order_service.create_order(db, world.customer_id, world.restaurant_id, "12 Elm Street")
    assert _order_count(db) == 0


def test_add_cart_item_merges_lines(db: Session, world) -> None:
    order_service.add_cart_item(db, world.customer_id, world.burger_id, 1, notes="no onion")
    order_service.add_cart_item(db, world.customer_id, world.burger_id, 2)
    cart = order_service.add_cart_item(db, world.customer_id, world.burger_id, 1, notes="well done")

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 4
    assert cart.items[0].notes == "well done"
    assert order_service.cart_item_count(cart) == 4
    assert order_service.cart_subtotal(cart) == Decimal("35.96")


def test_add_cart_item_validation(db: Session, world) -> None:
    with pytest.raises(NotFoundError):
        order_service.add_cart_item(db, world.customer_id, 999, 1)
    with pytest.raises(BadRequestError):
        order_service.add_cart_item(db, world.customer_id, world.sold_out_id, 1)
    with pytest.raises(BadRequestError):
        order_service.add_cart_item(db, world.customer_id, world.burger_id, 0)


def test_update_and_remove_cart_items(db: Session, world) -> None:
    cart = order_service.add_cart_item(db, world.customer_id, world.burger_id, 1)
    item_id = cart.items[0].id

    cart = order_service.update_cart_item(db, world.customer_id, item_id, quantity=3, notes="spicy")
    assert (cart.items[0].quantity, cart.items[0].notes) == (3, "spicy")

    cart = order_service.update_cart_item(db, world.customer_id, item_id, quantity=0)
    assert cart.items == []

    with pytest.raises(NotFoundError, match="Cart item not found"):
        order_service.remove_cart_item(db, world.customer_id, item_id)


def test_cart_items_are_private(db: Session, world) -> None:
    cart = order_service.add_cart_item(db, world.customer_id, world.burger_id, 1)
    order_service.get_cart(db, world.other_customer_id)

    with pytest.raises(NotFoundError):
        order_service.update_cart_item(db, world.other_customer_id, cart.items[0].id, quantity=5)


def test_clear_cart_without_cart_is_noop(db: Session, world) -> None:
    order_service.clear_cart(db, world.customer_id)
    order_service.add_cart_item(db, world.customer_id, world.burger_id, 1)
    order_service.clear_cart(db, world.customer_id)
    assert order_service.get_cart(db, world.customer_id).items == []


def test_status_walks_the_machine(db: Session, world) -> None:
    order = _place(db, world)
    for status in (OrderStatus.CONFIRMED, OrderStatus.PREPARING, OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED):
        order = order_service.update_order_status(db, order.id, status)
        assert order.status == status


def test_invalid_transition_leaves_status_unchanged(db: Session, world) -> None:
    order = _place(db, world)

    with pytest.raises(InvalidTransitionError, match="Cannot transition from PENDING to DELIVERED"):
        order_service.update_order_status(db, order.id, OrderStatus.DELIVERED)

    assert order_service.get_order(db, order.id).status == OrderStatus.PENDING


def test_terminal_order_rejects_everything(db: Session, world) -> None:
    order = _place(db, world)
    order_service.update_order_status(db, order.id, OrderStatus.CANCELLED)

    for status in OrderStatus:
        with pytest.raises(InvalidTransitionError):
            order_service.update_order_status(db, order.id, status)


def test_customer_cancel_rules(db: Session, world) -> None:
    pending = _place(db, world)
    cancelled = order_service.cancel_order(db, pending.id, world.customer_id, reason="changed my mind")
    assert cancelled.status == OrderStatus.CANCELLED

    preparing = _place(db, world)
    order_service.update_order_status(db, preparing.id, OrderStatus.CONFIRMED)
    order_service.update_order_status(db, preparing.id, OrderStatus.PREPARING)
    with pytest.raises(BadRequestError, match="cannot be cancelled"):
        order_service.cancel_order(db, preparing.id, world.customer_id)

    with pytest.raises(NotFoundError):
        order_service.cancel_order(db, preparing.id, world.other_customer_id)


def test_get_order_hides_foreign_orders(db: Session, world) -> None:
    order = _place(db, world)
    assert order_service.get_order(db, order.id, customer_id=world.customer_id).id == order.id
    with pytest.raises(NotFoundError):
        order_service.get_order(db, order.id, customer_id=world.other_customer_id)


def test_list_orders_filters_and_paginates(db: Session, world) -> None:
    created = [_place(db, world) for _ in range(3)]
    _place(db, world, customer_id=world.other_customer_id)
    order_service.update_order_status(db, created[0].id, OrderStatus.CONFIRMED)

    orders, total, paging = order_service.list_orders(db, customer_id=world.customer_id, limit=2)
    assert total == 3
    assert len(orders) == 2
    assert paging.total_pages(total) == 2
    assert orders[0].id == created[-1].id

    confirmed, confirmed_total, _ = order_service.list_orders(db, status=OrderStatus.CONFIRMED)
    assert confirmed_total == 1
    assert confirmed[0].id == created[0].id
