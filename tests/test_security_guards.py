"""Capability table and realtime room access rules."""

import pytest
from sqlalchemy.orm import Session

from foodflow.core.errors import ForbiddenError
from foodflow.models import OrderStatus, User, UserRole
from foodflow.services import delivery_service, order_service
from foodflow.services.order_service import OrderLineRequest
from foodflow.services.security_guards import (
    ROLE_CAPABILITIES,
    Capability,
    can_join_room,
    ensure_capability,
    has_capability,
)


def test_every_role_has_an_entry() -> None:
    assert set(ROLE_CAPABILITIES) == set(UserRole)


@pytest.mark.parametrize(
    ("capability", "roles"),
    [
        (Capability.PLACE_ORDERS, {UserRole.CUSTOMER, UserRole.ADMIN}),
        (Capability.VIEW_ALL_ORDERS, {UserRole.STAFF, UserRole.ADMIN}),
        (Capability.MANAGE_ORDER_STATUS, {UserRole.STAFF, UserRole.ADMIN}),
        (Capability.ASSIGN_DRIVERS, {UserRole.STAFF, UserRole.ADMIN}),
        (Capability.UPDATE_DELIVERY_STATUS, {UserRole.DRIVER, UserRole.STAFF, UserRole.ADMIN}),
        (Capability.VIEW_DELIVERIES, {UserRole.DRIVER, UserRole.STAFF, UserRole.ADMIN}),
        (Capability.DRIVE, {UserRole.DRIVER}),
        (Capability.MANAGE_QUEUE, {UserRole.ADMIN}),
    ],
)
def test_capability_table(capability: Capability, roles: set[UserRole]) -> None:
    granted = {role for role, capabilities in ROLE_CAPABILITIES.items() if capability in capabilities}
    assert granted == roles


def test_ensure_capability_raises_forbidden() -> None:
    customer = User(email="c@example.com", name="c", password_hash="x", role=UserRole.CUSTOMER)
    ensure_capability(customer, Capability.PLACE_ORDERS)
    with pytest.raises(ForbiddenError):
        ensure_capability(customer, Capability.MANAGE_QUEUE)
    assert not has_capability(customer, Capability.DRIVE)


def test_room_access_rules(db: Session, world) -> None:
    order = order_service.create_order(
        db,
        customer_id=world.customer_id,
        restaurant_id=world.restaurant_id,
        delivery_address="12 Elm Street",
        items=[OrderLineRequest(menu_item_id=world.burger_id, quantity=1)],
    )
    order_service.update_order_status(db, order.id, OrderStatus.CONFIRMED)
    delivery = delivery_service.assign_driver(db, order.id, world.driver_id)

    customer = db.get(User, world.customer_id)
    other_customer = db.get(User, world.other_customer_id)
    staff = db.get(User, world.staff_id)
    driver = db.get(User, world.driver_user_id)
    second_driver = db.get(User, world.second_driver_user_id)

    assert can_join_room(db, customer, f"order:{order.id}")
    assert can_join_room(db, customer, f"delivery:{delivery.id}")
    assert not can_join_room(db, other_customer, f"order:{order.id}")
    assert not can_join_room(db, customer, f"restaurant:{world.restaurant_id}")

    assert can_join_room(db, staff, f"restaurant:{world.restaurant_id}")
    assert can_join_room(db, staff, f"order:{order.id}")

    assert can_join_room(db, driver, f"order:{order.id}")
    assert can_join_room(db, driver, f"driver:{world.driver_id}")
    assert not can_join_room(db, second_driver, f"driver:{world.driver_id}")
    assert not can_join_room(db, second_driver, f"delivery:{delivery.id}")

    assert not can_join_room(db, staff, "order:999")
    assert not can_join_room(db, staff, "order:abc")
    assert not can_join_room(db, staff, "kitchen:1")
