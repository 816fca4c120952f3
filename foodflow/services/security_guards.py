"""Centralized capability checks and realtime room access guards."""

from __future__ import annotations

import enum
from collections.abc import Callable

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from foodflow.core.errors import ForbiddenError
from foodflow.core.security import get_current_user
from foodflow.models import Delivery, Driver, Order, User, UserRole


class Capability(str, enum.Enum):
    PLACE_ORDERS = "PLACE_ORDERS"
    VIEW_ALL_ORDERS = "VIEW_ALL_ORDERS"
    MANAGE_ORDER_STATUS = "MANAGE_ORDER_STATUS"
    ASSIGN_DRIVERS = "ASSIGN_DRIVERS"
    UPDATE_DELIVERY_STATUS = "UPDATE_DELIVERY_STATUS"
    VIEW_DELIVERIES = "VIEW_DELIVERIES"
    DRIVE = "DRIVE"
    MANAGE_QUEUE = "MANAGE_QUEUE"


ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.CUSTOMER: frozenset({Capability.PLACE_ORDERS}),
    UserRole.STAFF: frozenset(
        {
            Capability.VIEW_ALL_ORDERS,
            Capability.MANAGE_ORDER_STATUS,
            Capability.ASSIGN_DRIVERS,
            Capability.UPDATE_DELIVERY_STATUS,
            Capability.VIEW_DELIVERIES,
        }
    ),
    UserRole.DRIVER: frozenset(
        {
            Capability.UPDATE_DELIVERY_STATUS,
            Capability.VIEW_DELIVERIES,
            Capability.DRIVE,
        }
    ),
    UserRole.ADMIN: frozenset(
        {
            Capability.PLACE_ORDERS,
            Capability.VIEW_ALL_ORDERS,
            Capability.MANAGE_ORDER_STATUS,
            Capability.ASSIGN_DRIVERS,
            Capability.UPDATE_DELIVERY_STATUS,
            Capability.VIEW_DELIVERIES,
            Capability.MANAGE_QUEUE,
        }
    ),
}


def has_capability(user: User, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(user.role, frozenset())


def ensure_capability(user: User, capability: Capability) -> None:
    """Ensure the user's role grants ``capability``."""
    if not has_capability(user, capability):
        raise ForbiddenError("Forbidden")


def require_capability(capability: Capability) -> Callable[..., User]:
    """Build a dependency that resolves the current user and checks ``capability``."""

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        ensure_capability(current_user, capability)
        return current_user

    return dependency


def _driver_id_for(db: Session, user: User) -> int | None:
    return db.scalar(select(Driver.id).where(Driver.user_id == user.id).limit(1))


def can_join_room(db: Session, user: User, room: str) -> bool:
    """Decide whether ``user`` may subscribe to a realtime room such as ``order:12``."""
    kind, _, raw_id = room.partition(":")
    try:
        entity_id = int(raw_id)
    except ValueError:
        return False

    if kind == "restaurant":
        return has_capability(user, Capability.VIEW_ALL_ORDERS)
    if kind == "driver":
        return _driver_id_for(db, user) == entity_id
    if kind == "order":
        order = db.get(Order, entity_id)
        if order is None:
            return False
        delivery = order.delivery
    elif kind == "delivery":
        delivery = db.get(Delivery, entity_id)
        if delivery is None:
            return False
        order = delivery.order
    else:
        return False

    if has_capability(user, Capability.VIEW_ALL_ORDERS) or order.customer_id == user.id:
        return True
    return delivery is not None and delivery.driver_id == _driver_id_for(db, user)
