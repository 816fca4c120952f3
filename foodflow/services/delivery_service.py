"""Delivery workflow engine: driver assignment, delivery progress and driver availability."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from foodflow.core.errors import BadRequestError, ConflictError, NotFoundError
from foodflow.db.session import atomic
from foodflow.models import (
    ACTIVE_DELIVERY_STATUSES,
    Delivery,
    DeliveryStatus,
    Driver,
    Order,
    OrderStatus,
    User,
    UserRole,
)
from foodflow.services.order_status import (
    ASSIGNABLE_ORDER_STATUSES,
    DELIVERY_STATUS_MACHINE,
    ORDER_FULFILMENT_PATH,
    ORDER_STATUS_MACHINE,
)
from foodflow.utils.geo import haversine_km, is_valid_coordinate
from foodflow.utils.pagination import Page, parse_pagination
from foodflow.utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DriverDistance:
    driver: Driver
    distance_km: float | None


def _lock(db: Session, model, entity_id: int):
    return db.scalar(
        select(model).where(model.id == entity_id).with_for_update().execution_options(populate_existing=True)
    )


def _advance_order(order: Order, target: OrderStatus) -> None:
    """Walk ``order`` forward edge by edge until it reaches ``target``.

    Orders already at or past ``target`` are left alone, as are orders off the
    fulfilment path (a cancelled order stays cancelled).
    """
    if order.status not in ORDER_FULFILMENT_PATH:
        return
    start = ORDER_FULFILMENT_PATH.index(order.status)
    goal = ORDER_FULFILMENT_PATH.index(target)
    for step in ORDER_FULFILMENT_PATH[start + 1 : goal + 1]:
        ORDER_STATUS_MACHINE.ensure_transition(order.status, step)
        order.status = step


def get_active_delivery(db: Session, driver_id: int) -> Delivery | None:
    """Return the driver's non-terminal delivery, if any."""
    return db.scalar(
        select(Delivery)
        .where(Delivery.driver_id == driver_id, Delivery.status.in_(ACTIVE_DELIVERY_STATUSES))
        .limit(1)
    )


def get_driver_by_user_id(db: Session, user_id: int) -> Driver:
    driver = db.scalar(select(Driver).where(Driver.user_id == user_id).limit(1))
    if driver is None:
        raise NotFoundError("Driver profile not found")
    return driver


def create_driver_profile(
    db: Session,
    user_id: int,
    *,
    vehicle_type: str | None = None,
    vehicle_number: str | None = None,
    license_number: str | None = None,
) -> Driver:
    """Create the driver profile for a user and switch the account to the DRIVER role."""
    with atomic(db):
        user = _lock(db, User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if db.scalar(select(Driver.id).where(Driver.user_id == user_id).limit(1)) is not None:
            raise BadRequestError("User already has a driver profile")
        driver = Driver(
            user_id=user_id,
            vehicle_type=vehicle_type,
            vehicle_number=vehicle_number,
            license_number=license_number,
            is_available=True,
        )
        db.add(driver)
        user.role = UserRole.DRIVER
    db.refresh(driver)
    logger.info("[DRIVER] Profile %s created for user_id=%s", driver.id, user_id)
    return driver


def assign_driver(db: Session, order_id: int, driver_id: int, estimated_time: int | None = None) -> Delivery:
    """Bind an available driver to a CONFIRMED or PREPARING order.

    Creates the delivery, advances a PREPARING order to ON_THE_WAY and marks
    the driver unavailable in a single transaction.
    """
    try:
        with atomic(db):
            order = _lock(db, Order, order_id)
            if order is None:
                raise NotFoundError("Order not found")
            if order.status not in ASSIGNABLE_ORDER_STATUSES:
                raise BadRequestError(f"Order is not ready for delivery assignment ({order.status.value})")
            if db.scalar(select(Delivery.id).where(Delivery.order_id == order_id).limit(1)) is not None:
                raise BadRequestError("Order already has a delivery assigned")

            driver = _lock(db, Driver, driver_id)
            if driver is None:
                raise NotFoundError("Driver not found")
            if not driver.is_available or get_active_delivery(db, driver_id) is not None:
                raise BadRequestError("Driver is not available")

            delivery = Delivery(
                order_id=order_id,
                driver_id=driver_id,
                estimated_time=estimated_time,
                status=DeliveryStatus.ASSIGNED,
            )
            db.add(delivery)
            if order.status == OrderStatus.PREPARING:
                ORDER_STATUS_MACHINE.ensure_transition(order.status, OrderStatus.ON_THE_WAY)
                order.status = OrderStatus.ON_THE_WAY
            driver.is_available = False
    except IntegrityError as exc:
        raise ConflictError("Order or driver already has an active delivery") from exc
    db.refresh(delivery)
    logger.info("[DELIVERY] Driver %s assigned to order %s (delivery %s)", driver_id, order_id, delivery.id)
    return delivery


def update_delivery_status(
    db: Session,
    delivery_id: int,
    new_status: DeliveryStatus,
    *,
    driver_id: int | None = None,
) -> Delivery:
    """Advance a delivery one step along ASSIGNED -> PICKED_UP -> IN_TRANSIT -> DELIVERED.

    When ``driver_id`` is given the delivery must belong to that driver.
    Reaching DELIVERED completes the parent order and frees the driver in the
    same transaction.
    """
    with atomic(db):
        delivery = _lock(db, Delivery, delivery_id)
        if delivery is None or (driver_id is not None and delivery.driver_id != driver_id):
            raise NotFoundError("Delivery not found")
        DELIVERY_STATUS_MACHINE.ensure_transition(delivery.status, new_status)

        now = utc_now()
        order = _lock(db, Order, delivery.order_id)
        if new_status == DeliveryStatus.PICKED_UP:
            delivery.pickup_time = now
            _advance_order(order, OrderStatus.ON_THE_WAY)
        elif new_status == DeliveryStatus.DELIVERED:
            delivery.delivery_time = now
            _advance_order(order, OrderStatus.DELIVERED)
            driver = _lock(db, Driver, delivery.driver_id)
            driver.is_available = True
            driver.total_deliveries += 1
        delivery.status = new_status
    db.refresh(delivery)
    logger.info("[DELIVERY] Delivery %s is now %s", delivery_id, new_status.value)
    return delivery


def update_driver_location(
    db: Session,
    driver_id: int,
    latitude: float,
    longitude: float,
) -> tuple[Driver, Delivery | None]:
    """Store the driver's position and mirror it onto their active delivery."""
    if not is_valid_coordinate(latitude, longitude):
        raise BadRequestError("Latitude must be within [-90, 90] and longitude within [-180, 180]")
    with atomic(db):
        driver = _lock(db, Driver, driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        driver.current_lat = latitude
        driver.current_lng = longitude
        active = get_active_delivery(db, driver_id)
        if active is not None:
            active.current_lat = latitude
            active.current_lng = longitude
    logger.debug("[DRIVER] Driver %s location %s, %s", driver_id, latitude, longitude)
    return driver, active


def update_driver_availability(db: Session, driver_id: int, is_available: bool) -> Driver:
    """Flip availability; never while the driver holds an active delivery."""
    with atomic(db):
        driver = _lock(db, Driver, driver_id)
        if driver is None:
            raise NotFoundError("Driver not found")
        if get_active_delivery(db, driver_id) is not None:
            if not is_available:
                raise BadRequestError("Cannot go offline with active delivery")
            raise BadRequestError("Cannot go online while a delivery is active")
        driver.is_available = is_available
    db.refresh(driver)
    return driver


def get_available_drivers(
    db: Session,
    origin_lat: float | None = None,
    origin_lon: float | None = None,
) -> list[DriverDistance]:
    """Return available drivers, nearest first when an origin is given.

    Drivers without a known position sort last.
    """
    drivers = db.scalars(select(Driver).where(Driver.is_available.is_(True)).order_by(Driver.id.asc())).all()
    if origin_lat is None or origin_lon is None:
        return [DriverDistance(driver=driver, distance_km=None) for driver in drivers]

    ranked: list[DriverDistance] = []
    for driver in drivers:
        distance: float | None = None
        if driver.current_lat is not None and driver.current_lng is not None:
            distance = haversine_km(origin_lat, origin_lon, driver.current_lat, driver.current_lng)
        ranked.append(DriverDistance(driver=driver, distance_km=distance))
    ranked.sort(key=lambda entry: (entry.distance_km is None, entry.distance_km or 0.0))
    return ranked


def get_delivery(db: Session, delivery_id: int) -> Delivery:
    delivery = db.get(Delivery, delivery_id)
    if delivery is None:
        raise NotFoundError("Delivery not found")
    return delivery


def list_deliveries(
    db: Session,
    *,
    driver_id: int | None = None,
    status: DeliveryStatus | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> tuple[list[Delivery], int, Page]:
    paging = parse_pagination(page, limit)
    conditions = []
    if driver_id is not None:
        conditions.append(Delivery.driver_id == driver_id)
    if status is not None:
        conditions.append(Delivery.status == status)
    if start_date is not None:
        conditions.append(Delivery.created_at >= start_date)
    if end_date is not None:
        conditions.append(Delivery.created_at <= end_date)

    total = db.scalar(select(func.count(Delivery.id)).where(*conditions)) or 0
    deliveries = db.scalars(
        select(Delivery)
        .where(*conditions)
        .order_by(Delivery.created_at.desc(), Delivery.id.desc())
        .offset(paging.offset)
        .limit(paging.limit)
    ).all()
    return list(deliveries), total, paging
