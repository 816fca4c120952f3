"""Delivery and driver endpoints."""

from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from foodflow.core.errors import NotFoundError
from foodflow.db.session import get_db
from foodflow.models import DeliveryStatus, OrderStatus, User, UserRole
from foodflow.schemas.common import PaginationRead
from foodflow.schemas.delivery import (
    AssignDriverRequest,
    AvailabilityUpdate,
    AvailableDriverRead,
    DeliveryListRead,
    DeliveryRead,
    DeliveryStatusUpdate,
    DriverProfileCreate,
    DriverRead,
    LocationUpdate,
    LocationUpdateRead,
)
from foodflow.services import delivery_service, events
from foodflow.services.events import EventDispatcher, get_event_dispatcher
from foodflow.services.security_guards import Capability, require_capability

router: APIRouter = APIRouter()
drive = require_capability(Capability.DRIVE)
assign_drivers = require_capability(Capability.ASSIGN_DRIVERS)
view_deliveries = require_capability(Capability.VIEW_DELIVERIES)


def _own_driver_id(db: Session, user: User) -> int | None:
    """Drivers are scoped to their own deliveries; staff and admins are not."""
    if user.role != UserRole.DRIVER:
        return None
    return delivery_service.get_driver_by_user_id(db, user.id).id


@router.post("/assign/{order_id}", response_model=DeliveryRead, status_code=status.HTTP_201_CREATED)
def assign_driver(
    order_id: int,
    payload: AssignDriverRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(assign_drivers),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DeliveryRead:
    delivery = delivery_service.assign_driver(db, order_id, payload.driver_id, payload.estimated_time)
    background_tasks.add_task(dispatcher.dispatch, events.delivery_assigned(delivery))
    if delivery.order.status == OrderStatus.ON_THE_WAY:
        background_tasks.add_task(
            dispatcher.dispatch,
            events.order_status_changed(delivery.order, OrderStatus.PREPARING),
        )
    return DeliveryRead.model_validate(delivery)


@router.get("", response_model=DeliveryListRead)
def list_deliveries(
    status_value: DeliveryStatus | None = Query(default=None, alias="status"),
    driver_id: int | None = Query(default=None, alias="driverId"),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    page: int | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(view_deliveries),
) -> DeliveryListRead:
    own_driver_id = _own_driver_id(db, current_user)
    deliveries, total, paging = delivery_service.list_deliveries(
        db,
        driver_id=own_driver_id if own_driver_id is not None else driver_id,
        status=status_value,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return DeliveryListRead(
        deliveries=[DeliveryRead.model_validate(delivery) for delivery in deliveries],
        pagination=PaginationRead(
            page=paging.page,
            limit=paging.limit,
            total=total,
            total_pages=paging.total_pages(total),
        ),
    )


@router.get("/active", response_model=DeliveryRead | None)
def get_active_delivery(db: Session = Depends(get_db), current_user: User = Depends(drive)) -> DeliveryRead | None:
    driver = delivery_service.get_driver_by_user_id(db, current_user.id)
    delivery = delivery_service.get_active_delivery(db, driver.id)
    return DeliveryRead.model_validate(delivery) if delivery is not None else None


@router.get("/drivers/available", response_model=list[AvailableDriverRead])
def get_available_drivers(
    latitude: float | None = Query(default=None, alias="lat"),
    longitude: float | None = Query(default=None, alias="lng"),
    db: Session = Depends(get_db),
    current_user: User = Depends(assign_drivers),
) -> list[AvailableDriverRead]:
    """List available drivers, nearest first when ``lat``/``lng`` are given."""
    ranked = delivery_service.get_available_drivers(db, latitude, longitude)
    return [
        AvailableDriverRead.model_validate(entry.driver).model_copy(update={"distance_km": entry.distance_km})
        for entry in ranked
    ]


@router.post("/drivers", response_model=DriverRead, status_code=status.HTTP_201_CREATED)
def create_driver_profile(
    payload: DriverProfileCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(assign_drivers),
) -> DriverRead:
    driver = delivery_service.create_driver_profile(
        db,
        payload.user_id,
        vehicle_type=payload.vehicle_type,
        vehicle_number=payload.vehicle_number,
        license_number=payload.license_number,
    )
    return DriverRead.model_validate(driver)


@router.get("/drivers/me", response_model=DriverRead)
def get_my_driver_profile(db: Session = Depends(get_db), current_user: User = Depends(drive)) -> DriverRead:
    return DriverRead.model_validate(delivery_service.get_driver_by_user_id(db, current_user.id))


@router.post("/location", response_model=LocationUpdateRead)
def update_location(
    payload: LocationUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(drive),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> LocationUpdateRead:
    driver = delivery_service.get_driver_by_user_id(db, current_user.id)
    driver, active = delivery_service.update_driver_location(db, driver.id, payload.latitude, payload.longitude)
    if active is not None:
        background_tasks.add_task(dispatcher.dispatch, events.delivery_location_update(active, driver))
    return LocationUpdateRead(
        driver=DriverRead.model_validate(driver),
        delivery_id=active.id if active is not None else None,
    )


@router.patch("/drivers/availability", response_model=DriverRead)
def update_availability(
    payload: AvailabilityUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(drive),
) -> DriverRead:
    driver = delivery_service.get_driver_by_user_id(db, current_user.id)
    return DriverRead.model_validate(delivery_service.update_driver_availability(db, driver.id, payload.is_available))


@router.get("/{delivery_id}", response_model=DeliveryRead)
def get_delivery(
    delivery_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(view_deliveries),
) -> DeliveryRead:
    own_driver_id = _own_driver_id(db, current_user)
    delivery = delivery_service.get_delivery(db, delivery_id)
    if own_driver_id is not None and delivery.driver_id != own_driver_id:
        raise NotFoundError("Delivery not found")
    return DeliveryRead.model_validate(delivery)


@router.patch("/{delivery_id}/status", response_model=DeliveryRead)
def update_delivery_status(
    delivery_id: int,
    payload: DeliveryStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.UPDATE_DELIVERY_STATUS)),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> DeliveryRead:
    own_driver_id = _own_driver_id(db, current_user)
    previous_order_status = delivery_service.get_delivery(db, delivery_id).order.status
    delivery = delivery_service.update_delivery_status(db, delivery_id, payload.status, driver_id=own_driver_id)
    background_tasks.add_task(dispatcher.dispatch, events.delivery_status_changed(delivery))
    if delivery.order.status != previous_order_status:
        background_tasks.add_task(
            dispatcher.dispatch,
            events.order_status_changed(delivery.order, previous_order_status),
        )
    return DeliveryRead.model_validate(delivery)
