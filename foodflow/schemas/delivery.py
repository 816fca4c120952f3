"""Delivery and driver API schemas."""

from datetime import datetime

from pydantic import Field

from foodflow.models.delivery import DeliveryStatus
from foodflow.schemas.common import CamelModel, PaginationRead


class AssignDriverRequest(CamelModel):
    driver_id: int
    estimated_time: int | None = Field(default=None, ge=0)


class DeliveryStatusUpdate(CamelModel):
    status: DeliveryStatus


class LocationUpdate(CamelModel):
    latitude: float
    longitude: float


class AvailabilityUpdate(CamelModel):
    is_available: bool


class DriverProfileCreate(CamelModel):
    user_id: int
    vehicle_type: str | None = None
    vehicle_number: str | None = None
    license_number: str | None = None


class DriverRead(CamelModel):
    id: int
    user_id: int
    vehicle_type: str | None = None
    vehicle_number: str | None = None
    license_number: str | None = None
    is_available: bool
    current_lat: float | None = None
    current_lng: float | None = None
    total_deliveries: int


class AvailableDriverRead(DriverRead):
    distance_km: float | None = None


class DeliveryRead(CamelModel):
    id: int
    order_id: int
    driver_id: int
    status: DeliveryStatus
    current_lat: float | None = None
    current_lng: float | None = None
    estimated_time: int | None = None
    pickup_time: datetime | None = None
    delivery_time: datetime | None = None
    created_at: datetime
    updated_at: datetime


class DeliveryListRead(CamelModel):
    deliveries: list[DeliveryRead]
    pagination: PaginationRead


class LocationUpdateRead(CamelModel):
    driver: DriverRead
    delivery_id: int | None = None
