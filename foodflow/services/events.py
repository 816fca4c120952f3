"""Domain events raised after order and delivery changes commit.

Payloads are plain dicts built while the ORM objects are still loaded, so
dispatch can run after the request session has closed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from foodflow.models import Delivery, Driver, Order, OrderStatus
from foodflow.services.realtime import ConnectionManager, manager
from foodflow.utils.time import utc_now

logger = logging.getLogger(__name__)

ORDER_NEW = "order:new"
ORDER_STATUS_CHANGED = "order:status-changed"
DELIVERY_ASSIGNED = "delivery:assigned"
DELIVERY_STATUS_CHANGED = "delivery:status-changed"
DELIVERY_LOCATION_UPDATE = "delivery:location-update"


@dataclass(frozen=True)
class DomainEvent:
    name: str
    rooms: tuple[str, ...]
    payload: dict[str, Any]
    occurred_at: str = field(default_factory=lambda: utc_now().isoformat())

    def message(self) -> dict[str, Any]:
        return {"event": self.name, "data": self.payload, "timestamp": self.occurred_at}


def _order_summary(order: Order) -> dict[str, Any]:
    return {
        "orderId": order.id,
        "orderNumber": order.order_number,
        "customerId": order.customer_id,
        "restaurantId": order.restaurant_id,
        "status": order.status.value,
        "totalAmount": str(order.total_amount),
    }


def order_created(order: Order) -> DomainEvent:
    return DomainEvent(ORDER_NEW, (f"restaurant:{order.restaurant_id}",), _order_summary(order))


def order_status_changed(order: Order, previous: OrderStatus | None = None) -> DomainEvent:
    payload = _order_summary(order)
    payload["previousStatus"] = previous.value if previous is not None else None
    return DomainEvent(
        ORDER_STATUS_CHANGED,
        (f"order:{order.id}", f"restaurant:{order.restaurant_id}"),
        payload,
    )


def _delivery_summary(delivery: Delivery) -> dict[str, Any]:
    return {
        "deliveryId": delivery.id,
        "orderId": delivery.order_id,
        "driverId": delivery.driver_id,
        "status": delivery.status.value,
        "estimatedTime": delivery.estimated_time,
    }


def delivery_assigned(delivery: Delivery) -> DomainEvent:
    return DomainEvent(
        DELIVERY_ASSIGNED,
        (f"order:{delivery.order_id}", f"driver:{delivery.driver_id}"),
        _delivery_summary(delivery),
    )


def delivery_status_changed(delivery: Delivery) -> DomainEvent:
    return DomainEvent(
        DELIVERY_STATUS_CHANGED,
        (f"order:{delivery.order_id}", f"delivery:{delivery.id}"),
        _delivery_summary(delivery),
    )


def delivery_location_update(delivery: Delivery, driver: Driver) -> DomainEvent:
    return DomainEvent(
        DELIVERY_LOCATION_UPDATE,
        (f"order:{delivery.order_id}", f"delivery:{delivery.id}"),
        {
            "deliveryId": delivery.id,
            "orderId": delivery.order_id,
            "driverId": driver.id,
            "latitude": driver.current_lat,
            "longitude": driver.current_lng,
        },
    )


class Notifier(Protocol):
    def notify(self, event: DomainEvent) -> None: ...


class LoggingNotifier:
    """Stand-in for push/SMS delivery; records what would be sent."""

    def notify(self, event: DomainEvent) -> None:
        logger.info("[NOTIFY] %s -> %s", event.name, ", ".join(event.rooms))


class EventDispatcher:
    """Fans events out to realtime rooms and notifiers; failures are logged only."""

    def __init__(self, connections: ConnectionManager, notifiers: list[Notifier] | None = None) -> None:
        self.connections = connections
        self.notifiers: list[Notifier] = notifiers if notifiers is not None else [LoggingNotifier()]

    async def dispatch(self, event: DomainEvent) -> None:
        try:
            await self.connections.broadcast(event.rooms, event.message())
        except Exception:
            logger.exception("[EVENTS] Realtime broadcast failed for %s", event.name)
        for notifier in self.notifiers:
            try:
                notifier.notify(event)
            except Exception:
                logger.exception("[EVENTS] Notifier %s failed for %s", type(notifier).__name__, event.name)


dispatcher = EventDispatcher(manager)


def get_event_dispatcher() -> EventDispatcher:
    """FastAPI dependency returning the process-wide dispatcher."""
    return dispatcher
