"""Order and delivery status transition tables."""

from __future__ import annotations

from foodflow.models.delivery import DeliveryStatus
from foodflow.models.order import OrderStatus
from foodflow.services.state_machine import StateMachine

ORDER_STATUS_MACHINE: StateMachine[OrderStatus] = StateMachine(
    {
        OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
        OrderStatus.CONFIRMED: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
        OrderStatus.PREPARING: {OrderStatus.ON_THE_WAY, OrderStatus.CANCELLED},
        OrderStatus.ON_THE_WAY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
        OrderStatus.DELIVERED: set(),
        OrderStatus.CANCELLED: set(),
    }
)

DELIVERY_STATUS_MACHINE: StateMachine[DeliveryStatus] = StateMachine(
    {
        DeliveryStatus.ASSIGNED: {DeliveryStatus.PICKED_UP},
        DeliveryStatus.PICKED_UP: {DeliveryStatus.IN_TRANSIT},
        DeliveryStatus.IN_TRANSIT: {DeliveryStatus.DELIVERED},
        DeliveryStatus.DELIVERED: set(),
    }
)

CUSTOMER_CANCELLABLE_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
ASSIGNABLE_ORDER_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.CONFIRMED, OrderStatus.PREPARING})

# Forward path an order follows once a delivery is attached to it.
ORDER_FULFILMENT_PATH: tuple[OrderStatus, ...] = (
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.ON_THE_WAY,
    OrderStatus.DELIVERED,
)
