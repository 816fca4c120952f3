"""Background FIFO queue for deferred order submissions.

Producers append JSON entries to ``order:queue``; a single drain pops from
the head and creates each order in its own session. At most one drain runs
at a time: an in-process lock guards this process and a key-value lease
guards other instances. An entry may carry the producer's ``clientId``, which
is echoed in its result but never deduplicated, so producers must not enqueue
the same logical order twice.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from foodflow.core.config import settings
from foodflow.core.errors import AppError
from foodflow.db import session as db_session
from foodflow.models import Order
from foodflow.services.kv_store import KeyValueStore, KeyValueStoreError
from foodflow.services.order_service import OrderLineRequest, create_order
from foodflow.utils.time import utc_now

logger = logging.getLogger(__name__)

QUEUE_KEY = "order:queue"
PROCESSING_KEY = "order:processing"
LEASE_KEY = "order:queue:lease"

_drain_lock = threading.Lock()


@dataclass(frozen=True)
class QueuedOrder:
    customer_id: int
    restaurant_id: int
    delivery_address: str
    items: list[OrderLineRequest]
    notes: str | None = None
    client_id: str | None = None

    def to_json(self) -> str:
        return json.dumps(
            {
                "clientId": self.client_id,
                "customerId": self.customer_id,
                "restaurantId": self.restaurant_id,
                "deliveryAddress": self.delivery_address,
                "notes": self.notes,
                "items": [
                    {"menuItemId": item.menu_item_id, "quantity": item.quantity, "notes": item.notes}
                    for item in self.items
                ],
                "enqueuedAt": utc_now().isoformat(),
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> QueuedOrder:
        data = json.loads(raw)
        return cls(
            customer_id=int(data["customerId"]),
            restaurant_id=int(data["restaurantId"]),
            delivery_address=str(data["deliveryAddress"]),
            client_id=data.get("clientId"),
            notes=data.get("notes"),
            items=[
                OrderLineRequest(
                    menu_item_id=int(item["menuItemId"]),
                    quantity=int(item["quantity"]),
                    notes=item.get("notes"),
                )
                for item in data["items"]
            ],
        )


@dataclass(frozen=True)
class QueueItemResult:
    success: bool
    client_id: str | None = None
    customer_id: int | None = None
    order_id: int | None = None
    order_number: str | None = None
    error: str | None = None
    order: Order | None = None


@dataclass
class QueueDrainResult:
    results: list[QueueItemResult] = field(default_factory=list)
    already_running: bool = False
    lease_lost: bool = False

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return self.processed - self.successful


def enqueue(kv: KeyValueStore, orders: list[QueuedOrder]) -> int:
    """Append orders to the tail of the queue and return the new length."""
    length = kv.llen(QUEUE_KEY)
    for order in orders:
        length = kv.rpush(QUEUE_KEY, order.to_json())
    logger.info("[QUEUE] Enqueued %s order(s); length=%s", len(orders), length)
    return length


def queue_length(kv: KeyValueStore) -> int:
    return kv.llen(QUEUE_KEY)


def in_flight(kv: KeyValueStore) -> str | None:
    return kv.get(PROCESSING_KEY)


def clear_queue(kv: KeyValueStore) -> None:
    kv.delete(QUEUE_KEY)
    kv.delete(PROCESSING_KEY)
    logger.warning("[QUEUE] Queue cleared")


def _process_entry(raw: str, session_factory: Callable[[], Session]) -> QueueItemResult:
    try:
        queued = QueuedOrder.from_json(raw)
    except (ValueError, KeyError, TypeError):
        logger.error("[QUEUE] Dropping malformed entry: %s", raw[:200])
        return QueueItemResult(success=False, error="Malformed queue entry")

    with session_factory() as db:
        try:
            order = create_order(
                db,
                customer_id=queued.customer_id,
                restaurant_id=queued.restaurant_id,
                delivery_address=queued.delivery_address,
                notes=queued.notes,
                items=queued.items,
            )
        except AppError as exc:
            logger.info("[QUEUE] Order for customer_id=%s rejected: %s", queued.customer_id, exc.message)
            return QueueItemResult(
                success=False,
                client_id=queued.client_id,
                customer_id=queued.customer_id,
                error=exc.message,
            )
        except SQLAlchemyError:
            logger.exception("[QUEUE] Order for customer_id=%s failed with a database error", queued.customer_id)
            return QueueItemResult(
                success=False,
                client_id=queued.client_id,
                customer_id=queued.customer_id,
                error="Failed to create order",
            )
    return QueueItemResult(
        success=True,
        client_id=queued.client_id,
        customer_id=queued.customer_id,
        order_id=order.id,
        order_number=order.order_number,
        order=order,
    )


def process_queue(kv: KeyValueStore, session_factory: Callable[[], Session] | None = None) -> QueueDrainResult:
    """Drain the queue head-first until it is empty.

    Returns immediately with ``already_running`` set when another drain holds
    the lock or the lease. The lease is refreshed before every pop; once it is
    lost the drain stops and reports ``lease_lost``.
    """
    factory = session_factory or db_session.SessionLocal
    if not _drain_lock.acquire(blocking=False):
        logger.info("[QUEUE] Drain already running in this process")
        return QueueDrainResult(already_running=True)
    try:
        token = uuid4().hex
        if not kv.set_if_absent(LEASE_KEY, token, ttl_seconds=settings.queue_lease_seconds):
            logger.info("[QUEUE] Drain lease held by another instance")
            return QueueDrainResult(already_running=True)
        try:
            drain = QueueDrainResult()
            while True:
                if not kv.expire_if_equals(LEASE_KEY, token, settings.queue_lease_seconds):
                    logger.warning("[QUEUE] Drain lease lost; stopping with %s entries left", kv.llen(QUEUE_KEY))
                    drain.lease_lost = True
                    break
                raw = kv.lpop(QUEUE_KEY)
                if raw is None:
                    break
                try:
                    kv.set(PROCESSING_KEY, raw)
                except KeyValueStoreError:
                    logger.error("[QUEUE] Could not mark entry in flight; entry was popped: %s", raw)
                    raise
                try:
                    drain.results.append(_process_entry(raw, factory))
                finally:
                    kv.delete(PROCESSING_KEY)
            logger.info(
                "[QUEUE] Drain finished processed=%s successful=%s failed=%s",
                drain.processed,
                drain.successful,
                drain.failed,
            )
            return drain
        finally:
            kv.delete_if_equals(LEASE_KEY, token)
    finally:
        _drain_lock.release()
