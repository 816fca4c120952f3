"""Offline sync coordinator.

Replays client-buffered order batches in client-timestamp order. Each item is
deduplicated on ``(customer_id, client_id)`` through the key-value store so a
resubmitted batch returns the orders created the first time.

The dedup key is claimed with a pending marker before the order is created,
so a retry that overlaps the first submission is reported as still in
progress instead of creating a second order. The marker is replaced by the
``{orderId, orderNumber}`` mapping on success and released on failure.

Key-value errors fail open: when the store is unavailable the item is treated
as new and the mapping write is skipped, both logged at WARNING.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from foodflow.core.config import settings
from foodflow.core.errors import AppError
from foodflow.models import Order
from foodflow.services.kv_store import KeyValueStore, KeyValueStoreError
from foodflow.services.order_service import OrderLineRequest, create_order
from foodflow.utils.time import as_utc

logger = logging.getLogger(__name__)

PENDING_MARKER = "pending"
IN_PROGRESS_ERROR = "Order is still being processed"


@dataclass(frozen=True)
class SyncOrderRequest:
    client_id: str
    restaurant_id: int
    delivery_address: str
    items: list[OrderLineRequest]
    created_at: datetime
    notes: str | None = None


@dataclass(frozen=True)
class SyncItemResult:
    client_id: str
    success: bool
    order_id: int | None = None
    order_number: str | None = None
    error: str | None = None
    duplicate: bool = False


@dataclass
class SyncBatchResult:
    results: list[SyncItemResult] = field(default_factory=list)
    created_orders: list[Order] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful


def dedup_key(customer_id: int, client_id: str) -> str:
    return f"order:client:{customer_id}:{client_id}"


def _claim(kv: KeyValueStore, key: str) -> bool:
    """Reserve ``key`` for this submission; store errors count as a claim."""
    try:
        return kv.set_if_absent(key, PENDING_MARKER, ttl_seconds=settings.sync_claim_ttl_seconds)
    except KeyValueStoreError:
        logger.warning("[SYNC] Dedup claim failed for %s; treating as new", key)
        return True


def _read(kv: KeyValueStore, key: str) -> str | None:
    try:
        return kv.get(key)
    except KeyValueStoreError:
        logger.warning("[SYNC] Dedup lookup failed for %s; treating as new", key)
        return None


def _parse_mapping(raw: str) -> tuple[int, str] | None:
    try:
        mapping = json.loads(raw)
        return int(mapping["orderId"]), str(mapping["orderNumber"])
    except (ValueError, KeyError, TypeError):
        return None


def _reclaim(kv: KeyValueStore, key: str) -> None:
    try:
        kv.set(key, PENDING_MARKER, ttl_seconds=settings.sync_claim_ttl_seconds)
    except KeyValueStoreError:
        logger.warning("[SYNC] Could not reclaim dedup key %s", key)


def _release(kv: KeyValueStore, key: str) -> None:
    try:
        kv.delete_if_equals(key, PENDING_MARKER)
    except KeyValueStoreError:
        logger.warning("[SYNC] Could not release dedup claim %s", key)


def _store_mapping(kv: KeyValueStore, key: str, order: Order) -> None:
    value = json.dumps({"orderId": order.id, "orderNumber": order.order_number})
    try:
        kv.set(key, value, ttl_seconds=settings.sync_dedup_ttl_seconds)
    except KeyValueStoreError:
        logger.warning("[SYNC] Could not persist dedup mapping for %s (order %s)", key, order.order_number)


def _settled_result(kv: KeyValueStore, key: str, client_id: str) -> SyncItemResult | None:
    """Result for a key someone else already claimed, or None to create anyway."""
    raw = _read(kv, key)
    if raw == PENDING_MARKER:
        logger.info("[SYNC] %s is already being processed", client_id)
        return SyncItemResult(client_id=client_id, success=False, error=IN_PROGRESS_ERROR)
    if raw is not None:
        existing = _parse_mapping(raw)
        if existing is not None:
            order_id, order_number = existing
            logger.info("[SYNC] %s already applied as %s", client_id, order_number)
            return SyncItemResult(
                client_id=client_id,
                success=True,
                order_id=order_id,
                order_number=order_number,
                duplicate=True,
            )
        logger.warning("[SYNC] Ignoring malformed dedup mapping for %s", key)
    _reclaim(kv, key)
    return None


def sync_orders(
    db: Session,
    kv: KeyValueStore,
    customer_id: int,
    requests: list[SyncOrderRequest],
) -> SyncBatchResult:
    """Replay a batch sequentially, oldest client timestamp first.

    A failing item is recorded in its result and never stops the batch.
    """
    batch = SyncBatchResult()
    for request in sorted(requests, key=lambda item: as_utc(item.created_at)):
        key = dedup_key(customer_id, request.client_id)
        if not _claim(kv, key):
            settled = _settled_result(kv, key, request.client_id)
            if settled is not None:
                batch.results.append(settled)
                continue

        try:
            order = create_order(
                db,
                customer_id=customer_id,
                restaurant_id=request.restaurant_id,
                delivery_address=request.delivery_address,
                notes=request.notes,
                items=request.items,
            )
        except AppError as exc:
            _release(kv, key)
            logger.info("[SYNC] %s rejected: %s", request.client_id, exc.message)
            batch.results.append(SyncItemResult(client_id=request.client_id, success=False, error=exc.message))
            continue
        except SQLAlchemyError:
            _release(kv, key)
            logger.exception("[SYNC] %s failed with a database error", request.client_id)
            batch.results.append(
                SyncItemResult(client_id=request.client_id, success=False, error="Failed to create order")
            )
            continue

        _store_mapping(kv, key, order)
        batch.created_orders.append(order)
        batch.results.append(
            SyncItemResult(
                client_id=request.client_id,
                success=True,
                order_id=order.id,
                order_number=order.order_number,
            )
        )

    logger.info(
        "[SYNC] customer_id=%s batch total=%s successful=%s failed=%s",
        customer_id,
        batch.total,
        batch.successful,
        batch.failed,
    )
    return batch
