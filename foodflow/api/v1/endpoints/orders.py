"""Order endpoints: creation, offline sync, listing and status changes."""

from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session

from foodflow.core.errors import ForbiddenError
from foodflow.core.security import get_current_user
from foodflow.db.session import get_db
from foodflow.models import Order, OrderStatus, User
from foodflow.schemas.common import PaginationRead
from foodflow.schemas.order import OrderCancel, OrderCreate, OrderListRead, OrderRead, OrderStatusUpdate
from foodflow.schemas.sync import SyncItemResultRead, SyncRequest, SyncResponse
from foodflow.services import events, order_service, sync_service
from foodflow.services.events import EventDispatcher, get_event_dispatcher
from foodflow.services.kv_store import KeyValueStore, get_kv_store
from foodflow.services.security_guards import Capability, has_capability, require_capability

router: APIRouter = APIRouter()
place_orders = require_capability(Capability.PLACE_ORDERS)


def _lines(items) -> list[order_service.OrderLineRequest]:
    return [
        order_service.OrderLineRequest(menu_item_id=item.menu_item_id, quantity=item.quantity, notes=item.notes)
        for item in items
    ]


def _visible_customer_id(user: User) -> int | None:
    """Return the customer filter forced on ``user``; None means all orders are visible."""
    if has_capability(user, Capability.VIEW_ALL_ORDERS):
        return None
    if has_capability(user, Capability.PLACE_ORDERS):
        return user.id
    raise ForbiddenError("Forbidden")


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(place_orders),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> OrderRead:
    """Create an order from explicit items, or from the cart when no items are sent."""
    order = order_service.create_order(
        db,
        customer_id=current_user.id,
        restaurant_id=payload.restaurant_id,
        delivery_address=payload.delivery_address,
        notes=payload.notes,
        items=_lines(payload.items) if payload.items is not None else None,
    )
    background_tasks.add_task(dispatcher.dispatch, events.order_created(order))
    return OrderRead.model_validate(order)


@router.post("/sync", response_model=SyncResponse, response_model_exclude_none=True)
def sync_orders(
    payload: SyncRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    kv: KeyValueStore = Depends(get_kv_store),
    current_user: User = Depends(place_orders),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> SyncResponse:
    """Replay orders buffered offline; safe to resubmit."""
    requests = [
        sync_service.SyncOrderRequest(
            client_id=item.client_id,
            restaurant_id=item.restaurant_id,
            delivery_address=item.delivery_address,
            notes=item.notes,
            items=_lines(item.items),
            created_at=item.created_at,
        )
        for item in payload.orders
    ]
    batch = sync_service.sync_orders(db, kv, current_user.id, requests)
    for order in batch.created_orders:
        background_tasks.add_task(dispatcher.dispatch, events.order_created(order))
    return SyncResponse(
        total=batch.total,
        successful=batch.successful,
        failed=batch.failed,
        results=[
            SyncItemResultRead(
                client_id=result.client_id,
                success=result.success,
                order_id=result.order_id,
                order_number=result.order_number,
                error=result.error,
            )
            for result in batch.results
        ],
    )


@router.get("", response_model=OrderListRead)
def list_orders(
    status_value: OrderStatus | None = Query(default=None, alias="status"),
    restaurant_id: int | None = Query(default=None, alias="restaurantId"),
    customer_id: int | None = Query(default=None, alias="customerId"),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    page: int | None = None,
    limit: int | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OrderListRead:
    forced_customer_id = _visible_customer_id(current_user)
    orders, total, paging = order_service.list_orders(
        db,
        customer_id=forced_customer_id if forced_customer_id is not None else customer_id,
        restaurant_id=restaurant_id,
        status=status_value,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return OrderListRead(
        orders=[OrderRead.model_validate(order) for order in orders],
        pagination=PaginationRead(
            page=paging.page,
            limit=paging.limit,
            total=total,
            total_pages=paging.total_pages(total),
        ),
    )


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> OrderRead:
    order: Order = order_service.get_order(db, order_id, customer_id=_visible_customer_id(current_user))
    return OrderRead.model_validate(order)


@router.patch("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_capability(Capability.MANAGE_ORDER_STATUS)),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> OrderRead:
    previous = order_service.get_order(db, order_id).status
    order = order_service.update_order_status(db, order_id, payload.status)
    background_tasks.add_task(dispatcher.dispatch, events.order_status_changed(order, previous))
    return OrderRead.model_validate(order)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: int,
    background_tasks: BackgroundTasks,
    payload: OrderCancel | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(place_orders),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> OrderRead:
    previous = order_service.get_order(db, order_id, customer_id=current_user.id).status
    order = order_service.cancel_order(
        db,
        order_id,
        customer_id=current_user.id,
        reason=payload.reason if payload is not None else None,
    )
    background_tasks.add_task(dispatcher.dispatch, events.order_status_changed(order, previous))
    return OrderRead.model_validate(order)
