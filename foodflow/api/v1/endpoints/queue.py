"""Admin endpoints for the background order queue."""

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status

from foodflow.models import User
from foodflow.schemas.queue import (
    QueueEnqueueRead,
    QueueEnqueueRequest,
    QueueItemResultRead,
    QueueProcessRead,
    QueueStatusRead,
)
from foodflow.services import events, queue_service
from foodflow.services.events import EventDispatcher, get_event_dispatcher
from foodflow.services.kv_store import KeyValueStore, get_kv_store
from foodflow.services.order_service import OrderLineRequest
from foodflow.services.security_guards import Capability, require_capability

router: APIRouter = APIRouter()
manage_queue = require_capability(Capability.MANAGE_QUEUE)


@router.post("", response_model=QueueEnqueueRead, status_code=status.HTTP_202_ACCEPTED)
def enqueue_orders(
    payload: QueueEnqueueRequest,
    kv: KeyValueStore = Depends(get_kv_store),
    current_user: User = Depends(manage_queue),
) -> QueueEnqueueRead:
    queued = [
        queue_service.QueuedOrder(
            client_id=order.client_id,
            customer_id=order.customer_id,
            restaurant_id=order.restaurant_id,
            delivery_address=order.delivery_address,
            notes=order.notes,
            items=[
                OrderLineRequest(menu_item_id=item.menu_item_id, quantity=item.quantity, notes=item.notes)
                for item in order.items
            ],
        )
        for order in payload.orders
    ]
    length = queue_service.enqueue(kv, queued)
    return QueueEnqueueRead(queued=len(queued), length=length)


@router.get("/status", response_model=QueueStatusRead)
def queue_status(
    kv: KeyValueStore = Depends(get_kv_store),
    current_user: User = Depends(manage_queue),
) -> QueueStatusRead:
    return QueueStatusRead(
        length=queue_service.queue_length(kv),
        processing=queue_service.in_flight(kv) is not None,
    )


@router.post("/process", response_model=QueueProcessRead)
def process_queue(
    background_tasks: BackgroundTasks,
    kv: KeyValueStore = Depends(get_kv_store),
    current_user: User = Depends(manage_queue),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> QueueProcessRead:
    """Drain the queue now; returns ``alreadyRunning`` when another drain holds it."""
    drain = queue_service.process_queue(kv)
    for result in drain.results:
        if result.order is not None:
            background_tasks.add_task(dispatcher.dispatch, events.order_created(result.order))
    return QueueProcessRead(
        processed=drain.processed,
        successful=drain.successful,
        failed=drain.failed,
        already_running=drain.already_running,
        lease_lost=drain.lease_lost,
        results=[
            QueueItemResultRead(
                success=result.success,
                client_id=result.client_id,
                customer_id=result.customer_id,
                order_id=result.order_id,
                order_number=result.order_number,
                error=result.error,
            )
            for result in drain.results
        ],
    )


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_queue(
    kv: KeyValueStore = Depends(get_kv_store),
    current_user: User = Depends(manage_queue),
) -> Response:
    queue_service.clear_queue(kv)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
