"""Cart endpoints for the signed-in customer."""

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from foodflow.db.session import get_db
from foodflow.models import Cart, User
from foodflow.schemas.cart import CartItemAdd, CartItemRead, CartItemUpdate, CartRead
from foodflow.services import order_service
from foodflow.services.security_guards import Capability, require_capability

router: APIRouter = APIRouter()
place_orders = require_capability(Capability.PLACE_ORDERS)


def _serialize_cart(cart: Cart) -> CartRead:
    items = [
        CartItemRead(
            id=item.id,
            menu_item_id=item.menu_item_id,
            name=item.menu_item.name,
            unit_price=item.menu_item.price,
            quantity=item.quantity,
            line_total=item.menu_item.price * item.quantity,
            notes=item.notes,
        )
        for item in cart.items
    ]
    return CartRead(
        id=cart.id,
        customer_id=cart.customer_id,
        items=items,
        subtotal=order_service.cart_subtotal(cart),
        item_count=order_service.cart_item_count(cart),
    )


@router.get("", response_model=CartRead)
def get_cart(db: Session = Depends(get_db), current_user: User = Depends(place_orders)) -> CartRead:
    return _serialize_cart(order_service.get_cart(db, current_user.id))


@router.post("/items", response_model=CartRead)
def add_item(
    payload: CartItemAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(place_orders),
) -> CartRead:
    cart = order_service.add_cart_item(
        db,
        current_user.id,
        menu_item_id=payload.menu_item_id,
        quantity=payload.quantity,
        notes=payload.notes,
    )
    return _serialize_cart(cart)


@router.patch("/items/{item_id}", response_model=CartRead)
def update_item(
    item_id: int,
    payload: CartItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(place_orders),
) -> CartRead:
    cart = order_service.update_cart_item(
        db,
        current_user.id,
        item_id,
        quantity=payload.quantity,
        notes=payload.notes,
    )
    return _serialize_cart(cart)


@router.delete("/items/{item_id}", response_model=CartRead)
def remove_item(item_id: int, db: Session = Depends(get_db), current_user: User = Depends(place_orders)) -> CartRead:
    return _serialize_cart(order_service.remove_cart_item(db, current_user.id, item_id))


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_cart(db: Session = Depends(get_db), current_user: User = Depends(place_orders)) -> Response:
    order_service.clear_cart(db, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
