"""API v1 router composition."""

from fastapi import APIRouter

from foodflow.api.v1.endpoints import auth, cart, deliveries, orders, queue, realtime

api_router: APIRouter = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(cart.router, prefix="/cart", tags=["cart"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(deliveries.router, prefix="/deliveries", tags=["deliveries"])
api_router.include_router(queue.router, prefix="/sync/queue", tags=["queue"])
api_router.include_router(realtime.router, tags=["realtime"])
