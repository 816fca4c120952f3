"""Application models package."""

from foodflow.models.cart import Cart, CartItem
from foodflow.models.delivery import ACTIVE_DELIVERY_STATUSES, Delivery, DeliveryStatus, Driver
from foodflow.models.menu import MenuCategory, MenuItem
from foodflow.models.order import Order, OrderItem, OrderStatus
from foodflow.models.restaurant import Restaurant
from foodflow.models.user import User, UserRole

__all__ = [
    "User", "UserRole", "Restaurant", "MenuCategory", "MenuItem", "Cart", "CartItem", "Order", "OrderItem",
    "OrderStatus", "Driver", "Delivery", "DeliveryStatus", "ACTIVE_DELIVERY_STATUSES",
]
