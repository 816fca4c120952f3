"""Database seeding helpers."""

import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from foodflow.core.security import get_password_hash
from foodflow.models import Driver, MenuCategory, MenuItem, Restaurant, User, UserRole

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"
DEMO_USERS: tuple[tuple[str, str, UserRole], ...] = (
    ("admin@foodflow.local", "Demo Admin", UserRole.ADMIN),
    ("staff@foodflow.local", "Demo Staff", UserRole.STAFF),
    ("customer@foodflow.local", "Demo Customer", UserRole.CUSTOMER),
    ("driver@foodflow.local", "Demo Driver", UserRole.DRIVER),
)
DEMO_MENU: tuple[tuple[str, str], ...] = (
    ("Margherita Pizza", "8.99"),
    ("Caesar Salad", "6.50"),
    ("Lemonade", "2.75"),
)


def ensure_seed_data(session: Session) -> bool:
    """Create a demo restaurant, menu and accounts when the database has no restaurants.

    Returns True when data was inserted.
    """
    if session.scalar(select(func.count(Restaurant.id))):
        return False

    restaurant = Restaurant(name="Demo Kitchen", address="1 Market Street", latitude=52.2297, longitude=21.0122)
    category = MenuCategory(restaurant=restaurant, name="Mains")
    for name, price in DEMO_MENU:
        category.items.append(MenuItem(name=name, price=Decimal(price), is_available=True))
    session.add_all([restaurant, category])

    password_hash = get_password_hash(DEMO_PASSWORD)
    for email, name, role in DEMO_USERS:
        if session.scalar(select(User.id).where(User.email == email)) is not None:
            continue
        user = User(email=email, name=name, password_hash=password_hash, role=role)
        session.add(user)
        if role == UserRole.DRIVER:
            session.add(Driver(user=user, vehicle_type="bike", is_available=True))

    session.commit()
    logger.info("[SEED] Demo restaurant, menu and %s accounts created", len(DEMO_USERS))
    return True
