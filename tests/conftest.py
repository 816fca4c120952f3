"""Shared fixtures: temp-file SQLite database, demo tenant data and API clients."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from foodflow.core.security import create_access_token, get_password_hash
from foodflow.db import session as db_session
from foodflow.db.base import Base
from foodflow.main import app
from foodflow.models import Driver, MenuCategory, MenuItem, Restaurant, User, UserRole
from foodflow.services.events import DomainEvent, get_event_dispatcher
from foodflow.services.kv_store import InMemoryKeyValueStore, get_kv_store

PASSWORD = "secret123"


def _build_test_engine(db_file: Path) -> Engine:
    return create_engine(
        f"sqlite:///{db_file}",
        connect_args={"check_same_thread": False},
    )


@dataclass
class World:
    restaurant_id: int
    other_restaurant_id: int
    burger_id: int
    fries_id: int
    sold_out_id: int
    foreign_item_id: int
    customer_id: int
    other_customer_id: int
    staff_id: int
    admin_id: int
    driver_user_id: int
    driver_id: int
    second_driver_user_id: int
    second_driver_id: int


class RecordingDispatcher:
    """Collects dispatched events instead of broadcasting them."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []

    async def dispatch(self, event: DomainEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [event.name for event in self.events]


@pytest.fixture()
def session_factory(tmp_path: Path, monkeypatch) -> Iterator[sessionmaker]:
    engine = _build_test_engine(tmp_path / "foodflow_test.db")
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "SessionLocal", testing_session_local)
    yield testing_session_local
    engine.dispose()


@pytest.fixture()
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session: Session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def world(session_factory: sessionmaker) -> World:
    password_hash = get_password_hash(PASSWORD)
    with session_factory() as session:
        restaurant = Restaurant(name="Pasta Place", latitude=52.23, longitude=21.01)
        other_restaurant = Restaurant(name="Sushi Spot")
        mains = MenuCategory(restaurant=restaurant, name="Mains")
        other_mains = MenuCategory(restaurant=other_restaurant, name="Rolls")
        burger = MenuItem(category=mains, name="Burger", price=Decimal("8.99"), is_available=True)
        fries = MenuItem(category=mains, name="Fries", price=Decimal("3.50"), is_available=True)
        sold_out = MenuItem(category=mains, name="Truffle Risotto", price=Decimal("21.00"), is_available=False)
        foreign_item = MenuItem(category=other_mains, name="Salmon Roll", price=Decimal("7.25"), is_available=True)

        def account(email: str, role: UserRole) -> User:
            return User(email=email, name=email.split("@")[0], password_hash=password_hash, role=role)

        customer = account("customer@example.com", UserRole.CUSTOMER)
        other_customer = account("other@example.com", UserRole.CUSTOMER)
        staff = account("staff@example.com", UserRole.STAFF)
        admin = account("admin@example.com", UserRole.ADMIN)
        driver_user = account("driver@example.com", UserRole.DRIVER)
        second_driver_user = account("driver2@example.com", UserRole.DRIVER)
        driver = Driver(user=driver_user, vehicle_type="bike", is_available=True, current_lat=52.24, current_lng=21.02)
        second_driver = Driver(user=second_driver_user, vehicle_type="car", is_available=True)

        session.add_all(
            [
                restaurant,
                other_restaurant,
                mains,
                other_mains,
                burger,
                fries,
                sold_out,
                foreign_item,
                customer,
                other_customer,
                staff,
                admin,
                driver,
                second_driver,
            ]
        )
        session.commit()
        return World(
            restaurant_id=restaurant.id,
            other_restaurant_id=other_restaurant.id,
            burger_id=burger.id,
            fries_id=fries.id,
            sold_out_id=sold_out.id,
            foreign_item_id=foreign_item.id,
            customer_id=customer.id,
            other_customer_id=other_customer.id,
            staff_id=staff.id,
            admin_id=admin.id,
            driver_user_id=driver_user.id,
            driver_id=driver.id,
            second_driver_user_id=second_driver_user.id,
            second_driver_id=second_driver.id,
        )


@pytest.fixture()
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def recorder() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture()
def client(session_factory: sessionmaker, kv: InMemoryKeyValueStore, recorder: RecordingDispatcher) -> Iterator[TestClient]:
    app.dependency_overrides[get_kv_store] = lambda: kv
    app.dependency_overrides[get_event_dispatcher] = lambda: recorder
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def auth_headers(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user_id)})}"}


@pytest.fixture()
def auth():
    """Return a helper building bearer headers for a user id."""
    return auth_headers
