# conftest.py
import os

os.environ.setdefault("APP_SECRET", "test-secret")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "dev")

from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from foodorder.db import Base
import foodorder.models  # noqa: F401
from foodorder.models.common import utcnow
from foodorder.models.core import (
    User, UserRole, Restaurant, MenuItem, CustomerAddress, Coupon, DiscountType,
)
from foodorder.services.actor import Actor
from foodorder.util.security import hash_pw

PASSWORD = "secret"


@pytest.fixture()
def engine(tmp_path):
    # file-backed so separate sessions get separate connections
    eng = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    yield s
    s.close()


@pytest.fixture(scope="session")
def pass_hash():
    return hash_pw(PASSWORD)


def _user(db, name, role, pass_hash):
    u = User(name=name, email=f"{name}@example.com", pass_hash=pass_hash, role=role)
    db.add(u)
    db.flush()
    return u


@pytest.fixture()
def seed(db, pass_hash):
    """Admin, owner + restaurant + menu, customer + address, two riders."""
    admin = _user(db, "admin", UserRole.ADMIN, pass_hash)
    owner = _user(db, "owner", UserRole.RESTAURANT_OWNER, pass_hash)
    other_owner = _user(db, "owner2", UserRole.RESTAURANT_OWNER, pass_hash)
    customer = _user(db, "customer", UserRole.CUSTOMER, pass_hash)
    other_customer = _user(db, "customer2", UserRole.CUSTOMER, pass_hash)
    rider = _user(db, "rider", UserRole.DELIVERY_PERSON, pass_hash)
    rider2 = _user(db, "rider2", UserRole.DELIVERY_PERSON, pass_hash)

    restaurant = Restaurant(owner_id=owner.id, name="Spice Route")
    other_restaurant = Restaurant(owner_id=other_owner.id, name="Noodle Bar")
    db.add_all([restaurant, other_restaurant])
    db.flush()

    curry = MenuItem(restaurant_id=restaurant.id, name="Curry", price=Decimal("100.00"))
    naan = MenuItem(restaurant_id=restaurant.id, name="Naan", price=Decimal("25.50"))
    sold_out = MenuItem(restaurant_id=restaurant.id, name="Special", price=Decimal("300.00"), available=False)
    noodles = MenuItem(restaurant_id=other_restaurant.id, name="Noodles", price=Decimal("90.00"))
    address = CustomerAddress(user_id=customer.id, line1="1 Main St", city="Pune")
    other_address = CustomerAddress(user_id=other_customer.id, line1="2 Side St", city="Pune")
    db.add_all([curry, naan, sold_out, noodles, address, other_address])
    db.commit()

    return SimpleNamespace(
        admin=Actor(admin.id, UserRole.ADMIN),
        owner=Actor(owner.id, UserRole.RESTAURANT_OWNER),
        other_owner=Actor(other_owner.id, UserRole.RESTAURANT_OWNER),
        customer=Actor(customer.id, UserRole.CUSTOMER),
        other_customer=Actor(other_customer.id, UserRole.CUSTOMER),
        rider=Actor(rider.id, UserRole.DELIVERY_PERSON),
        rider2=Actor(rider2.id, UserRole.DELIVERY_PERSON),
        restaurant_id=restaurant.id,
        other_restaurant_id=other_restaurant.id,
        curry_id=curry.id,
        naan_id=naan.id,
        sold_out_id=sold_out.id,
        noodles_id=noodles.id,
        address_id=address.id,
        other_address_id=other_address.id,
    )


@pytest.fixture()
def make_coupon(db):
    def _make(code="SAVE20", restaurant_id=None, discount_type=DiscountType.PERCENTAGE,
              value="20", max_discount="30.00", min_order_value="100.00",
              per_user_limit=1, usage_limit=None, active=True, valid_from=None, valid_to=None):
        now = utcnow()
        c = Coupon(
            code=code,
            restaurant_id=restaurant_id,
            discount_type=discount_type,
            discount_value=Decimal(value),
            max_discount=Decimal(max_discount) if max_discount is not None else None,
            min_order_value=Decimal(min_order_value),
            per_user_limit=per_user_limit,
            usage_limit=usage_limit,
            valid_from=valid_from or now - timedelta(days=1),
            valid_to=valid_to or now + timedelta(days=1),
            active=active,
        )
        db.add(c)
        db.commit()
        return c
    return _make


@pytest.fixture()
def client(engine, session_factory):
    from fastapi.testclient import TestClient
    from foodorder.db import get_db
    from foodorder.main import app

    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(client):
    def _headers(actor_name: str) -> dict:
        r = client.post("/auth/login", params={"email": f"{actor_name}@example.com", "password": PASSWORD})
        assert r.status_code == 200, f"/auth/login failed: {r.text}"
        return {"Authorization": f"Bearer {r.json()['access_token']}"}
    return _headers
