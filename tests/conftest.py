import os

os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["PAYMENT_DELAY_SECONDS"] = "0"
os.environ["SHIPPING_FEE"] = "9.99"
os.environ["FREE_SHIPPING_THRESHOLD"] = "0"
os.environ["TAX_RATE"] = "0.06"
os.environ.pop("DATABASE_URL", None)

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from auth import get_password_hash, token_for
from database import MemoryStore
from main import create_app

PASSWORD = "secret123"


def make_user(store, username, role="user"):
    user_id = store.create_document("user", {
        "username": username,
        "email": f"{username}@example.com",
        "password_hash": get_password_hash(PASSWORD),
        "role": role,
        "created_at": datetime.now(timezone.utc),
    })
    return store.get_document("user", user_id)


def bearer(user):
    return {"Authorization": f"Bearer {token_for(user)}"}


def add_product(store, name, price, stock=10, category_id=None, **extra):
    data = {
        "name": name,
        "slug": name.lower().replace(" ", "-"),
        "description": f"{name} description",
        "price": price,
        "compare_at_price": None,
        "category_id": category_id,
        "image_url": None,
        "additional_images": [],
        "brand": None,
        "stock": stock,
        "is_new": False,
        "is_featured": False,
        "is_on_sale": False,
        "rating": 0.0,
        "review_count": 0,
        "created_at": datetime.now(timezone.utc),
    }
    data.update(extra)
    return store.get_document("product", store.create_document("product", data))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def client(store):
    with TestClient(create_app(store, seed=False)) as c:
        yield c


@pytest.fixture
def admin(store):
    return make_user(store, "admin", role="admin")


@pytest.fixture
def customer(store):
    return make_user(store, "alice")


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def user_headers(customer):
    return bearer(customer)
