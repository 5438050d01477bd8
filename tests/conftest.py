import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import create_token, hash_password
from database import get_db
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, name, role="user"):
    doc = {
        "name": name,
        "email": f"{name.lower()}@example.com",
        "password_hash": hash_password("secret123"),
        "role": role,
    }
    result = db["user"].insert_one(doc)
    doc["_id"] = result.inserted_id
    return {
        "id": str(result.inserted_id),
        "name": name,
        "email": doc["email"],
        "role": role,
        "headers": {"Authorization": f"Bearer {create_token(doc)}"},
    }


@pytest.fixture
def users(db):
    return {
        "u1": make_user(db, "Alice"),
        "u2": make_user(db, "Bob"),
        "admin": make_user(db, "Root", role="admin"),
    }


@pytest.fixture
def widget(client, users):
    response = client.post(
        "/products",
        json={"name": "Widget", "price": 10, "stock": 5, "category": "cat-tools"},
        headers=users["u1"]["headers"],
    )
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def order_payload():
    def build(*items):
        return {
            "order_items": [{"product": pid, "name": "item", "quantity": qty, "price": 10} for pid, qty in items],
            "shipping_info": {
                "address": "1 Main St",
                "city": "Springfield",
                "phone": "555-0100",
                "postal_code": "12345",
                "country": "US",
            },
            "items_price": 20,
            "tax_price": 2,
            "shipping_price": 5,
            "total_price": 27,
            "payment_info": {"id": "pi_123", "status": "succeeded"},
        }

    return build
