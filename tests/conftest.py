"""
Pytest fixtures for the Shop Management API tests.

Every test gets its own in-memory Motor-compatible store, so no MongoDB
server is needed.
"""
import uuid

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import accounts
from database import Store
from main import create_app
from schemas import Role
from security import CUSTOMER_COOKIE, issue_access_token, issue_customer_token
from settings import settings


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture
async def store():
    store = Store(AsyncMongoMockClient(), f"shop_test_{uuid.uuid4().hex}")
    await store.ensure_indexes()
    return store


@pytest.fixture
def client(store):
    app = create_app(store)
    with TestClient(app) as c:
        yield c


@pytest.fixture
async def admin_user(store):
    return await accounts.create_user(store, "Admin", "admin@example.com", "admin123", Role.admin)


@pytest.fixture
async def staff_user(store):
    return await accounts.create_user(store, "Staff", "staff@example.com", "staff123", Role.staff)


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {issue_access_token(admin_user)}"}


@pytest.fixture
def staff_headers(staff_user):
    return {"Authorization": f"Bearer {issue_access_token(staff_user)}"}


@pytest.fixture
def customer_client(client):
    client.cookies.set(CUSTOMER_COOKIE, issue_customer_token("Asha"))
    return client
