import re

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import catalog
import orders
from factories import add_product
from main import create_app
from security import AUTH_COOKIE, CUSTOMER_COOKIE
from settings import settings


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_route_uses_envelope(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Resource not found"}


class TestCustomerSession:
    def test_create_get_and_clear(self, client):
        created = client.post("/api/customer/session", json={"customer_name": "  Asha  "})
        assert created.status_code == 200
        assert created.json()["data"]["customer_name"] == "Asha"
        assert CUSTOMER_COOKIE in created.cookies

        current = client.get("/api/customer/session")
        assert current.json() == {"success": True, "data": {"customer_name": "Asha"}}

        cleared = client.delete("/api/customer/session")
        assert cleared.json()["message"] == "Customer session cleared"
        assert client.get("/api/customer/session").json()["data"] is None

    def test_blank_name_is_a_validation_error(self, client):
        response = client.post("/api/customer/session", json={"customer_name": "   "})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["errors"][0]["field"] == "customer_name"

    def test_invalid_cookie_degrades_to_no_session(self, client):
        client.cookies.set(CUSTOMER_COOKIE, "tampered")

        response = client.get("/api/customer/session")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": None}
        assert f"{CUSTOMER_COOKIE}=" in response.headers["set-cookie"]
        assert "Max-Age=0" in response.headers["set-cookie"]
        assert CUSTOMER_COOKIE not in client.cookies

    def test_no_cookie_leaves_cookies_alone(self, client):
        response = client.get("/api/customer/session")

        assert response.json() == {"success": True, "data": None}
        assert "set-cookie" not in response.headers


class TestUnhandledErrors:
    @pytest.fixture
    def failing_client(self, store, monkeypatch):
        async def broken(store):
            raise RuntimeError("collection scan exploded")

        monkeypatch.setattr(catalog, "list_categories", broken)
        with TestClient(create_app(store), raise_server_exceptions=False) as c:
            yield c

    def test_detail_shown_in_development(self, failing_client, monkeypatch):
        monkeypatch.setattr(settings, "ENVIRONMENT", "development")

        response = failing_client.get("/api/products/categories")

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "Internal server error",
            "error": "collection scan exploded",
        }

    def test_detail_hidden_in_production(self, failing_client, monkeypatch):
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")

        response = failing_client.get("/api/products/categories")

        assert response.status_code == 500
        assert response.json()["error"] == "Something went wrong"
        assert "exploded" not in response.text


class TestOrderIntake:
    async def test_requires_customer_session(self, client, store):
        product_id = await add_product(store)

        response = client.post("/api/orders", json={"phone": "555", "items": [{"product_id": product_id, "quantity": 1}]})

        assert response.status_code == 401
        assert response.json()["success"] is False

    async def test_creates_order(self, customer_client, store):
        product_id = await add_product(store, price=10.0, max_quantity=5)

        response = customer_client.post("/api/orders", json={
            "phone": "555-0100",
            "email": "asha@example.com",
            "items": [{"product_id": product_id, "quantity": 2}],
        })

        assert response.status_code == 201
        order = response.json()["data"]
        assert order["customer_name"] == "Asha"
        assert order["total_amount"] == 20.0
        assert order["status"] == "pending"
        assert re.fullmatch(r"ORD-\d{8}-0001", order["order_number"])

        public = customer_client.get(f"/api/orders/public/{order['id']}")
        assert public.status_code == 200
        assert public.json()["data"]["order_number"] == order["order_number"]

    async def test_business_rule_failure_is_400(self, customer_client, store):
        product_id = await add_product(store, name="Mangoes", in_stock=False)

        response = customer_client.post("/api/orders", json={
            "phone": "555-0100",
            "items": [{"product_id": product_id, "quantity": 1}],
        })

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Product Mangoes is out of stock"}
        assert await store.orders.count_documents({}) == 0

    async def test_order_number_collision_is_500(self, customer_client, store, monkeypatch):
        product_id = await add_product(store)
        payload = {"phone": "555-0100", "items": [{"product_id": product_id, "quantity": 1}]}
        first = customer_client.post("/api/orders", json=payload).json()["data"]

        async def stale_number(orders_collection, today):
            return first["order_number"]

        monkeypatch.setattr(orders, "next_order_number", stale_number)
        response = customer_client.post("/api/orders", json=payload)

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Could not allocate an order number, please retry"}
        assert await store.orders.count_documents({}) == 1

    def test_missing_product_is_404(self, customer_client):
        response = customer_client.post("/api/orders", json={
            "phone": "555-0100",
            "items": [{"product_id": str(ObjectId()), "quantity": 1}],
        })

        assert response.status_code == 404

    def test_missing_phone_is_400(self, customer_client):
        response = customer_client.post("/api/orders", json={"items": [{"product_id": "x", "quantity": 1}]})

        assert response.status_code == 400
        assert response.json()["message"] == "Phone number is required"

    def test_malformed_item_is_400_with_errors(self, customer_client):
        response = customer_client.post("/api/orders", json={"phone": "555", "items": [{"quantity": 1}]})

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "items.0.product_id"


class TestStaffAccess:
    def test_orders_listing_requires_login(self, client):
        assert client.get("/api/orders").status_code == 401

    def test_staff_can_list_orders(self, client, staff_headers):
        response = client.get("/api/orders", headers=staff_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 0, "total": 0, "page": 1, "pages": 0, "data": []}

    def test_staff_cannot_see_stats(self, client, staff_headers):
        response = client.get("/api/stats/dashboard", headers=staff_headers)

        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_admin_sees_stats(self, client, admin_headers):
        dashboard = client.get("/api/stats/dashboard", headers=admin_headers)
        period = client.get("/api/stats/analytics", params={"from": "2024-01-01", "to": "2024-01-31"}, headers=admin_headers)

        assert dashboard.status_code == 200
        assert dashboard.json()["data"]["orders_trend"] == 0
        assert period.status_code == 200
        assert period.json()["data"]["order_count"] == 0

    def test_period_accepts_iso_datetimes(self, client, admin_headers):
        response = client.get(
            "/api/stats/analytics",
            params={"from": "2024-01-01T10:00:00Z", "to": "2024-01-31T23:30:00-02:00"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        period = response.json()["data"]["period"]
        assert period["start"] == "2024-01-01T00:00:00"
        assert period["end"] == "2024-02-02T00:00:00"

    def test_period_rejects_garbage_dates(self, client, admin_headers):
        response = client.get("/api/stats/analytics", params={"from": "last tuesday"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"].startswith("from")

    def test_admin_order_analytics(self, client, admin_headers):
        response = client.get("/api/orders/analytics", params={"start_date": "2024-01-01T00:00:00"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["total_orders"] == 0

    def test_bad_token_is_401(self, client):
        response = client.get("/api/orders", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401

    async def test_status_update(self, customer_client, store, staff_headers):
        product_id = await add_product(store)
        order = customer_client.post("/api/orders", json={
            "phone": "555-0100",
            "items": [{"product_id": product_id, "quantity": 1}],
        }).json()["data"]

        moved = customer_client.put(f"/api/orders/{order['id']}/status", json={"status": "preparing"}, headers=staff_headers)
        invalid = customer_client.put(f"/api/orders/{order['id']}/status", json={"status": "shipped"}, headers=staff_headers)
        skipped = customer_client.put(f"/api/orders/{order['id']}/status", json={"status": "pending"}, headers=staff_headers)

        assert moved.status_code == 200
        assert moved.json()["data"]["status"] == "preparing"
        assert invalid.status_code == 400
        assert skipped.status_code == 400


class TestProductsApi:
    PAYLOAD = {
        "name": "Jaggery",
        "description": "Cane jaggery block",
        "price": 3.5,
        "image": "https://img.example.com/jaggery.jpg",
        "category": "sweeteners",
        "unit": "packet",
        "max_quantity": 4,
    }

    def test_anonymous_cannot_create(self, client):
        assert client.post("/api/products", json=self.PAYLOAD).status_code == 401

    def test_staff_cannot_create(self, client, staff_headers):
        assert client.post("/api/products", json=self.PAYLOAD, headers=staff_headers).status_code == 403

    def test_admin_crud(self, client, admin_headers):
        created = client.post("/api/products", json=self.PAYLOAD, headers=admin_headers)
        assert created.status_code == 201
        product_id = created.json()["data"]["id"]

        updated = client.put(f"/api/products/{product_id}", json={"price": 4.0}, headers=admin_headers)
        assert updated.json()["data"]["price"] == 4.0

        listed = client.get("/api/products", params={"category": "sweeteners"})
        assert listed.json()["total"] == 1
        assert client.get("/api/products/categories").json()["data"] == ["sweeteners"]

        deleted = client.delete(f"/api/products/{product_id}", headers=admin_headers)
        assert deleted.json() == {"success": True, "message": "Product deleted successfully"}
        assert client.get(f"/api/products/{product_id}").status_code == 404

    def test_invalid_unit_is_400(self, client, admin_headers):
        response = client.post("/api/products", json={**self.PAYLOAD, "unit": "crate"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "unit"


class TestAuthApi:
    async def test_login_me_logout(self, client, admin_user):
        login = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "admin123"})
        assert login.status_code == 200
        assert login.json()["data"]["user"]["role"] == "admin"
        assert AUTH_COOKIE in login.cookies

        me = client.get("/api/auth/me")
        assert me.json()["data"]["email"] == "admin@example.com"

        logout = client.post("/api/auth/logout")
        assert logout.status_code == 200
        assert client.get("/api/auth/me").status_code == 401

    async def test_login_with_wrong_password(self, client, admin_user):
        response = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_admin_registers_staff(self, client, admin_headers):
        response = client.post("/api/auth/register", json={
            "name": "New Staff", "email": "new@example.com", "password": "secret1",
        }, headers=admin_headers)

        assert response.status_code == 201
        assert response.json()["data"]["role"] == "staff"
        assert "password_hash" not in response.json()["data"]

    def test_staff_cannot_register_users(self, client, staff_headers):
        response = client.post("/api/auth/register", json={
            "name": "Sneaky", "email": "sneaky@example.com", "password": "secret1", "role": "admin",
        }, headers=staff_headers)

        assert response.status_code == 403
