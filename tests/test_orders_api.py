"""
Tests for the order lookup and admin order endpoints.
"""

import uuid

import pytest

from app.config import settings
from tests.factories import checkout_body

ADMIN_KEY = "admin-test-key"


@pytest.fixture(autouse=True)
def admin_key(monkeypatch):
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)


async def place_order(client, gateway, tx_ref="A1", transaction_id=1001, email="ada@example.com"):
    gateway.add(transaction_id, tx_ref=tx_ref, amount=5000)
    response = await client.post(
        "/api/verify-payment",
        json=checkout_body(tx_ref=tx_ref, transaction_id=transaction_id, email=email),
    )
    assert response.status_code == 200
    return response.json()["order"]


@pytest.mark.asyncio
async def test_get_order_by_reference(client, gateway):
    order = await place_order(client, gateway)

    response = await client.get("/api/orders/reference/A1")

    assert response.status_code == 200
    assert response.json()["order"]["id"] == order["id"]


@pytest.mark.asyncio
async def test_get_order(client, gateway):
    order = await place_order(client, gateway)

    response = await client.get(f"/api/orders/{order['id']}")

    assert response.status_code == 200
    assert response.json()["order"]["txRef"] == "A1"


@pytest.mark.asyncio
async def test_order_not_found(client):
    assert (await client.get(f"/api/orders/{uuid.uuid4()}")).status_code == 404
    assert (await client.get("/api/orders/reference/missing")).status_code == 404


@pytest.mark.asyncio
async def test_customer_orders(client, gateway):
    first = await place_order(client, gateway, tx_ref="A1", transaction_id=1001)
    await place_order(client, gateway, tx_ref="A2", transaction_id=1002)
    await place_order(client, gateway, tx_ref="B1", transaction_id=2001, email="bola@example.com")

    response = await client.get(f"/api/customers/{first['customer']}/orders")

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert {o["txRef"] for o in response.json()["orders"]} == {"A1", "A2"}


@pytest.mark.asyncio
async def test_admin_requires_key(client):
    assert (await client.get("/admin/orders")).status_code == 401
    assert (await client.get("/admin/orders", headers={"X-Admin-Key": "nope"})).status_code == 401


@pytest.mark.asyncio
async def test_admin_key_not_accepted_in_query(client):
    """The key only travels in the header, never in URLs."""
    response = await client.get("/admin/orders", params={"authtoken": ADMIN_KEY})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_list_and_stats(client, gateway):
    await place_order(client, gateway, tx_ref="A1", transaction_id=1001)
    await place_order(client, gateway, tx_ref="A2", transaction_id=1002)
    headers = {"X-Admin-Key": ADMIN_KEY}

    listing = await client.get("/admin/orders", params={"status": "paid"}, headers=headers)
    assert listing.status_code == 200
    assert listing.json()["count"] == 2

    stats = await client.get("/admin/orders/stats", headers=headers)
    assert stats.status_code == 200
    assert stats.json() == {
        "status": "success",
        "revenue": 10000.0,
        "orderCount": 2,
        "pendingOrderCount": 2,
    }


@pytest.mark.asyncio
async def test_admin_update_status(client, gateway):
    order = await place_order(client, gateway)
    headers = {"X-Admin-Key": ADMIN_KEY}

    shipped = await client.patch(f"/admin/orders/{order['id']}", json={"status": "shipped"}, headers=headers)
    assert shipped.status_code == 200
    assert shipped.json()["order"]["status"] == "shipped"

    back = await client.patch(f"/admin/orders/{order['id']}", json={"status": "paid"}, headers=headers)
    assert back.status_code == 409
    assert back.json()["success"] is False


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
