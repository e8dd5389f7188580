"""
Tests for order endpoints.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

CUSTOMER = {"name": "Ivan Petrov", "phone": "+79001234567", "email": "Ivan@Example.com"}


@pytest.mark.asyncio
async def test_create_temporary_order(client: AsyncClient, event_session):
    """A temporary order holds its seats without customer details."""
    response = await client.post(
        "/api/v1/orders/",
        json={"session_id": event_session.id, "seat_ids": ["A-1", "A-3"]},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "temporary"
    assert data["customer_name"] is None
    assert Decimal(data["total"]) == Decimal("2500")
    assert [item["seat_id"] for item in data["line_items"]] == ["A-1", "A-3"]

    seat_map = await client.get(f"/api/v1/sessions/{event_session.id}/seats")
    seats = {seat["seat_id"]: seat for seat in seat_map.json()["seats"]}
    assert seats["A-1"]["status"] == "reserved"
    assert seats["A-1"]["order_id"] == data["id"]
    assert seat_map.json()["session"]["reserved_seats"] == 2


@pytest.mark.asyncio
async def test_create_pending_order_lowercases_email(client: AsyncClient, event_session):
    response = await client.post(
        "/api/v1/orders/",
        json={"session_id": event_session.id, "seat_ids": ["A-1"], "mode": "pending", "customer": CUSTOMER},
    )
    assert response.status_code == 201
    assert response.json()["customer_email"] == "ivan@example.com"


@pytest.mark.asyncio
async def test_taken_seat_returns_409(client: AsyncClient, event_session):
    first = await client.post("/api/v1/orders/", json={"session_id": event_session.id, "seat_ids": ["B-1"]})
    assert first.status_code == 201

    second = await client.post(
        "/api/v1/orders/",
        json={"session_id": event_session.id, "seat_ids": ["A-2", "B-1"]},
    )
    assert second.status_code == 409
    error = second.json()["error"]
    assert error["code"] == "SEAT_UNAVAILABLE"
    assert error["details"]["seat_ids"] == ["B-1"]

    seat_map = await client.get(f"/api/v1/sessions/{event_session.id}/seats")
    seats = {seat["seat_id"]: seat for seat in seat_map.json()["seats"]}
    assert seats["A-2"]["status"] == "available"


@pytest.mark.asyncio
async def test_unknown_seat_returns_404(client: AsyncClient, event_session):
    response = await client.post("/api/v1/orders/", json={"session_id": event_session.id, "seat_ids": ["Z-9"]})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "SEAT_NOT_FOUND"


@pytest.mark.asyncio
async def test_unknown_session_returns_404(client: AsyncClient):
    response = await client.post("/api/v1/orders/", json={"session_id": 99999, "seat_ids": ["A-1"]})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "SESSION_NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"seat_ids": []},
        {"seat_ids": ["A-1"], "mode": "pending"},
        {"zone_units": {"dancefloor": 0}},
        {"seat_ids": ["A-1"], "customer": {"name": "X", "phone": "123", "email": "not-an-email"}},
    ],
)
async def test_invalid_order_request_returns_422(client: AsyncClient, event_session, payload):
    response = await client.post("/api/v1/orders/", json={"session_id": event_session.id, **payload})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_invalid_promo_code_returns_400(client: AsyncClient, event_session):
    response = await client.post(
        "/api/v1/orders/",
        json={"session_id": event_session.id, "seat_ids": ["A-1"], "promo_code": "NOPE"},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "PROMO_CODE_INVALID"


@pytest.mark.asyncio
async def test_promo_code_discount(client: AsyncClient, event_session, promo_code):
    response = await client.post(
        "/api/v1/orders/",
        json={"session_id": event_session.id, "seat_ids": ["A-1"], "promo_code": "spring10"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["promo_code"] == "SPRING10"
    assert Decimal(data["discount"]) == Decimal("100")
    assert Decimal(data["total"]) == Decimal("900")


@pytest.mark.asyncio
async def test_upgrade_then_pay(client: AsyncClient, event_session, notifier):
    created = await client.post("/api/v1/orders/", json={"session_id": event_session.id, "seat_ids": ["A-2"]})
    order_id = created.json()["id"]

    upgraded = await client.post(f"/api/v1/orders/{order_id}/upgrade", json={"customer": CUSTOMER})
    assert upgraded.status_code == 200
    assert upgraded.json()["status"] == "pending"

    paid = await client.post(f"/api/v1/orders/{order_id}/pay", json={"payment_method": "card"})
    assert paid.status_code == 200
    assert paid.json()["status"] == "paid"

    order = (await client.get(f"/api/v1/orders/{order_id}")).json()
    assert order["payment_method"] == "card"
    assert order["paid_at"] is not None


@pytest.mark.asyncio
async def test_pay_after_window_returns_409(client: AsyncClient, event_session, clock):
    created = await client.post(
        "/api/v1/orders/",
        json={"session_id": event_session.id, "seat_ids": ["A-2"], "mode": "pending", "customer": CUSTOMER},
    )
    clock.advance(minutes=20)

    response = await client.post(f"/api/v1/orders/{created.json()['id']}/pay", json={})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "RESERVATION_EXPIRED"


@pytest.mark.asyncio
async def test_pay_temporary_order_returns_409(client: AsyncClient, event_session):
    created = await client.post("/api/v1/orders/", json={"session_id": event_session.id, "seat_ids": ["A-2"]})
    response = await client.post(f"/api/v1/orders/{created.json()['id']}/pay", json={})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVALID_STATUS_TRANSITION"


@pytest.mark.asyncio
async def test_cancel_via_status_update(client: AsyncClient, event_session):
    created = await client.post("/api/v1/orders/", json={"session_id": event_session.id, "seat_ids": ["A-1"]})
    order_id = created.json()["id"]

    response = await client.patch(f"/api/v1/orders/{order_id}/status", json={"status": "expired"})
    assert response.status_code == 200
    assert response.json()["status"] == "expired"

    seat_map = await client.get(f"/api/v1/sessions/{event_session.id}/seats")
    seats = {seat["seat_id"]: seat for seat in seat_map.json()["seats"]}
    assert seats["A-1"]["status"] == "available"

    again = await client.patch(f"/api/v1/orders/{order_id}/status", json={"status": "cancelled"})
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_unknown_status_value_returns_422(client: AsyncClient, event_session):
    created = await client.post("/api/v1/orders/", json={"session_id": event_session.id, "seat_ids": ["A-1"]})
    response = await client.patch(f"/api/v1/orders/{created.json()['id']}/status", json={"status": "refunded"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_missing_order_returns_404(client: AsyncClient):
    response = await client.get("/api/v1/orders/424242")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ORDER_NOT_FOUND"


@pytest.mark.asyncio
async def test_list_orders_by_status(client: AsyncClient, event_session):
    await client.post("/api/v1/orders/", json={"session_id": event_session.id, "seat_ids": ["A-1"]})
    await client.post(
        "/api/v1/orders/",
        json={"session_id": event_session.id, "seat_ids": ["A-2"], "mode": "pending", "customer": CUSTOMER},
    )

    response = await client.get("/api/v1/orders/", params={"status": "temporary"})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["orders"][0]["line_items"][0]["seat_id"] == "A-1"


@pytest.mark.asyncio
async def test_cleanup_expired(client: AsyncClient, event_session, clock):
    await client.post("/api/v1/orders/", json={"session_id": event_session.id, "seat_ids": ["A-1"]})
    await client.post("/api/v1/orders/", json={"session_id": event_session.id, "zone_units": {"dancefloor": 2}})

    response = await client.post("/api/v1/orders/cleanup-expired")
    assert response.json() == {"count": 0}

    clock.advance(minutes=16)
    response = await client.post("/api/v1/orders/cleanup-expired")
    assert response.status_code == 200
    assert response.json() == {"count": 2}

    seat_map = (await client.get(f"/api/v1/sessions/{event_session.id}/seats")).json()
    assert seat_map["session"]["available_seats"] == 7
    assert seat_map["zones"][0]["available"] == 3
