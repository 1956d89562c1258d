"""
HTTP layer: routing, identity headers and error rendering.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from restaurant_orders import main
from restaurant_orders.services import (
    get_order_engine,
    get_query_facade,
    get_review_ledger,
)

CLIENT = {"X-User-Id": "42", "X-User-Role": "CLIENT"}
OTHER_CLIENT = {"X-User-Id": "43", "X-User-Role": "CLIENT"}
OWNER = {"X-User-Id": "100", "X-User-Role": "RESTAURANT"}


@pytest.fixture
async def api(order_engine, query_facade, review_ledger):
    main.app.dependency_overrides[get_order_engine] = lambda: order_engine
    main.app.dependency_overrides[get_query_facade] = lambda: query_facade
    main.app.dependency_overrides[get_review_ledger] = lambda: review_ledger

    async with AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test") as http:
        yield http

    main.app.dependency_overrides.clear()


@pytest.fixture
def order_payload(seed):
    return {
        "restaurant_id": seed.trattoria,
        "client_id": 42,
        "lines": [
            {"product_id": seed.margherita, "quantity": 2},
            {"product_id": seed.tiramisu, "quantity": 3},
        ],
    }


async def place(api, payload) -> dict:
    response = await api.post("/api/orders", json=payload, headers=CLIENT)
    assert response.status_code == 201, response.text
    return response.json()


async def test_root(api):
    response = await api.get("/")
    assert response.status_code == 200
    assert "version" in response.json()


@pytest.mark.parametrize("headers", [
    {},
    {"X-User-Id": "42"},
    {"X-User-Id": "abc", "X-User-Role": "CLIENT"},
    {"X-User-Id": "42", "X-User-Role": "ADMIN"},
    {"X-User-Id": "0", "X-User-Role": "CLIENT"},
])
async def test_identity_headers_required(api, order_payload, headers):
    response = await api.post("/api/orders", json=order_payload, headers=headers)
    assert response.status_code == 401


async def test_place_order(api, order_payload):
    body = await place(api, order_payload)

    assert body["status"] == "PENDING"
    assert body["total"] == "46.99"
    assert [line["subtotal"] for line in body["lines"]] == ["25.00", "21.99"]
    assert body["created_at"].endswith("Z")


async def test_domain_errors_render_as_error_response(api, order_payload, seed):
    order_payload["lines"].append({"product_id": seed.nigiri, "quantity": 1})

    response = await api.post("/api/orders", json=order_payload, headers=CLIENT)

    assert response.status_code == 422
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "PRODUCT_RESTAURANT_MISMATCH"
    assert body["metadata"]["product_id"] == seed.nigiri


async def test_order_lifecycle(api, order_payload):
    order = await place(api, order_payload)
    url = f"/api/orders/{order['id']}"

    accepted = await api.patch(url, json={"status": "ACCEPTED"}, headers=OWNER)
    assert accepted.status_code == 200
    assert accepted.json()["version"] == 2

    invalid = await api.patch(url, json={"status": "DELIVERED"}, headers=OWNER)
    assert invalid.status_code == 409
    assert invalid.json()["error"] == "INVALID_TRANSITION"

    stale = await api.patch(url, json={"status": "CANCELLED", "expected_version": 1}, headers=OWNER)
    assert stale.status_code == 409
    assert stale.json()["error"] == "CONFLICT"
    assert stale.json()["retryable"] is True

    kept = await api.delete(url, headers=OWNER)
    assert kept.status_code == 409
    assert kept.json()["error"] == "ORDER_NOT_DELETABLE"


async def test_delete_pending_order(api, order_payload):
    order = await place(api, order_payload)
    url = f"/api/orders/{order['id']}"

    assert (await api.delete(url, headers=CLIENT)).status_code == 204

    missing = await api.get(url, headers=CLIENT)
    assert missing.status_code == 404
    assert missing.json()["error"] == "ORDER_NOT_FOUND"


async def test_foreign_order_is_forbidden(api, order_payload):
    order = await place(api, order_payload)

    response = await api.get(f"/api/orders/{order['id']}", headers=OTHER_CLIENT)

    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN"


async def test_restaurant_listing_filters(api, order_payload, seed):
    first = await place(api, order_payload)
    second = await place(api, order_payload)
    await api.patch(f"/api/orders/{second['id']}", json={"status": "ACCEPTED"}, headers=OWNER)

    url = f"/api/restaurants/{seed.trattoria}/orders"
    everything = await api.get(url, headers=OWNER)
    accepted = await api.get(url, params={"status": "accepted"}, headers=OWNER)
    ranged = await api.get(
        url,
        params={"start": first["created_at"], "end": second["created_at"]},
        headers=OWNER,
    )

    assert [o["id"] for o in everything.json()] == [first["id"], second["id"]]
    assert [o["id"] for o in accepted.json()] == [second["id"]]
    assert [o["id"] for o in ranged.json()] == [first["id"]]


async def test_owner_paging(api, order_payload):
    for _ in range(3):
        await place(api, order_payload)

    paged = await api.get("/api/owners/100/orders", params={"page": 1, "page_size": 2}, headers=OWNER)
    listed = await api.get("/api/owners/100/orders", headers=OWNER)
    bad = await api.get("/api/owners/100/orders", params={"page": -1}, headers=OWNER)
    empty_page = await api.get("/api/owners/100/orders", params={"page_size": 0}, headers=OWNER)

    assert paged.status_code == 200
    assert {k: paged.json()[k] for k in ("total", "page", "page_size", "total_pages")} == {
        "total": 3, "page": 1, "page_size": 2, "total_pages": 2,
    }
    assert len(paged.json()["items"]) == 1
    assert len(listed.json()) == 3
    assert bad.status_code == 422
    assert empty_page.status_code == 422
    assert empty_page.json()["error"] == "VALIDATION_ERROR"


async def test_client_listing(api, order_payload):
    await place(api, order_payload)

    own = await api.get("/api/clients/42/orders", headers=CLIENT)
    other = await api.get("/api/clients/42/orders", headers=OTHER_CLIENT)

    assert len(own.json()) == 1
    assert other.status_code == 403


async def test_queue_report(api, order_payload, seed, monkeypatch):
    queued = []

    def delay(restaurant_id, orders):
        queued.append((restaurant_id, orders))
        return SimpleNamespace(id="task-1")

    monkeypatch.setattr(main, "export_orders_report", SimpleNamespace(delay=delay))
    order = await place(api, order_payload)

    response = await api.post(
        f"/api/restaurants/{seed.trattoria}/orders/report",
        params={"start": "2026-01-01T00:00:00Z", "end": "2027-01-01T00:00:00Z"},
        headers=OWNER,
    )

    assert response.status_code == 202
    assert response.json()["task_id"] == "task-1"
    assert response.json()["orders"] == 1
    assert queued[0][0] == seed.trattoria
    assert queued[0][1][0]["id"] == order["id"]
    assert queued[0][1][0]["total"] == "46.99"


async def test_report_requires_owner(api, seed):
    response = await api.post(
        f"/api/restaurants/{seed.trattoria}/orders/report",
        params={"start": "2026-01-01T00:00:00Z", "end": "2027-01-01T00:00:00Z"},
        headers=CLIENT,
    )
    assert response.status_code == 403


async def test_reviews(api, seed):
    created = await api.post(
        "/api/reviews", json={"restaurant_id": seed.trattoria, "score": 4}, headers=CLIENT
    )
    duplicate = await api.post(
        "/api/reviews", json={"restaurant_id": seed.trattoria, "score": 5}, headers=CLIENT
    )
    await api.post(
        "/api/reviews", json={"restaurant_id": seed.trattoria, "score": 2}, headers=OTHER_CLIENT
    )

    assert created.status_code == 201
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "DUPLICATE_REVIEW"

    rating = (await api.get(f"/api/restaurants/{seed.trattoria}/rating")).json()
    assert rating["review_count"] == 2
    assert Decimal(rating["average_score"]) == Decimal("3.0")

    review_url = f"/api/reviews/{created.json()['id']}"
    edited = await api.patch(review_url, json={"comments": "Better now"}, headers=CLIENT)
    assert edited.json()["comments"] == "Better now"
    assert (await api.patch(review_url, json={"score": 1}, headers=OTHER_CLIENT)).status_code == 403

    listed = await api.get(f"/api/restaurants/{seed.trattoria}/reviews")
    assert len(listed.json()) == 2

    assert (await api.delete(review_url, headers=CLIENT)).status_code == 204
    assert (await api.get(review_url)).status_code == 404


async def test_invalid_score(api, seed):
    response = await api.post(
        "/api/reviews", json={"restaurant_id": seed.trattoria, "score": 9}, headers=CLIENT
    )
    assert response.status_code == 422
    assert response.json()["error"] == "INVALID_SCORE"
