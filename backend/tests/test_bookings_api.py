"""API tests for the booking lifecycle."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

RULES: list[dict[str, Any]] = [
    {
        "name": "Base fare",
        "rule_type": "base_rate",
        "service_type": "ONE_WAY",
        "calculation": {"type": "fixed", "value": "20"},
    },
    {
        "name": "Mileage",
        "rule_type": "distance_multiplier",
        "service_type": "ONE_WAY",
        "calculation": {"type": "per_mile", "value": "2"},
    },
    {
        "name": "Friday evening",
        "rule_type": "surcharge",
        "service_type": "ONE_WAY",
        "conditions": {
            "day_of_week": {"operator": "equals", "value": 4},
            "hour": {"operator": "greater_than", "value": 17},
        },
        "calculation": {"type": "percentage", "value": "15"},
    },
]


async def _book(
    client: AsyncClient, headers: dict[str, dict[str, str]], **booking: Any
) -> dict[str, Any]:
    for rule in RULES:
        response = await client.post(
            "/api/v1/admin/pricing-rules", json=rule, headers=headers["admin"]
        )
        assert response.status_code == 201, response.text

    quote = await client.post(
        "/api/v1/quotes",
        json={
            "service_type": "ONE_WAY",
            "pickup": {"address": "100 Main St", "lat": 34.05, "lng": -118.25},
            "dropoff": {"address": "200 Ocean Ave", "lat": 34.01, "lng": -118.49},
            "pickup_at": "2030-05-10T19:00:00-07:00",
        },
        headers=headers["customer"],
    )
    assert quote.status_code == 201, quote.text

    response = await client.post(
        "/api/v1/bookings",
        json={"quote_id": quote.json()["id"], **booking},
        headers=headers["customer"],
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_booking_lifecycle(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    booking = await _book(client, headers)

    assert booking["status"] == "PENDING"
    assert booking["total_amount"] == "49.91"
    assert booking["quote"]["is_locked"] is True

    confirmed = await client.post(
        f"/api/v1/bookings/{booking['id']}/confirm", headers=headers["customer"]
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["confirmation_number"].startswith("CNF-")

    # customers cannot dispatch their own ride
    forbidden = await client.post(
        f"/api/v1/bookings/{booking['id']}/start", headers=headers["customer"]
    )
    assert forbidden.status_code == 403

    started = await client.post(
        f"/api/v1/bookings/{booking['id']}/start", headers=headers["dispatcher"]
    )
    assert started.json()["status"] == "IN_PROGRESS"

    completed = await client.post(
        f"/api/v1/bookings/{booking['id']}/complete", headers=headers["dispatcher"]
    )
    assert completed.json()["status"] == "COMPLETED"

    again = await client.post(
        f"/api/v1/bookings/{booking['id']}/complete", headers=headers["dispatcher"]
    )
    assert again.status_code == 409
    assert again.json()["error"] == "INVALID_TRANSITION"


async def test_booking_with_enhancements(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    booking = await _book(
        client,
        headers,
        enhancements={"meet_and_greet": True, "bag_count": 3},
        gratuity_amount="5.00",
    )

    assert booking["enhancement_total"] == "20.00"
    assert booking["gratuity_amount"] == "5.00"
    assert booking["total_amount"] == "74.91"


async def test_booked_quote_cannot_be_booked_again(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    booking = await _book(client, headers)

    response = await client.post(
        "/api/v1/bookings",
        json={"quote_id": booking["quote_id"]},
        headers=headers["customer"],
    )
    assert response.status_code == 409


async def test_modify_preview_and_history(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    booking = await _book(client, headers)
    change = {"trip": {"pickup_at": "2030-05-13T09:00:00-07:00"}, "reason": "meeting moved"}

    preview = await client.post(
        f"/api/v1/bookings/{booking['id']}/modify/preview",
        json=change,
        headers=headers["customer"],
    )
    assert preview.status_code == 200, preview.text
    assert preview.json()["new_total"] == "43.40"
    assert preview.json()["price_difference"] == "-6.51"

    modified = await client.post(
        f"/api/v1/bookings/{booking['id']}/modify", json=change, headers=headers["customer"]
    )
    assert modified.status_code == 200, modified.text
    body = modified.json()
    assert body["total_amount"] == "43.40"
    assert body["booking_reference"] == booking["booking_reference"]
    assert body["quote_id"] != booking["quote_id"]
    assert body["modification_count"] == 1

    history = await client.get(
        f"/api/v1/bookings/{booking['id']}/modifications", headers=headers["customer"]
    )
    entries = history.json()
    assert len(entries) == 1
    assert entries[0]["previous_total"] == "49.91"
    assert entries[0]["reason"] == "meeting moved"


async def test_empty_modification_is_rejected(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    booking = await _book(client, headers)
    response = await client.post(
        f"/api/v1/bookings/{booking['id']}/modify", json={}, headers=headers["customer"]
    )
    assert response.status_code == 400


async def test_modification_cannot_clear_pickup_time(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    booking = await _book(client, headers)
    response = await client.post(
        f"/api/v1/bookings/{booking['id']}/modify",
        json={"trip": {"pickup_at": None}},
        headers=headers["customer"],
    )
    assert response.status_code == 400, response.text
    assert response.json()["details"]["field"] == "pickup_at"

    unchanged = await client.get(f"/api/v1/bookings/{booking['id']}", headers=headers["customer"])
    assert unchanged.json()["total_amount"] == "49.91"


async def test_cancellation_quote_and_cancel(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    booking = await _book(client, headers)

    quote = await client.get(
        f"/api/v1/bookings/{booking['id']}/cancellation-quote", headers=headers["customer"]
    )
    assert quote.status_code == 200
    assert quote.json()["tier"] == "full"
    assert quote.json()["refund_amount"] == "39.91"

    cancelled = await client.post(
        f"/api/v1/bookings/{booking['id']}/cancel",
        json={"reason": "customer_request", "notes": "plans changed"},
        headers=headers["customer"],
    )
    assert cancelled.status_code == 200, cancelled.text
    body = cancelled.json()
    assert body["status"] == "CANCELLED"
    assert body["cancellation"]["refund_amount"] == "39.91"

    blocked = await client.post(
        f"/api/v1/bookings/{booking['id']}/modify",
        json={"special_instructions": "too late"},
        headers=headers["customer"],
    )
    assert blocked.status_code == 409


async def test_bookings_are_private(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    booking = await _book(client, headers)

    response = await client.get(f"/api/v1/bookings/{booking['id']}", headers=headers["other"])
    assert response.status_code == 403
    assert (await client.get("/api/v1/bookings", headers=headers["other"])).json() == []

    staff = await client.get("/api/v1/bookings", headers=headers["dispatcher"])
    assert [item["id"] for item in staff.json()] == [booking["id"]]
