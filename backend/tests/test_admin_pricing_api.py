"""API tests for pricing rule administration."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

RULE: dict[str, Any] = {
    "name": "Airport curbside",
    "rule_type": "surcharge",
    "service_type": "ONE_WAY",
    "priority": 20,
    "conditions": {"is_airport": {"operator": "equals", "value": True}},
    "calculation": {"type": "fixed", "value": "7.50"},
}


async def test_admin_creates_and_lists_rules(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]

    response = await client.post("/api/v1/admin/pricing-rules", json=RULE, headers=headers["admin"])
    assert response.status_code == 201, response.text
    created = response.json()
    assert created["name"] == "Airport curbside"
    assert created["rule_type"] == "surcharge"
    assert created["created_by_id"] == str(app_context["admin_id"])
    assert created["is_active"] is True

    listed = await client.get(
        "/api/v1/admin/pricing-rules",
        params={"service_type": "ONE_WAY"},
        headers=headers["dispatcher"],
    )
    assert listed.status_code == 200
    assert [rule["id"] for rule in listed.json()] == [created["id"]]

    other_service = await client.get(
        "/api/v1/admin/pricing-rules",
        params={"service_type": "HOURLY"},
        headers=headers["dispatcher"],
    )
    assert other_service.json() == []


async def test_customers_cannot_manage_rules(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]

    created = await client.post(
        "/api/v1/admin/pricing-rules", json=RULE, headers=headers["customer"]
    )
    assert created.status_code == 403
    listed = await client.get("/api/v1/admin/pricing-rules", headers=headers["customer"])
    assert listed.status_code == 403

    # dispatchers may read but not write
    dispatcher_write = await client.post(
        "/api/v1/admin/pricing-rules", json=RULE, headers=headers["dispatcher"]
    )
    assert dispatcher_write.status_code == 403


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"calculation": {"type": "per_furlong", "value": "1"}}, "calculation.type"),
        ({"calculation": {"type": "fixed", "value": "abc"}}, "calculation.value"),
        ({"conditions": {"hour": {"operator": "between", "value": [20, 5]}}}, "conditions.hour"),
        ({"priority": 500}, "priority"),
    ],
)
async def test_invalid_rule_is_rejected(app_context, headers, overrides, field) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.post(
        "/api/v1/admin/pricing-rules", json={**RULE, **overrides}, headers=headers["admin"]
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "RULE_CONFIGURATION_ERROR"
    assert body["details"]["field"] == field


async def test_update_and_deactivate_rule(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    created = (
        await client.post("/api/v1/admin/pricing-rules", json=RULE, headers=headers["admin"])
    ).json()

    patched = await client.patch(
        f"/api/v1/admin/pricing-rules/{created['id']}",
        json={"priority": 5, "name": "Airport curbside fee"},
        headers=headers["admin"],
    )
    assert patched.status_code == 200, patched.text
    assert patched.json()["priority"] == 5
    assert patched.json()["name"] == "Airport curbside fee"

    deactivated = await client.delete(
        f"/api/v1/admin/pricing-rules/{created['id']}", headers=headers["admin"]
    )
    assert deactivated.status_code == 200
    assert deactivated.json()["is_active"] is False

    active_only = await client.get(
        "/api/v1/admin/pricing-rules", params={"is_active": "true"}, headers=headers["admin"]
    )
    assert active_only.json() == []

    overview = await client.get("/api/v1/admin/pricing-rules/overview", headers=headers["admin"])
    assert overview.status_code == 200
    summary = overview.json()
    assert summary["total"] == 1
    assert summary["active"] == 0
    assert summary["by_type"]["surcharge"] == 1


async def test_unknown_rule_is_not_found(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.get(
        "/api/v1/admin/pricing-rules/00000000-0000-0000-0000-000000000000",
        headers=headers["admin"],
    )
    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"
