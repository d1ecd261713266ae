"""API tests for business hours and holiday administration."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.db.session import get_sessionmaker
from app.models import AuditEvent

pytestmark = pytest.mark.asyncio


async def _event_types(db_url: str) -> list[str]:
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        result = await session.execute(select(AuditEvent.event_type))
        return list(result.scalars().all())


async def test_business_hours_defaults_and_update(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]

    listed = await client.get("/api/v1/admin/business-hours", headers=headers["dispatcher"])
    assert listed.status_code == 200
    assert len(listed.json()) == 7

    response = await client.put(
        "/api/v1/admin/business-hours/0",
        json={"open_time": "06:00", "close_time": "22:00"},
        headers=headers["admin"],
    )
    assert response.status_code == 200, response.text
    assert response.json()["open_time"] == "06:00"

    status = await client.get(
        "/api/v1/calendar/status", params={"at": "2030-05-13T07:00:00-07:00"}
    )
    assert status.json()["is_open"] is True
    assert "calendar.business_hours.updated" in await _event_types(app_context["db_url"])


async def test_bulk_update_closes_sunday(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.put(
        "/api/v1/admin/business-hours",
        json=[
            {"day_of_week": 5, "open_time": "10:00", "close_time": "16:00"},
            {"day_of_week": 6, "is_closed": True},
        ],
        headers=headers["admin"],
    )
    assert response.status_code == 200, response.text
    rows = {row["day_of_week"]: row for row in response.json()}
    assert len(rows) == 7
    assert rows[5]["open_time"] == "10:00"
    assert rows[6]["is_closed"] is True

    status = await client.get(
        "/api/v1/calendar/status", params={"at": "2030-05-12T12:00:00-07:00"}
    )
    assert status.json() == {"is_open": False, "reason": "closed on Sunday", "holiday": None}


async def test_malformed_hours_are_rejected(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.put(
        "/api/v1/admin/business-hours/1",
        json={"open_time": "9am", "close_time": "17:00"},
        headers=headers["admin"],
    )
    assert response.status_code == 422

    inverted = await client.put(
        "/api/v1/admin/business-hours/1",
        json={"open_time": "18:00", "close_time": "09:00"},
        headers=headers["admin"],
    )
    assert inverted.status_code == 400


async def test_dispatcher_cannot_change_hours(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]
    response = await client.put(
        "/api/v1/admin/business-hours/0",
        json={"open_time": "06:00", "close_time": "22:00"},
        headers=headers["dispatcher"],
    )
    assert response.status_code == 403


async def test_holiday_crud(app_context, headers) -> None:
    client: AsyncClient = app_context["client"]

    created = await client.post(
        "/api/v1/admin/holidays",
        json={"date": "2030-12-25", "name": "Christmas", "surcharge_percentage": "20"},
        headers=headers["admin"],
    )
    assert created.status_code == 201, created.text
    holiday = created.json()
    assert holiday["date"] == "2030-12-25"
    assert holiday["is_closed"] is True

    duplicate = await client.post(
        "/api/v1/admin/holidays",
        json={"date": "2030-12-25", "name": "Christmas Day"},
        headers=headers["admin"],
    )
    assert duplicate.status_code == 400

    status = await client.get(
        "/api/v1/calendar/status", params={"at": "2030-12-25T12:00:00-08:00"}
    )
    assert status.json()["holiday"] == "Christmas"
    assert status.json()["is_open"] is False

    listed = await client.get(
        "/api/v1/admin/holidays", params={"year": 2030}, headers=headers["dispatcher"]
    )
    assert [item["name"] for item in listed.json()] == ["Christmas"]

    patched = await client.patch(
        f"/api/v1/admin/holidays/{holiday['id']}",
        json={"is_closed": False, "open_time": "10:00", "close_time": "14:00"},
        headers=headers["admin"],
    )
    assert patched.status_code == 200, patched.text
    assert patched.json()["open_time"] == "10:00"

    reopened = await client.get(
        "/api/v1/calendar/status", params={"at": "2030-12-25T12:00:00-08:00"}
    )
    assert reopened.json()["is_open"] is True

    deleted = await client.delete(
        f"/api/v1/admin/holidays/{holiday['id']}", headers=headers["admin"]
    )
    assert deleted.status_code == 204
    assert (
        await client.get("/api/v1/admin/holidays", headers=headers["admin"])
    ).json() == []

    events = await _event_types(app_context["db_url"])
    for event_type in (
        "calendar.holiday.created",
        "calendar.holiday.updated",
        "calendar.holiday.deleted",
    ):
        assert event_type in events
