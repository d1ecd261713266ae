"""Business hours and holiday administration."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Response, status

from app.api.deps import AdminUser, DbSession, StaffUser
from app.schemas.calendar import (
    BusinessHoursEntry,
    BusinessHoursRead,
    BusinessHoursUpdate,
    HolidayCreate,
    HolidayRead,
    HolidayUpdate,
)
from app.services import audit_service, calendar_service

router = APIRouter()


@router.get(
    "/business-hours",
    response_model=list[BusinessHoursRead],
    summary="Weekly business hours",
)
async def list_business_hours(session: DbSession, _: StaffUser) -> list[BusinessHoursRead]:
    rows = await calendar_service.list_business_hours(session)
    return [BusinessHoursRead.model_validate(row) for row in rows]


@router.put(
    "/business-hours",
    response_model=list[BusinessHoursRead],
    summary="Replace several weekdays at once",
)
async def bulk_update_business_hours(
    payload: list[BusinessHoursEntry],
    session: DbSession,
    current_user: AdminUser,
) -> list[BusinessHoursRead]:
    rows = await calendar_service.bulk_upsert_business_hours(
        session, entries=[entry.model_dump() for entry in payload]
    )
    await audit_service.record_event(
        session,
        user_id=current_user.id,
        event_type="calendar.business_hours.updated",
        description="Business hours updated",
        payload={"days": sorted(entry.day_of_week for entry in payload)},
        commit=True,
    )
    return [BusinessHoursRead.model_validate(row) for row in rows]


@router.put(
    "/business-hours/{day_of_week}",
    response_model=BusinessHoursRead,
    summary="Set hours for one weekday",
)
async def update_business_hours(
    day_of_week: int,
    payload: BusinessHoursUpdate,
    session: DbSession,
    current_user: AdminUser,
) -> BusinessHoursRead:
    row = await calendar_service.upsert_business_hours(
        session, day_of_week=day_of_week, **payload.model_dump()
    )
    await audit_service.record_event(
        session,
        user_id=current_user.id,
        event_type="calendar.business_hours.updated",
        description="Business hours updated",
        payload={"days": [day_of_week]},
        commit=True,
    )
    return BusinessHoursRead.model_validate(row)


@router.get("/holidays", response_model=list[HolidayRead], summary="List holidays")
async def list_holidays(
    session: DbSession,
    _: StaffUser,
    year: int | None = None,
    upcoming_days: int | None = None,
) -> list[HolidayRead]:
    if upcoming_days is not None:
        rows = await calendar_service.upcoming_holidays(session, days=upcoming_days)
    else:
        rows = await calendar_service.list_holidays(session, year=year)
    return [HolidayRead.model_validate(row) for row in rows]


@router.post(
    "/holidays",
    response_model=HolidayRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create holiday",
)
async def create_holiday(
    payload: HolidayCreate,
    session: DbSession,
    current_user: AdminUser,
) -> HolidayRead:
    data = payload.model_dump()
    holiday = await calendar_service.create_holiday(session, on=data.pop("date"), **data)
    await audit_service.record_event(
        session,
        user_id=current_user.id,
        event_type="calendar.holiday.created",
        description=f"Holiday {holiday.name} created",
        payload={"holiday_id": str(holiday.id), "date": holiday.date.isoformat()},
        commit=True,
    )
    return HolidayRead.model_validate(holiday)


@router.patch("/holidays/{holiday_id}", response_model=HolidayRead, summary="Update holiday")
async def update_holiday(
    holiday_id: uuid.UUID,
    payload: HolidayUpdate,
    session: DbSession,
    current_user: AdminUser,
) -> HolidayRead:
    holiday = await calendar_service.get_holiday(session, holiday_id)
    updated = await calendar_service.update_holiday(
        session, holiday=holiday, changes=payload.model_dump(exclude_unset=True)
    )
    await audit_service.record_event(
        session,
        user_id=current_user.id,
        event_type="calendar.holiday.updated",
        description=f"Holiday {updated.name} updated",
        payload={"holiday_id": str(updated.id)},
        commit=True,
    )
    return HolidayRead.model_validate(updated)


@router.delete(
    "/holidays/{holiday_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete holiday",
)
async def delete_holiday(
    holiday_id: uuid.UUID,
    session: DbSession,
    current_user: AdminUser,
) -> Response:
    holiday = await calendar_service.get_holiday(session, holiday_id)
    name = holiday.name
    await calendar_service.delete_holiday(session, holiday=holiday)
    await audit_service.record_event(
        session,
        user_id=current_user.id,
        event_type="calendar.holiday.deleted",
        description=f"Holiday {name} deleted",
        payload={"holiday_id": str(holiday_id)},
        commit=True,
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
