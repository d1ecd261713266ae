"""Schemas for business hours, holidays and open status."""

from __future__ import annotations

import uuid
from datetime import date as date_type
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

_HHMM = r"^([01]\d|2[0-3]):([0-5]\d)$"


class BusinessHoursUpdate(BaseModel):
    open_time: str = Field(default="09:00", pattern=_HHMM)
    close_time: str = Field(default="18:00", pattern=_HHMM)
    is_closed: bool = False
    timezone: str | None = None


class BusinessHoursEntry(BusinessHoursUpdate):
    day_of_week: int = Field(ge=0, le=6)


class BusinessHoursRead(BaseModel):
    id: uuid.UUID
    day_of_week: int
    open_time: str
    close_time: str
    is_closed: bool
    timezone: str

    model_config = ConfigDict(from_attributes=True)


class HolidayCreate(BaseModel):
    date: date_type
    name: str = Field(min_length=1, max_length=120)
    is_closed: bool = True
    open_time: str | None = Field(default=None, pattern=_HHMM)
    close_time: str | None = Field(default=None, pattern=_HHMM)
    surcharge_percentage: Decimal | None = Field(default=None, ge=0, le=100)


class HolidayUpdate(BaseModel):
    date: date_type | None = None
    name: str | None = Field(default=None, min_length=1, max_length=120)
    is_closed: bool | None = None
    open_time: str | None = Field(default=None, pattern=_HHMM)
    close_time: str | None = Field(default=None, pattern=_HHMM)
    surcharge_percentage: Decimal | None = Field(default=None, ge=0, le=100)


class HolidayRead(BaseModel):
    id: uuid.UUID
    date: date_type
    name: str
    is_closed: bool
    open_time: str | None = None
    close_time: str | None = None
    surcharge_percentage: Decimal | None = None

    model_config = ConfigDict(from_attributes=True)


class OpenStatusRead(BaseModel):
    is_open: bool
    reason: str | None = None
    holiday: str | None = None
