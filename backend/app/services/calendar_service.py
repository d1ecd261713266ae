"""Business hours and holiday calendar.

``CalendarSnapshot.is_open`` is a pure function of the instant and the
loaded tables, so a snapshot can be shared freely between concurrent
readers. The async helpers below load snapshots and manage the tables.

Weekdays follow ``date.weekday()``: 0 is Monday and 6 is Sunday.
"""
from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import Select, extract, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import NotFoundError, ValidationError
from app.models.calendar import BusinessHours, Holiday

logger = logging.getLogger(__name__)

DEFAULT_OPEN_TIME = "09:00"
DEFAULT_CLOSE_TIME = "18:00"
DAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str, *, field_name: str = "time") -> int:
    """Return minutes after midnight for an ``HH:MM`` string."""
    match = _HHMM.match(value or "")
    if match is None:
        raise ValidationError(
            f"Invalid {field_name} format. Use HH:MM", field=field_name, value=value
        )
    return int(match.group(1)) * 60 + int(match.group(2))


def time_within_range(minute_of_day: int, start: int, end: int) -> bool:
    """Inclusive minute-of-day comparison.

    When ``end`` is earlier than ``start`` the range wraps past midnight,
    so 22:00-02:00 contains both 23:30 and 01:15.
    """
    if end < start:
        return minute_of_day >= start or minute_of_day <= end
    return start <= minute_of_day <= end


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone {name!r}", field="timezone") from exc


@dataclass(frozen=True, slots=True)
class DayHours:
    day_of_week: int
    open_minute: int
    close_minute: int
    is_closed: bool
    timezone: str


@dataclass(frozen=True, slots=True)
class HolidayEntry:
    date: date
    name: str
    is_closed: bool
    open_minute: int | None
    close_minute: int | None
    surcharge_percentage: Decimal | None


@dataclass(frozen=True, slots=True)
class OpenStatus:
    open: bool
    reason: str | None = None
    holiday: HolidayEntry | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "is_open": self.open,
            "reason": self.reason,
            "holiday": self.holiday.name if self.holiday else None,
        }


def default_day(day_of_week: int, timezone: str) -> DayHours:
    return DayHours(
        day_of_week=day_of_week,
        open_minute=parse_hhmm(DEFAULT_OPEN_TIME),
        close_minute=parse_hhmm(DEFAULT_CLOSE_TIME),
        is_closed=False,
        timezone=timezone,
    )


@dataclass(frozen=True, slots=True)
class CalendarSnapshot:
    """Business hours for every weekday plus the holidays in scope."""

    timezone: str
    hours: dict[int, DayHours] = field(default_factory=dict)
    holidays: dict[date, HolidayEntry] = field(default_factory=dict)

    def local(self, instant: datetime) -> datetime:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        return instant.astimezone(_zone(self.timezone))

    def hours_for(self, day_of_week: int) -> DayHours:
        return self.hours.get(day_of_week) or default_day(day_of_week, self.timezone)

    def holiday_on(self, instant: datetime) -> HolidayEntry | None:
        return self.holidays.get(self.local(instant).date())

    def is_open(self, instant: datetime) -> OpenStatus:
        local = self.local(instant)
        minute = local.hour * 60 + local.minute
        holiday = self.holidays.get(local.date())
        if holiday is not None:
            if holiday.is_closed:
                return OpenStatus(False, f"holiday: {holiday.name}", holiday)
            if holiday.open_minute is not None and holiday.close_minute is not None:
                if time_within_range(minute, holiday.open_minute, holiday.close_minute):
                    return OpenStatus(True, None, holiday)
                return OpenStatus(False, f"outside {holiday.name} hours", holiday)

        day = self.hours_for(local.weekday())
        if day.is_closed:
            return OpenStatus(False, f"closed on {DAY_NAMES[day.day_of_week]}", holiday)
        if day.timezone != self.timezone:
            local = local.astimezone(_zone(day.timezone))
            minute = local.hour * 60 + local.minute
        if not time_within_range(minute, day.open_minute, day.close_minute):
            return OpenStatus(False, "outside business hours", holiday)
        return OpenStatus(True, None, holiday)


def _day_from_model(row: BusinessHours) -> DayHours:
    return DayHours(
        day_of_week=row.day_of_week,
        open_minute=parse_hhmm(row.open_time, field_name="open_time"),
        close_minute=parse_hhmm(row.close_time, field_name="close_time"),
        is_closed=row.is_closed,
        timezone=row.timezone,
    )


def _holiday_from_model(row: Holiday) -> HolidayEntry:
    return HolidayEntry(
        date=row.date,
        name=row.name,
        is_closed=row.is_closed,
        open_minute=parse_hhmm(row.open_time) if row.open_time else None,
        close_minute=parse_hhmm(row.close_time) if row.close_time else None,
        surcharge_percentage=(
            Decimal(row.surcharge_percentage)
            if row.surcharge_percentage is not None
            else None
        ),
    )


async def load_calendar(
    session: AsyncSession, *, instants: Iterable[datetime]
) -> CalendarSnapshot:
    """Load business hours and the holidays touching ``instants``."""
    settings = get_settings()
    tz = _zone(settings.business_timezone)
    dates: set[date] = set()
    for instant in instants:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=UTC)
        dates.add(instant.astimezone(tz).date())

    hours_rows = (await session.execute(select(BusinessHours))).scalars().all()
    holidays: dict[date, HolidayEntry] = {}
    if dates:
        holiday_rows = (
            await session.execute(select(Holiday).where(Holiday.date.in_(dates)))
        ).scalars().all()
        holidays = {row.date: _holiday_from_model(row) for row in holiday_rows}
    return CalendarSnapshot(
        timezone=settings.business_timezone,
        hours={row.day_of_week: _day_from_model(row) for row in hours_rows},
        holidays=holidays,
    )


async def is_open(session: AsyncSession, instant: datetime) -> OpenStatus:
    snapshot = await load_calendar(session, instants=[instant])
    return snapshot.is_open(instant)


# -- business hours administration -------------------------------------------


def _validate_hours(open_time: str, close_time: str) -> None:
    opens = parse_hhmm(open_time, field_name="open_time")
    closes = parse_hhmm(close_time, field_name="close_time")
    # same-day only; a close before open is rejected, never read as overnight
    if closes <= opens:
        raise ValidationError(
            "close_time must be later than open_time",
            open_time=open_time,
            close_time=close_time,
        )


async def list_business_hours(session: AsyncSession) -> list[BusinessHours]:
    """Return one record per weekday, creating defaults for missing days."""
    stmt: Select[tuple[BusinessHours]] = select(BusinessHours).order_by(
        BusinessHours.day_of_week.asc()
    )
    rows = list((await session.execute(stmt)).scalars().all())
    present = {row.day_of_week for row in rows}
    missing = [day for day in range(7) if day not in present]
    if not missing:
        return rows

    timezone = get_settings().business_timezone
    for day in missing:
        session.add(
            BusinessHours(
                day_of_week=day,
                open_time=DEFAULT_OPEN_TIME,
                close_time=DEFAULT_CLOSE_TIME,
                is_closed=False,
                timezone=timezone,
            )
        )
    try:
        await session.commit()
    except IntegrityError:
        # another request synthesized the defaults first
        await session.rollback()
    logger.info("Synthesized default business hours for days %s", missing)
    return list((await session.execute(stmt)).scalars().all())


async def upsert_business_hours(
    session: AsyncSession,
    *,
    day_of_week: int,
    open_time: str,
    close_time: str,
    is_closed: bool = False,
    timezone: str | None = None,
    commit: bool = True,
) -> BusinessHours:
    if not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 and 6", field="day_of_week")
    _validate_hours(open_time, close_time)
    timezone = timezone or get_settings().business_timezone
    _zone(timezone)

    existing = (
        await session.execute(
            select(BusinessHours).where(BusinessHours.day_of_week == day_of_week)
        )
    ).scalar_one_or_none()
    if existing is None:
        existing = BusinessHours(day_of_week=day_of_week)
        session.add(existing)
    existing.open_time = open_time
    existing.close_time = close_time
    existing.is_closed = is_closed
    existing.timezone = timezone
    if commit:
        await session.commit()
        await session.refresh(existing)
    return existing


async def bulk_upsert_business_hours(
    session: AsyncSession, *, entries: Iterable[dict[str, object]]
) -> list[BusinessHours]:
    """Apply several weekday updates atomically."""
    entries = list(entries)
    days = [entry["day_of_week"] for entry in entries]
    if len(days) != len(set(days)):
        raise ValidationError("Each day_of_week may appear only once")
    try:
        for entry in entries:
            await upsert_business_hours(session, commit=False, **entry)  # type: ignore[arg-type]
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return await list_business_hours(session)


# -- holidays ----------------------------------------------------------------


def _validate_holiday_hours(open_time: str | None, close_time: str | None) -> None:
    # override hours may wrap past midnight, e.g. 18:00-02:00 on New Year's Eve
    if (open_time is None) != (close_time is None):
        raise ValidationError("open_time and close_time must be provided together")
    if open_time is not None and close_time is not None:
        parse_hhmm(open_time, field_name="open_time")
        parse_hhmm(close_time, field_name="close_time")


async def list_holidays(
    session: AsyncSession, *, year: int | None = None
) -> list[Holiday]:
    stmt = select(Holiday).order_by(Holiday.date.asc())
    if year is not None:
        stmt = stmt.where(extract("year", Holiday.date) == year)
    return list((await session.execute(stmt)).scalars().all())


async def upcoming_holidays(
    session: AsyncSession, *, days: int = 30, today: date | None = None
) -> list[Holiday]:
    start = today or datetime.now(UTC).date()
    stmt = (
        select(Holiday)
        .where(Holiday.date >= start, Holiday.date <= start + timedelta(days=days))
        .order_by(Holiday.date.asc())
    )
    return list((await session.execute(stmt)).scalars().all())


async def get_holiday(session: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
    holiday = await session.get(Holiday, holiday_id)
    if holiday is None:
        raise NotFoundError("Holiday not found", holiday_id=str(holiday_id))
    return holiday


async def _ensure_date_free(
    session: AsyncSession, on: date, *, exclude: uuid.UUID | None = None
) -> None:
    stmt = select(Holiday).where(Holiday.date == on)
    existing = (await session.execute(stmt)).scalar_one_or_none()
    if existing is not None and existing.id != exclude:
        raise ValidationError(
            "A holiday already exists for this date", date=on.isoformat()
        )


async def create_holiday(
    session: AsyncSession,
    *,
    on: date,
    name: str,
    is_closed: bool = True,
    open_time: str | None = None,
    close_time: str | None = None,
    surcharge_percentage: Decimal | None = None,
) -> Holiday:
    _validate_holiday_hours(open_time, close_time)
    await _ensure_date_free(session, on)
    holiday = Holiday(
        date=on,
        name=name,
        is_closed=is_closed,
        open_time=open_time,
        close_time=close_time,
        surcharge_percentage=surcharge_percentage,
    )
    session.add(holiday)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError(
            "A holiday already exists for this date", date=on.isoformat()
        ) from exc
    await session.refresh(holiday)
    return holiday


async def update_holiday(
    session: AsyncSession, *, holiday: Holiday, changes: dict[str, object]
) -> Holiday:
    merged = {
        "date": holiday.date,
        "name": holiday.name,
        "is_closed": holiday.is_closed,
        "open_time": holiday.open_time,
        "close_time": holiday.close_time,
        "surcharge_percentage": holiday.surcharge_percentage,
    }
    merged.update(changes)
    _validate_holiday_hours(
        merged["open_time"], merged["close_time"]  # type: ignore[arg-type]
    )
    if merged["date"] != holiday.date:
        await _ensure_date_free(session, merged["date"], exclude=holiday.id)  # type: ignore[arg-type]
    for key, value in changes.items():
        setattr(holiday, key, value)
    await session.commit()
    await session.refresh(holiday)
    return holiday


async def delete_holiday(session: AsyncSession, *, holiday: Holiday) -> None:
    await session.delete(holiday)
    await session.commit()
