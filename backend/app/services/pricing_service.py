"""Quote composer: turns a trip request into a priced breakdown."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import OutOfServiceAreaError, ValidationError
from app.core.settings import QuoteSettings, get_quote_settings
from app.integrations.maps_client import (
    DistanceOracle,
    DistanceResult,
    Location,
    haversine_miles,
)
from app.models.pricing import PricingRuleType, ServiceType
from app.services import calendar_service, pricing_rule_service
from app.services.calendar_service import CalendarSnapshot
from app.services.rule_engine import (
    EvaluationContext,
    Percentage,
    RuleSnapshot,
    TrailEntry,
    apply_rules,
    coerce_utc,
    step,
    to_money,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
REQUIRED_TRIP_FIELDS = frozenset({"service_type", "pickup", "pickup_at"})
HOURS = Decimal("0.01")


@dataclass(slots=True)
class TripRequest:
    """Inputs a quote is composed from."""

    service_type: ServiceType
    pickup: Location
    pickup_at: datetime
    dropoff: Location | None = None
    return_at: datetime | None = None
    duration_hours: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "service_type": self.service_type.value,
            "pickup": self.pickup.to_dict(),
            "dropoff": self.dropoff.to_dict() if self.dropoff else None,
            "pickup_at": coerce_utc(self.pickup_at).isoformat(),
            "return_at": coerce_utc(self.return_at).isoformat() if self.return_at else None,
            "duration_hours": str(self.duration_hours) if self.duration_hours is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TripRequest":
        dropoff = data.get("dropoff")
        return_at = data.get("return_at")
        duration = data.get("duration_hours")
        return cls(
            service_type=ServiceType(data["service_type"]),
            pickup=Location(**data["pickup"]),
            dropoff=Location(**dropoff) if dropoff else None,
            pickup_at=_parse_instant(data["pickup_at"]),
            return_at=_parse_instant(return_at) if return_at else None,
            duration_hours=Decimal(str(duration)) if duration is not None else None,
        )

    def merged(self, changes: dict[str, Any]) -> "TripRequest":
        """Return a new request with ``changes`` applied over this one."""
        data = self.to_dict()
        for key, value in changes.items():
            if value is None and key in REQUIRED_TRIP_FIELDS:
                raise ValidationError(f"{key} cannot be cleared", field=key)
            if isinstance(value, Location):
                value = value.to_dict()
            elif isinstance(value, datetime):
                value = coerce_utc(value).isoformat()
            elif isinstance(value, ServiceType):
                value = value.value
            data[key] = value
        return TripRequest.from_dict(data)


def _parse_instant(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return coerce_utc(value)
    return coerce_utc(datetime.fromisoformat(value))


@dataclass(frozen=True, slots=True)
class CustomerFacts:
    is_returning_customer: bool = False
    is_corporate: bool = False


@dataclass(slots=True)
class PricingLine:
    """Individual component contributing to a quote."""

    description: str
    amount: Decimal
    rule_id: uuid.UUID | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "amount": _to_str(self.amount),
            "rule_id": str(self.rule_id) if self.rule_id else None,
        }


@dataclass(slots=True)
class QuoteBreakdown:
    """Aggregate pricing output for a trip."""

    base_rate: Decimal
    distance_charge: Decimal
    time_charge: Decimal
    surcharges: list[PricingLine]
    discounts: list[PricingLine]
    subtotal: Decimal
    tax_lines: list[PricingLine]
    tax_total: Decimal
    total: Decimal
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the breakdown to plain types for storage and responses."""
        return {
            "base_rate": _to_str(self.base_rate),
            "distance_charge": _to_str(self.distance_charge),
            "time_charge": _to_str(self.time_charge),
            "surcharges": [line.to_dict() for line in self.surcharges],
            "discounts": [line.to_dict() for line in self.discounts],
            "subtotal": _to_str(self.subtotal),
            "tax_lines": [line.to_dict() for line in self.tax_lines],
            "tax_total": _to_str(self.tax_total),
            "total": _to_str(self.total),
            "warnings": list(self.warnings),
        }


@dataclass(slots=True)
class ComposedQuote:
    trip: TripRequest
    distance: DistanceResult
    facts: dict[str, Any]
    breakdown: QuoteBreakdown
    trail: list[TrailEntry]
    quoted_at: datetime
    valid_until: datetime
    booking_reference: str


def _to_str(value: Decimal) -> str:
    return f"{to_money(value):.2f}"


def generate_booking_reference() -> str:
    return f"SR-{uuid.uuid4().hex[:8].upper()}"


def validate_trip(trip: TripRequest, settings: QuoteSettings, *, now: datetime) -> None:
    """Check service-specific required inputs before any pricing work."""
    pickup_at = coerce_utc(trip.pickup_at)
    if pickup_at <= coerce_utc(now):
        raise ValidationError("Pickup time must be in the future", field="pickup_at")

    if trip.service_type in (ServiceType.ONE_WAY, ServiceType.ROUNDTRIP):
        if trip.dropoff is None:
            raise ValidationError(
                f"{trip.service_type.value} trips require a dropoff location",
                field="dropoff",
            )
    if trip.service_type is ServiceType.ROUNDTRIP:
        if trip.return_at is None:
            raise ValidationError("Roundtrip requires a return time", field="return_at")
        if coerce_utc(trip.return_at) <= pickup_at:
            raise ValidationError(
                "Return time must be after pickup time", field="return_at"
            )
    if trip.service_type is ServiceType.HOURLY:
        hours = trip.duration_hours
        if hours is None:
            raise ValidationError("Hourly service requires duration_hours", field="duration_hours")
        if not settings.hourly_min_hours <= hours <= settings.hourly_max_hours:
            raise ValidationError(
                f"Hourly service must be between {settings.hourly_min_hours} "
                f"and {settings.hourly_max_hours} hours",
                field="duration_hours",
            )


def check_service_area(trip: TripRequest, settings: QuoteSettings) -> None:
    if settings.service_area_center is None or settings.service_area_radius_miles is None:
        return
    center_lat, center_lng = settings.service_area_center
    for label, location in (("pickup", trip.pickup), ("dropoff", trip.dropoff)):
        if location is None:
            continue
        miles = haversine_miles(center_lat, center_lng, location.lat, location.lng)
        if miles > settings.service_area_radius_miles:
            raise OutOfServiceAreaError(
                f"{label.capitalize()} location is outside the service area",
                field=label,
                distance_miles=round(miles, 1),
            )


def _hours_between(start: datetime, end: datetime) -> Decimal:
    seconds = Decimal(str((coerce_utc(end) - coerce_utc(start)).total_seconds()))
    return (seconds / Decimal(3600)).quantize(HOURS)


def build_facts(
    trip: TripRequest,
    distance: DistanceResult,
    calendar: CalendarSnapshot,
    customer: CustomerFacts,
    *,
    now: datetime,
) -> dict[str, Any]:
    """Flat fact mapping rule conditions are evaluated against."""
    local = calendar.local(trip.pickup_at)
    status = calendar.is_open(trip.pickup_at)
    holiday = calendar.holiday_on(trip.pickup_at)

    leg_miles = distance.miles
    leg_minutes = distance.minutes
    total_miles = leg_miles
    duration_minutes = leg_minutes
    duration_hours = (Decimal(leg_minutes) / Decimal(60)).quantize(HOURS)
    wait_hours = ZERO
    same_day_return = False

    if trip.service_type is ServiceType.ROUNDTRIP and trip.return_at is not None:
        total_miles = leg_miles * 2
        duration_minutes = leg_minutes * 2
        duration_hours = _hours_between(trip.pickup_at, trip.return_at)
        leg_hours = Decimal(leg_minutes) / Decimal(60)
        wait_hours = max(ZERO, (duration_hours - leg_hours)).quantize(HOURS)
        same_day_return = calendar.local(trip.return_at).date() == local.date()
    elif trip.service_type is ServiceType.HOURLY and trip.duration_hours is not None:
        duration_hours = trip.duration_hours
        duration_minutes = int(trip.duration_hours * 60)

    return {
        "service_type": trip.service_type.value,
        "day_of_week": local.weekday(),
        "hour": local.hour,
        "minute_of_day": local.hour * 60 + local.minute,
        "is_weekend": local.weekday() >= 5,
        "is_holiday": holiday is not None,
        "holiday_name": holiday.name if holiday else None,
        "is_business_hours": status.open,
        "distance_miles": leg_miles,
        "total_distance_miles": total_miles,
        "distance_meters": distance.meters,
        "duration_minutes": duration_minutes,
        "duration_hours": duration_hours,
        "wait_hours": wait_hours,
        "is_same_day_return": same_day_return,
        "is_airport": trip.pickup.is_airport
        or bool(trip.dropoff and trip.dropoff.is_airport),
        "hours_until_pickup": _hours_between(now, trip.pickup_at),
        "is_returning_customer": customer.is_returning_customer,
        "is_corporate": customer.is_corporate,
    }


def _lines(trail: tuple[TrailEntry, ...]) -> list[PricingLine]:
    return [PricingLine(entry.name, entry.delta, entry.rule_id) for entry in trail]


def price_trip(
    trip: TripRequest,
    distance: DistanceResult,
    *,
    rules: RuleSnapshot,
    calendar: CalendarSnapshot,
    customer: CustomerFacts,
    settings: QuoteSettings,
    now: datetime,
) -> tuple[QuoteBreakdown, list[TrailEntry], dict[str, Any]]:
    """Price a validated trip. Pure: no I/O and no clock reads."""
    facts = build_facts(trip, distance, calendar, customer, now=now)
    context = EvaluationContext(
        service_type=trip.service_type, evaluated_at=now, facts=facts
    )
    trail: list[TrailEntry] = []

    base = apply_rules(rules, context, PricingRuleType.BASE_RATE, ZERO)
    trail.extend(base.trail)
    distance_pass = apply_rules(rules, context, PricingRuleType.DISTANCE_MULTIPLIER, base.amount)
    trail.extend(distance_pass.trail)
    time_pass = apply_rules(rules, context, PricingRuleType.TIME_MULTIPLIER, distance_pass.amount)
    trail.extend(time_pass.trail)
    surcharge_pass = apply_rules(rules, context, PricingRuleType.SURCHARGE, time_pass.amount)
    trail.extend(surcharge_pass.trail)

    surcharges = _lines(surcharge_pass.trail)
    running = surcharge_pass.amount
    holiday = calendar.holiday_on(trip.pickup_at)
    if holiday is not None and holiday.surcharge_percentage:
        updated = step(running, Percentage(holiday.surcharge_percentage), facts)
        entry = TrailEntry(
            rule_id=None,
            name=f"Holiday: {holiday.name}",
            rule_type=PricingRuleType.SURCHARGE.value,
            delta=updated - running,
        )
        trail.append(entry)
        surcharges.append(PricingLine(entry.name, entry.delta))
        running = updated

    discount_pass = apply_rules(rules, context, PricingRuleType.DISCOUNT, running)
    trail.extend(discount_pass.trail)
    subtotal = discount_pass.amount

    tax_lines: list[PricingLine] = []
    if settings.sales_tax_percentage:
        tax_lines.append(
            PricingLine(
                f"Sales tax ({settings.sales_tax_percentage}%)",
                to_money(subtotal * settings.sales_tax_percentage / Decimal("100")),
            )
        )
    if facts["is_airport"] and settings.airport_fee:
        tax_lines.append(PricingLine("Airport fee", to_money(settings.airport_fee)))
    tax_total = sum((line.amount for line in tax_lines), ZERO)

    warnings: list[str] = []
    if distance.miles > settings.long_trip_warning_miles:
        warnings.append(
            f"Long trip: {distance.miles} miles exceeds {settings.long_trip_warning_miles} miles"
        )

    breakdown = QuoteBreakdown(
        base_rate=base.amount,
        distance_charge=distance_pass.amount - base.amount,
        time_charge=time_pass.amount - distance_pass.amount,
        surcharges=surcharges,
        discounts=_lines(discount_pass.trail),
        subtotal=subtotal,
        tax_lines=tax_lines,
        tax_total=to_money(tax_total),
        total=to_money(subtotal + tax_total),
        warnings=warnings,
    )
    return breakdown, trail, facts


async def _measure(trip: TripRequest, oracle: DistanceOracle) -> DistanceResult:
    if trip.dropoff is None:
        return DistanceResult(meters=Decimal("0"), seconds=0)
    return await oracle.distance(trip.pickup, trip.dropoff)


async def compose_quote(
    session: AsyncSession,
    *,
    trip: TripRequest,
    oracle: DistanceOracle,
    customer: CustomerFacts | None = None,
    booking_reference: str | None = None,
    now: datetime | None = None,
    settings: QuoteSettings | None = None,
) -> ComposedQuote:
    """Validate, measure and price a trip.

    The distance oracle is called once and rules are read once, so every
    pricing phase sees the same inputs.
    """
    settings = settings or get_quote_settings()
    now = coerce_utc(now or datetime.now(UTC))
    validate_trip(trip, settings, now=now)
    check_service_area(trip, settings)

    distance = await _measure(trip, oracle)
    if distance.miles > settings.max_trip_distance_miles:
        raise OutOfServiceAreaError(
            f"Trips are limited to {settings.max_trip_distance_miles} miles",
            distance_miles=str(distance.miles),
        )

    instants = [trip.pickup_at] + ([trip.return_at] if trip.return_at else [])
    calendar = await calendar_service.load_calendar(session, instants=instants)
    if settings.enforce_business_hours:
        status = calendar.is_open(trip.pickup_at)
        if not status.open:
            raise ValidationError(
                "Pickup time is outside business hours", reason=status.reason
            )

    rules = await pricing_rule_service.snapshot(session, at=now)
    breakdown, trail, facts = price_trip(
        trip,
        distance,
        rules=rules,
        calendar=calendar,
        customer=customer or CustomerFacts(),
        settings=settings,
        now=now,
    )
    reference = booking_reference or generate_booking_reference()
    logger.info(
        "Composed %s quote %s: %s miles, total %s",
        trip.service_type.value,
        reference,
        distance.miles,
        breakdown.total,
    )
    return ComposedQuote(
        trip=trip,
        distance=distance,
        facts=facts,
        breakdown=breakdown,
        trail=trail,
        quoted_at=now,
        valid_until=now + timedelta(minutes=settings.ttl_minutes),
        booking_reference=reference,
    )
