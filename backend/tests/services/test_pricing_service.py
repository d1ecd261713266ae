"""Tests for quote composition."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from app.core.errors import DistanceLookupError, OutOfServiceAreaError, ValidationError
from app.core.settings import QuoteSettings
from app.integrations.maps_client import DistanceResult, Location
from app.models import PricingRuleType, ServiceType
from app.services import pricing_rule_service, pricing_service
from app.services.calendar_service import CalendarSnapshot, HolidayEntry
from app.services.pricing_service import CustomerFacts, TripRequest, price_trip
from app.services.rule_engine import RuleSnapshot, build_rule

pytestmark = pytest.mark.asyncio

LA = ZoneInfo("America/Los_Angeles")
NOW = datetime(2030, 5, 1, 12, 0, tzinfo=UTC)
FRIDAY_EVENING = datetime(2030, 5, 10, 19, 0, tzinfo=LA)
TEN_MILES = DistanceResult(meters=Decimal("16093.44"), seconds=1200)

PICKUP = Location("100 Main St, Los Angeles", 34.05, -118.25)
DROPOFF = Location("200 Ocean Ave, Santa Monica", 34.01, -118.49)
LAX = Location("LAX Terminal 4", 33.94, -118.40, is_airport=True)

SETTINGS = QuoteSettings()

RULE_DEFINITIONS = [
    {
        "name": "Base fare",
        "rule_type": PricingRuleType.BASE_RATE,
        "priority": 10,
        "calculation": {"type": "fixed", "value": "20"},
    },
    {
        "name": "Mileage",
        "rule_type": PricingRuleType.DISTANCE_MULTIPLIER,
        "priority": 10,
        "calculation": {"type": "per_mile", "value": "2"},
    },
    {
        "name": "Friday evening",
        "rule_type": PricingRuleType.SURCHARGE,
        "priority": 10,
        "conditions": {
            "day_of_week": {"operator": "equals", "value": 4},
            "hour": {"operator": "greater_than", "value": 17},
        },
        "calculation": {"type": "percentage", "value": "15"},
    },
    {
        "name": "Corporate",
        "rule_type": PricingRuleType.DISCOUNT,
        "priority": 10,
        "conditions": {"is_corporate": {"operator": "equals", "value": True}},
        "calculation": {"type": "percentage", "value": "-10"},
    },
]


class StubOracle:
    def __init__(self, result: DistanceResult = TEN_MILES, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls = 0

    async def distance(self, origin: Location, destination: Location) -> DistanceResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


def _snapshot(service_type: ServiceType = ServiceType.ONE_WAY) -> RuleSnapshot:
    rules = [
        build_rule(id=uuid.uuid4(), service_type=service_type, **definition) for definition in RULE_DEFINITIONS
    ]
    return RuleSnapshot.of(rules, taken_at=NOW)


def _price(trip: TripRequest, distance: DistanceResult = TEN_MILES, **kwargs):
    params = {
        "rules": _snapshot(trip.service_type),
        "calendar": CalendarSnapshot(timezone="America/Los_Angeles"),
        "customer": CustomerFacts(),
        "settings": SETTINGS,
        "now": NOW,
        **kwargs,
    }
    return price_trip(trip, distance, **params)


def _one_way(**overrides) -> TripRequest:
    params = {
        "service_type": ServiceType.ONE_WAY,
        "pickup": PICKUP,
        "dropoff": DROPOFF,
        "pickup_at": FRIDAY_EVENING,
        **overrides,
    }
    return TripRequest(**params)


async def test_friday_evening_one_way_breakdown() -> None:
    breakdown, trail, facts = _price(_one_way())

    assert facts["day_of_week"] == 4
    assert facts["hour"] == 19
    assert breakdown.base_rate == Decimal("20.00")
    assert breakdown.distance_charge == Decimal("20.00")
    assert breakdown.time_charge == Decimal("0.00")
    assert [line.description for line in breakdown.surcharges] == ["Friday evening"]
    assert breakdown.subtotal == Decimal("46.00")
    assert [line.description for line in breakdown.tax_lines] == ["Sales tax (8.5%)"]
    assert breakdown.tax_total == Decimal("3.91")
    assert breakdown.total == Decimal("49.91")
    assert [entry.name for entry in trail] == ["Base fare", "Mileage", "Friday evening"]


async def test_pricing_is_repeatable() -> None:
    rules = _snapshot()
    first = _price(_one_way(), rules=rules)[0].to_dict()
    second = _price(_one_way(), rules=rules)[0].to_dict()
    assert first == second


@pytest.mark.parametrize("field", ["service_type", "pickup", "pickup_at"])
async def test_merge_rejects_clearing_required_field(field: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        _one_way().merged({field: None})
    assert excinfo.value.details["field"] == field


async def test_merge_can_clear_optional_field() -> None:
    merged = _one_way(return_at=FRIDAY_EVENING + timedelta(hours=4)).merged(
        {"return_at": None, "pickup": LAX}
    )
    assert merged.return_at is None
    assert merged.pickup == LAX
    assert merged.dropoff == DROPOFF


async def test_weekday_morning_skips_surcharge() -> None:
    breakdown, _, _ = _price(_one_way(pickup_at=datetime(2030, 5, 13, 9, 0, tzinfo=LA)))
    assert breakdown.surcharges == []
    assert breakdown.subtotal == Decimal("40.00")


async def test_roundtrip_charges_both_legs() -> None:
    trip = _one_way(
        service_type=ServiceType.ROUNDTRIP,
        pickup_at=datetime(2030, 5, 13, 9, 0, tzinfo=LA),
        return_at=datetime(2030, 5, 13, 13, 0, tzinfo=LA),
    )
    breakdown, _, facts = _price(trip)
    assert facts["total_distance_miles"] == Decimal("20.00")
    assert facts["is_same_day_return"] is True
    assert facts["duration_hours"] == Decimal("4.00")
    assert breakdown.subtotal == Decimal("60.00")


async def test_airport_trip_adds_airport_fee() -> None:
    breakdown, _, facts = _price(_one_way(dropoff=LAX))
    assert facts["is_airport"] is True
    assert [line.description for line in breakdown.tax_lines] == [
        "Sales tax (8.5%)",
        "Airport fee",
    ]
    assert breakdown.tax_total == Decimal("18.91")
    assert breakdown.total == Decimal("64.91")


async def test_holiday_surcharge_follows_rule_surcharges() -> None:
    calendar = CalendarSnapshot(
        timezone="America/Los_Angeles",
        holidays={
            date(2030, 5, 10): HolidayEntry(
                date=date(2030, 5, 10),
                name="Festival",
                is_closed=False,
                open_minute=None,
                close_minute=None,
                surcharge_percentage=Decimal("10"),
            )
        },
    )
    breakdown, trail, facts = _price(_one_way(), calendar=calendar)
    assert facts["is_holiday"] is True
    assert [line.description for line in breakdown.surcharges] == [
        "Friday evening",
        "Holiday: Festival",
    ]
    assert breakdown.subtotal == Decimal("50.60")
    assert trail[-1].rule_id is None


async def test_corporate_discount_applies_last() -> None:
    breakdown, _, _ = _price(_one_way(), customer=CustomerFacts(is_corporate=True))
    assert [line.amount for line in breakdown.discounts] == [Decimal("-4.60")]
    assert breakdown.subtotal == Decimal("41.40")


async def test_long_trip_warning() -> None:
    ninety_miles = DistanceResult(meters=Decimal("144840.96"), seconds=5400)
    breakdown, _, _ = _price(_one_way(), distance=ninety_miles)
    assert breakdown.warnings
    assert "90.00 miles" in breakdown.warnings[0]


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"pickup_at": NOW - timedelta(hours=1)}, "pickup_at"),
        ({"dropoff": None}, "dropoff"),
        ({"service_type": ServiceType.ROUNDTRIP}, "return_at"),
        (
            {
                "service_type": ServiceType.ROUNDTRIP,
                "return_at": FRIDAY_EVENING - timedelta(hours=1),
            },
            "return_at",
        ),
        ({"service_type": ServiceType.HOURLY, "dropoff": None}, "duration_hours"),
        (
            {
                "service_type": ServiceType.HOURLY,
                "dropoff": None,
                "duration_hours": Decimal("1"),
            },
            "duration_hours",
        ),
    ],
)
async def test_validate_trip_rejects_incomplete_requests(overrides: dict, field: str) -> None:
    with pytest.raises(ValidationError) as excinfo:
        pricing_service.validate_trip(_one_way(**overrides), SETTINGS, now=NOW)
    assert excinfo.value.details["field"] == field


async def test_service_area_radius_is_enforced() -> None:
    settings = QuoteSettings(service_area_center=(34.05, -118.25), service_area_radius_miles=5)
    trip = _one_way()
    with pytest.raises(OutOfServiceAreaError) as excinfo:
        pricing_service.check_service_area(trip, settings)
    assert excinfo.value.details["field"] == "dropoff"


async def _seed_rules(session, service_type: ServiceType = ServiceType.ONE_WAY) -> None:
    for definition in RULE_DEFINITIONS:
        await pricing_rule_service.create_rule(session, service_type=service_type, **definition)


async def test_compose_quote_measures_once_and_prices(db_session) -> None:
    await _seed_rules(db_session)
    oracle = StubOracle()

    composed = await pricing_service.compose_quote(
        db_session, trip=_one_way(), oracle=oracle, now=NOW, settings=SETTINGS
    )

    assert oracle.calls == 1
    assert composed.breakdown.total == Decimal("49.91")
    assert composed.valid_until == NOW + timedelta(minutes=30)
    assert composed.booking_reference.startswith("SR-")
    assert len(composed.booking_reference) == 11


async def test_compose_quote_keeps_given_reference(db_session) -> None:
    await _seed_rules(db_session)
    composed = await pricing_service.compose_quote(
        db_session,
        trip=_one_way(),
        oracle=StubOracle(),
        booking_reference="SR-ABCDEF12",
        now=NOW,
        settings=SETTINGS,
    )
    assert composed.booking_reference == "SR-ABCDEF12"


async def test_hourly_without_dropoff_skips_oracle(db_session) -> None:
    await pricing_rule_service.create_rule(
        db_session,
        name="Hourly charter",
        rule_type=PricingRuleType.TIME_MULTIPLIER,
        service_type=ServiceType.HOURLY,
        calculation={"type": "per_hour", "value": "75"},
    )
    oracle = StubOracle()
    trip = TripRequest(
        service_type=ServiceType.HOURLY,
        pickup=PICKUP,
        pickup_at=datetime(2030, 5, 13, 9, 0, tzinfo=LA),
        duration_hours=Decimal("3"),
    )

    composed = await pricing_service.compose_quote(
        db_session, trip=trip, oracle=oracle, now=NOW, settings=SETTINGS
    )

    assert oracle.calls == 0
    assert composed.breakdown.time_charge == Decimal("225.00")
    assert composed.breakdown.subtotal == Decimal("225.00")


async def test_trip_over_maximum_distance_is_rejected(db_session) -> None:
    far = DistanceResult(meters=Decimal("200000"), seconds=7200)
    with pytest.raises(OutOfServiceAreaError):
        await pricing_service.compose_quote(
            db_session, trip=_one_way(), oracle=StubOracle(far), now=NOW, settings=SETTINGS
        )


async def test_distance_failure_is_never_priced_as_zero(db_session) -> None:
    oracle = StubOracle(error=DistanceLookupError("Maps unavailable"))
    with pytest.raises(DistanceLookupError):
        await pricing_service.compose_quote(
            db_session, trip=_one_way(), oracle=oracle, now=NOW, settings=SETTINGS
        )


async def test_business_hours_enforcement(db_session) -> None:
    settings = QuoteSettings(enforce_business_hours=True)
    with pytest.raises(ValidationError):
        await pricing_service.compose_quote(
            db_session, trip=_one_way(), oracle=StubOracle(), now=NOW, settings=settings
        )


async def test_trip_request_merge_replaces_only_given_fields() -> None:
    trip = _one_way()
    later = datetime(2030, 5, 10, 21, 0, tzinfo=LA)
    merged = trip.merged({"pickup_at": later})
    assert merged.pickup_at == later
    assert merged.dropoff == trip.dropoff
    assert TripRequest.from_dict(trip.to_dict()) == trip
