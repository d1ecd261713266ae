"""Tests for the booking state machine."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select

from app.core.errors import (
    InvalidTransitionError,
    PermissionDeniedError,
    PolicyViolationError,
    QuoteLockedError,
    ValidationError,
)
from app.core.settings import BookingPolicySettings
from app.db.session import get_sessionmaker
from app.integrations.maps_client import DistanceResult, Location
from app.models import (
    Booking,
    BookingStatus,
    PricingRuleType,
    Quote,
    ServiceType,
    User,
    UserRole,
    UserStatus,
)
from app.services import booking_service, pricing_rule_service, quote_service
from app.services.booking_service import BookingChanges
from app.services.cancellation_policy import CancellationPolicy
from app.services.enhancement_service import EnhancementSelection
from app.services.pricing_service import TripRequest

pytestmark = pytest.mark.asyncio

LA = ZoneInfo("America/Los_Angeles")
NOW = datetime(2030, 5, 1, 12, 0, tzinfo=UTC)
# Friday 2030-05-10 19:00 in Los Angeles
PICKUP_UTC = datetime(2030, 5, 11, 2, 0, tzinfo=UTC)
MONDAY_MORNING = datetime(2030, 5, 13, 9, 0, tzinfo=LA)
TEN_MILES = DistanceResult(meters=Decimal("16093.44"), seconds=1200)

POLICY = CancellationPolicy(emergency_reasons=frozenset({"medical_emergency"}))


class StubOracle:
    def __init__(self) -> None:
        self.calls = 0

    async def distance(self, origin: Location, destination: Location) -> DistanceResult:
        self.calls += 1
        await asyncio.sleep(0)
        return TEN_MILES


def _trip() -> TripRequest:
    return TripRequest(
        service_type=ServiceType.ONE_WAY,
        pickup=Location("100 Main St", 34.05, -118.25),
        dropoff=Location("200 Ocean Ave", 34.01, -118.49),
        pickup_at=datetime(2030, 5, 10, 19, 0, tzinfo=LA),
    )


def _user(key: str, role: UserRole) -> User:
    return User(
        email=f"{key}@example.com",
        hashed_password="x",
        first_name=key.title(),
        last_name="Tester",
        role=role,
        status=UserStatus.ACTIVE,
    )


async def _seed(session) -> dict[str, User]:
    for name, rule_type, calculation, conditions in (
        ("Base fare", PricingRuleType.BASE_RATE, {"type": "fixed", "value": "20"}, None),
        ("Mileage", PricingRuleType.DISTANCE_MULTIPLIER, {"type": "per_mile", "value": "2"}, None),
        (
            "Friday evening",
            PricingRuleType.SURCHARGE,
            {"type": "percentage", "value": "15"},
            {
                "day_of_week": {"operator": "equals", "value": 4},
                "hour": {"operator": "greater_than", "value": 17},
            },
        ),
    ):
        await pricing_rule_service.create_rule(
            session,
            name=name,
            rule_type=rule_type,
            service_type=ServiceType.ONE_WAY,
            calculation=calculation,
            conditions=conditions,
        )
    users = {
        "owner": _user("owner", UserRole.CUSTOMER),
        "stranger": _user("stranger", UserRole.CUSTOMER),
        "dispatcher": _user("dispatcher", UserRole.DISPATCHER),
    }
    session.add_all(users.values())
    await session.commit()
    return users


async def _book(session, owner: User, **kwargs) -> Booking:
    quote = await quote_service.create_quote(
        session, trip=_trip(), oracle=StubOracle(), user=owner, now=NOW
    )
    return await booking_service.create_booking(
        session, quote_id=quote.id, actor=owner, now=NOW, **kwargs
    )


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def test_create_booking_locks_quote(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])

    assert booking.status is BookingStatus.PENDING
    assert booking.total_amount == Decimal("49.91")
    assert booking.booking_reference.startswith("SR-")
    assert booking.quote.is_locked
    assert booking.modification_count == 0


async def test_create_booking_prices_enhancements_and_gratuity(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(
        db_session,
        users["owner"],
        enhancements=EnhancementSelection(meet_and_greet=True),
        gratuity_percentage=Decimal("20"),
    )

    assert booking.enhancement_total == Decimal("15.00")
    # 20% of the 46.00 subtotal
    assert booking.gratuity_amount == Decimal("9.20")
    assert booking.total_amount == Decimal("74.11")
    assert booking.enhancements["meet_and_greet"] is True


async def test_quote_can_back_only_one_booking(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])

    with pytest.raises(QuoteLockedError):
        await booking_service.create_booking(
            db_session, quote_id=booking.quote_id, actor=users["owner"], now=NOW
        )
    assert await _count(db_session, Booking) == 1


async def test_gratuity_percentage_and_amount_are_exclusive(db_session) -> None:
    users = await _seed(db_session)
    quote = await quote_service.create_quote(
        db_session, trip=_trip(), oracle=StubOracle(), user=users["owner"], now=NOW
    )
    with pytest.raises(ValidationError):
        await booking_service.create_booking(
            db_session,
            quote_id=quote.id,
            actor=users["owner"],
            gratuity_percentage=Decimal("10"),
            gratuity_amount=Decimal("5"),
            now=NOW,
        )
    refreshed = await quote_service.get_quote(db_session, quote.id, now=NOW)
    assert not refreshed.is_locked


async def test_full_lifecycle(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    dispatcher = users["dispatcher"]
    initial_version = booking.version

    confirmed = await booking_service.confirm_booking(
        db_session, booking_id=booking.id, actor=users["owner"], now=NOW
    )
    assert confirmed.status is BookingStatus.CONFIRMED
    assert confirmed.confirmation_number.startswith("CNF-")
    assert len(confirmed.confirmation_number) == 10

    started = await booking_service.start_booking(
        db_session, booking_id=booking.id, actor=dispatcher, now=PICKUP_UTC
    )
    assert started.status is BookingStatus.IN_PROGRESS

    completed = await booking_service.complete_booking(
        db_session, booking_id=booking.id, actor=dispatcher, now=PICKUP_UTC + timedelta(hours=1)
    )
    assert completed.status is BookingStatus.COMPLETED
    assert completed.version == initial_version + 3

    with pytest.raises(InvalidTransitionError):
        await booking_service.cancel_booking(
            db_session,
            booking_id=booking.id,
            actor=dispatcher,
            reason="customer_request",
            now=PICKUP_UTC + timedelta(hours=2),
            policy=POLICY,
        )


async def test_pending_booking_cannot_complete(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])

    with pytest.raises(InvalidTransitionError) as excinfo:
        await booking_service.complete_booking(
            db_session, booking_id=booking.id, actor=users["dispatcher"], now=NOW
        )
    assert excinfo.value.details == {"current": "PENDING", "target": "COMPLETED"}


async def test_other_customer_cannot_touch_booking(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])

    with pytest.raises(PermissionDeniedError):
        await booking_service.confirm_booking(
            db_session, booking_id=booking.id, actor=users["stranger"], now=NOW
        )
    listed = await booking_service.list_bookings(db_session, actor=users["stranger"])
    assert listed == []
    assert len(await booking_service.list_bookings(db_session, actor=users["dispatcher"])) == 1


async def test_modify_reprices_and_logs_history(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    original_quote_id = booking.quote_id

    updated, modification = await booking_service.modify_booking(
        db_session,
        booking_id=booking.id,
        actor=users["owner"],
        changes=BookingChanges(trip={"pickup_at": MONDAY_MORNING}),
        oracle=StubOracle(),
        reason="meeting moved",
        now=NOW + timedelta(hours=1),
    )

    assert updated.total_amount == Decimal("43.40")
    assert updated.booking_reference == booking.booking_reference
    assert updated.quote_id != original_quote_id
    assert updated.quote.is_locked
    assert updated.modification_count == 1
    assert modification.sequence == 1
    assert modification.previous_quote_id == original_quote_id
    assert modification.previous_total == Decimal("49.91")
    assert modification.new_total == Decimal("43.40")
    assert modification.price_difference == Decimal("-6.51")
    assert modification.reason == "meeting moved"

    history = await booking_service.list_modifications(
        db_session, booking.id, actor=users["owner"]
    )
    assert [entry.sequence for entry in history] == [1]


async def test_modify_inside_cutoff_changes_nothing(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    quotes_before = await _count(db_session, Quote)

    with pytest.raises(PolicyViolationError):
        await booking_service.modify_booking(
            db_session,
            booking_id=booking.id,
            actor=users["owner"],
            changes=BookingChanges(trip={"pickup_at": MONDAY_MORNING}),
            oracle=StubOracle(),
            now=PICKUP_UTC - timedelta(hours=1),
        )

    unchanged = await booking_service.get_booking(db_session, booking.id, actor=users["owner"])
    assert unchanged.total_amount == Decimal("49.91")
    assert unchanged.quote_id == booking.quote_id
    assert unchanged.modification_count == 0
    assert await _count(db_session, Quote) == quotes_before


async def test_modification_limit(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    policy = BookingPolicySettings(max_modifications=1)

    await booking_service.modify_booking(
        db_session,
        booking_id=booking.id,
        actor=users["owner"],
        changes=BookingChanges(special_instructions="Child seat by the door"),
        oracle=StubOracle(),
        now=NOW,
        policy=policy,
    )
    with pytest.raises(PolicyViolationError) as excinfo:
        await booking_service.modify_booking(
            db_session,
            booking_id=booking.id,
            actor=users["owner"],
            changes=BookingChanges(special_instructions="Never mind"),
            oracle=StubOracle(),
            now=NOW,
            policy=policy,
        )
    assert excinfo.value.details["modification_count"] == 1


async def test_cancelled_booking_cannot_be_modified(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    await booking_service.cancel_booking(
        db_session,
        booking_id=booking.id,
        actor=users["owner"],
        reason="customer_request",
        now=NOW,
        policy=POLICY,
    )
    with pytest.raises(InvalidTransitionError):
        await booking_service.modify_booking(
            db_session,
            booking_id=booking.id,
            actor=users["owner"],
            changes=BookingChanges(special_instructions="Too late"),
            oracle=StubOracle(),
            now=NOW,
        )


@pytest.mark.parametrize(
    "changes",
    [BookingChanges(), BookingChanges(trip={"passenger_count": 3})],
)
async def test_modify_rejects_empty_or_unknown_changes(db_session, changes) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    with pytest.raises(ValidationError):
        await booking_service.modify_booking(
            db_session,
            booking_id=booking.id,
            actor=users["owner"],
            changes=changes,
            oracle=StubOracle(),
            now=NOW,
        )


async def test_preview_does_not_persist(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    quotes_before = await _count(db_session, Quote)

    preview = await booking_service.preview_modification(
        db_session,
        booking_id=booking.id,
        actor=users["owner"],
        changes=BookingChanges(trip={"pickup_at": MONDAY_MORNING}),
        oracle=StubOracle(),
        now=NOW,
    )

    assert preview.price.total == Decimal("43.40")
    assert preview.to_dict()["price_difference"] == "-6.51"
    assert await _count(db_session, Quote) == quotes_before
    current = await booking_service.get_booking(db_session, booking.id, actor=users["owner"])
    assert current.modification_count == 0


@pytest.mark.parametrize(
    ("before", "tier", "refund"),
    [
        (timedelta(hours=48), "full", "39.91"),
        (timedelta(hours=5), "partial", "14.96"),
        (timedelta(minutes=30), "late", "0.00"),
    ],
)
async def test_cancellation_quote_tiers(db_session, before, tier, refund) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])

    outcome = await booking_service.cancellation_quote(
        db_session,
        booking_id=booking.id,
        actor=users["owner"],
        now=PICKUP_UTC - before,
        policy=POLICY,
    )
    assert outcome.tier == tier
    assert outcome.refund_amount == Decimal(refund)


async def test_cancel_records_outcome(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])

    cancelled = await booking_service.cancel_booking(
        db_session,
        booking_id=booking.id,
        actor=users["owner"],
        reason="customer_request",
        notes="plans changed",
        now=PICKUP_UTC - timedelta(hours=48),
        policy=POLICY,
    )

    assert cancelled.status is BookingStatus.CANCELLED
    assert cancelled.cancellation.refund_amount == Decimal("39.91")
    assert cancelled.cancellation.cancellation_fee == Decimal("10.00")
    assert cancelled.cancellation.notes == "plans changed"

    with pytest.raises(InvalidTransitionError):
        await booking_service.cancel_booking(
            db_session,
            booking_id=booking.id,
            actor=users["owner"],
            reason="customer_request",
            now=NOW,
            policy=POLICY,
        )


async def test_cancel_requires_reason(db_session) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    with pytest.raises(ValidationError):
        await booking_service.cancel_booking(
            db_session, booking_id=booking.id, actor=users["owner"], reason="  ", now=NOW
        )


async def test_concurrent_modifications_are_serialized(db_session, db_url) -> None:
    users = await _seed(db_session)
    booking = await _book(db_session, users["owner"])
    owner_id = users["owner"].id
    sessionmaker = get_sessionmaker(db_url)

    async def modify(note: str):
        async with sessionmaker() as session:
            actor = await session.get(User, owner_id)
            return await booking_service.modify_booking(
                session,
                booking_id=booking.id,
                actor=actor,
                changes=BookingChanges(special_instructions=note),
                oracle=StubOracle(),
                now=NOW,
            )

    results = await asyncio.gather(modify("first"), modify("second"))

    assert sorted(modification.sequence for _, modification in results) == [1, 2]
    final = await booking_service.get_booking(db_session, booking.id, actor=users["owner"])
    await db_session.refresh(final)
    assert final.modification_count == 2
