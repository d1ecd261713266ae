"""Tests for cancellation refund tiers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from app.services.cancellation_policy import CancellationPolicy

PICKUP = datetime(2030, 5, 10, 18, 0, tzinfo=UTC)
TOTAL = Decimal("100.00")

POLICY = CancellationPolicy(emergency_reasons=frozenset({"medical_emergency"}))


@pytest.mark.parametrize(
    ("before", "tier", "percentage", "fee", "refund"),
    [
        (timedelta(hours=30), "full", "100.00", "10.00", "90.00"),
        (timedelta(hours=24), "full", "100.00", "10.00", "90.00"),
        (timedelta(hours=5), "partial", "50.00", "10.00", "40.00"),
        (timedelta(hours=1), "partial", "50.00", "10.00", "40.00"),
        (timedelta(minutes=30), "late", "0.00", "25.00", "0.00"),
    ],
)
def test_refund_tiers(
    before: timedelta, tier: str, percentage: str, fee: str, refund: str
) -> None:
    outcome = POLICY.evaluate(
        total=TOTAL,
        pickup_at=PICKUP,
        cancelled_at=PICKUP - before,
        reason="customer_request",
    )
    assert outcome.tier == tier
    assert outcome.refund_percentage == Decimal(percentage)
    assert outcome.cancellation_fee == Decimal(fee)
    assert outcome.refund_amount == Decimal(refund)


def test_emergency_reason_refunds_in_full_without_fee() -> None:
    outcome = POLICY.evaluate(
        total=TOTAL,
        pickup_at=PICKUP,
        cancelled_at=PICKUP - timedelta(minutes=10),
        reason="medical_emergency",
    )
    assert outcome.tier == "emergency"
    assert outcome.refund_amount == Decimal("100.00")
    assert outcome.cancellation_fee == Decimal("0.00")


def test_trip_protection_refunds_less_processing_fee() -> None:
    outcome = POLICY.evaluate(
        total=TOTAL,
        pickup_at=PICKUP,
        cancelled_at=PICKUP - timedelta(hours=2),
        reason="customer_request",
        has_trip_protection=True,
    )
    assert outcome.tier == "trip_protection"
    assert outcome.trip_protection_applied is True
    assert outcome.refund_amount == Decimal("95.00")


def test_trip_protection_does_not_cover_last_minute() -> None:
    outcome = POLICY.evaluate(
        total=TOTAL,
        pickup_at=PICKUP,
        cancelled_at=PICKUP - timedelta(minutes=20),
        reason="customer_request",
        has_trip_protection=True,
    )
    assert outcome.tier == "late"
    assert outcome.trip_protection_applied is False


def test_refund_never_negative() -> None:
    outcome = POLICY.evaluate(
        total=Decimal("8.00"),
        pickup_at=PICKUP,
        cancelled_at=PICKUP - timedelta(hours=48),
        reason="customer_request",
    )
    assert outcome.refund_amount == Decimal("0.00")


def test_cancelling_after_pickup_is_late() -> None:
    outcome = POLICY.evaluate(
        total=TOTAL,
        pickup_at=PICKUP,
        cancelled_at=PICKUP + timedelta(minutes=5),
        reason="customer_request",
    )
    assert outcome.tier == "late"
    assert outcome.hours_before_pickup < 0
