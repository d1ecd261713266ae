"""Refund tiers applied when a booking is cancelled."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from app.core.settings import BookingPolicySettings, get_booking_policy_settings
from app.services.rule_engine import coerce_utc, to_money

ZERO = Decimal("0.00")
FULL = Decimal("100")


@dataclass(frozen=True, slots=True)
class CancellationOutcome:
    hours_before_pickup: Decimal
    refund_percentage: Decimal
    cancellation_fee: Decimal
    refund_amount: Decimal
    trip_protection_applied: bool
    tier: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "hours_before_pickup": f"{self.hours_before_pickup:.2f}",
            "refund_percentage": f"{self.refund_percentage:.2f}",
            "cancellation_fee": f"{self.cancellation_fee:.2f}",
            "refund_amount": f"{self.refund_amount:.2f}",
            "trip_protection_applied": self.trip_protection_applied,
            "tier": self.tier,
        }


@dataclass(frozen=True, slots=True)
class CancellationPolicy:
    full_refund_hours: int = 24
    partial_refund_hours: int = 1
    partial_refund_percentage: Decimal = Decimal("50")
    cancellation_fee: Decimal = Decimal("10.00")
    late_cancellation_fee: Decimal = Decimal("25.00")
    trip_protection_min_hours: int = 1
    trip_protection_processing_fee: Decimal = Decimal("5.00")
    emergency_reasons: frozenset[str] = frozenset()

    @classmethod
    def from_settings(cls, settings: BookingPolicySettings | None = None) -> "CancellationPolicy":
        settings = settings or get_booking_policy_settings()
        return cls(
            full_refund_hours=settings.full_refund_hours,
            partial_refund_hours=settings.partial_refund_hours,
            partial_refund_percentage=settings.partial_refund_percentage,
            cancellation_fee=settings.cancellation_fee,
            late_cancellation_fee=settings.late_cancellation_fee,
            trip_protection_min_hours=settings.trip_protection_min_hours,
            trip_protection_processing_fee=settings.trip_protection_processing_fee,
            emergency_reasons=settings.emergency_reasons,
        )

    def evaluate(
        self,
        *,
        total: Decimal,
        pickup_at: datetime,
        cancelled_at: datetime,
        reason: str,
        has_trip_protection: bool = False,
    ) -> CancellationOutcome:
        """Resolve the refund for a cancellation at ``cancelled_at``.

        Checked in order: emergency reason, trip protection, then the
        hours-before-pickup tiers.
        """
        seconds = (coerce_utc(pickup_at) - coerce_utc(cancelled_at)).total_seconds()
        hours = Decimal(str(seconds)) / Decimal(3600)

        if reason in self.emergency_reasons:
            return self._outcome(total, hours, FULL, ZERO, "emergency")
        if has_trip_protection and hours >= self.trip_protection_min_hours:
            return self._outcome(
                total,
                hours,
                FULL,
                self.trip_protection_processing_fee,
                "trip_protection",
                trip_protection=True,
            )
        if hours >= self.full_refund_hours:
            return self._outcome(total, hours, FULL, self.cancellation_fee, "full")
        if hours >= self.partial_refund_hours:
            return self._outcome(
                total, hours, self.partial_refund_percentage, self.cancellation_fee, "partial"
            )
        return self._outcome(total, hours, ZERO, self.late_cancellation_fee, "late")

    @staticmethod
    def _outcome(
        total: Decimal,
        hours: Decimal,
        percentage: Decimal,
        fee: Decimal,
        tier: str,
        *,
        trip_protection: bool = False,
    ) -> CancellationOutcome:
        gross = Decimal(total) * percentage / FULL
        refund = max(ZERO, to_money(gross - fee))
        return CancellationOutcome(
            hours_before_pickup=to_money(hours),
            refund_percentage=to_money(percentage),
            cancellation_fee=to_money(fee),
            refund_amount=refund,
            trip_protection_applied=trip_protection,
            tier=tier,
        )
