"""Specialized settings views for the pricing and booking services."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from app.core.config import get_settings


class QuoteSettings(BaseModel):
    """Slim view of quote composition configuration."""

    model_config = ConfigDict(frozen=True)

    ttl_minutes: int = 30
    sales_tax_percentage: Decimal = Decimal("8.5")
    airport_fee: Decimal = Decimal("15.00")
    hourly_min_hours: Decimal = Decimal("2")
    hourly_max_hours: Decimal = Decimal("8")
    max_trip_distance_miles: Decimal = Decimal("100")
    long_trip_warning_miles: Decimal = Decimal("80")
    service_area_center: tuple[float, float] | None = None
    service_area_radius_miles: float | None = None
    business_timezone: str = "America/Los_Angeles"
    enforce_business_hours: bool = False


class BookingPolicySettings(BaseModel):
    """Slim view of booking modification and cancellation configuration."""

    model_config = ConfigDict(frozen=True)

    modification_cutoff_hours: int = 2
    max_modifications: int = 3
    full_refund_hours: int = 24
    partial_refund_hours: int = 1
    partial_refund_percentage: Decimal = Decimal("50")
    cancellation_fee: Decimal = Decimal("10.00")
    late_cancellation_fee: Decimal = Decimal("25.00")
    trip_protection_min_hours: int = 1
    trip_protection_processing_fee: Decimal = Decimal("5.00")
    emergency_reasons: frozenset[str] = frozenset(
        {"medical_emergency", "weather", "vehicle_breakdown"}
    )


def get_quote_settings() -> QuoteSettings:
    """Return quote-specific configuration."""

    settings = get_settings()
    center = None
    if (
        settings.service_area_center_lat is not None
        and settings.service_area_center_lng is not None
    ):
        center = (settings.service_area_center_lat, settings.service_area_center_lng)
    return QuoteSettings(
        ttl_minutes=settings.quote_ttl_minutes,
        sales_tax_percentage=settings.sales_tax_percentage,
        airport_fee=settings.airport_fee,
        hourly_min_hours=settings.hourly_min_hours,
        hourly_max_hours=settings.hourly_max_hours,
        max_trip_distance_miles=settings.max_trip_distance_miles,
        long_trip_warning_miles=settings.long_trip_warning_miles,
        service_area_center=center,
        service_area_radius_miles=settings.service_area_radius_miles,
        business_timezone=settings.business_timezone,
        enforce_business_hours=settings.enforce_business_hours,
    )


def get_booking_policy_settings() -> BookingPolicySettings:
    """Return booking policy configuration."""

    settings = get_settings()
    return BookingPolicySettings(
        modification_cutoff_hours=settings.modification_cutoff_hours,
        max_modifications=settings.max_modifications,
        full_refund_hours=settings.cancellation_full_refund_hours,
        partial_refund_hours=settings.cancellation_partial_refund_hours,
        partial_refund_percentage=settings.cancellation_partial_refund_percentage,
        cancellation_fee=settings.cancellation_fee,
        late_cancellation_fee=settings.late_cancellation_fee,
        trip_protection_min_hours=settings.trip_protection_min_hours,
        trip_protection_processing_fee=settings.trip_protection_processing_fee,
        emergency_reasons=frozenset(settings.emergency_cancellation_reasons),
    )
