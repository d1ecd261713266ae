"""Quote request and response schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.integrations.maps_client import Location
from app.models.pricing import ServiceType
from app.services.pricing_service import TripRequest


class LocationIn(BaseModel):
    address: str = Field(min_length=1, max_length=512)
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    is_airport: bool = False

    def to_location(self) -> Location:
        return Location(
            address=self.address, lat=self.lat, lng=self.lng, is_airport=self.is_airport
        )


class QuoteCreate(BaseModel):
    """Trip inputs for a new quote."""

    service_type: ServiceType
    pickup: LocationIn
    dropoff: LocationIn | None = None
    pickup_at: datetime
    return_at: datetime | None = None
    duration_hours: Decimal | None = None

    def to_trip(self) -> TripRequest:
        return TripRequest(
            service_type=self.service_type,
            pickup=self.pickup.to_location(),
            dropoff=self.dropoff.to_location() if self.dropoff else None,
            pickup_at=self.pickup_at,
            return_at=self.return_at,
            duration_hours=self.duration_hours,
        )


class TripChanges(BaseModel):
    """Partial trip inputs; only the fields sent are changed."""

    service_type: ServiceType | None = None
    pickup: LocationIn | None = None
    dropoff: LocationIn | None = None
    pickup_at: datetime | None = None
    return_at: datetime | None = None
    duration_hours: Decimal | None = None

    def to_changes(self) -> dict[str, Any]:
        changes: dict[str, Any] = {}
        for key in self.model_fields_set:
            value = getattr(self, key)
            if isinstance(value, LocationIn):
                value = value.to_location()
            changes[key] = value
        return changes


class QuoteRead(BaseModel):
    id: uuid.UUID
    booking_reference: str
    service_type: ServiceType
    pickup_address: str
    pickup_lat: float
    pickup_lng: float
    pickup_is_airport: bool
    dropoff_address: str | None = None
    dropoff_lat: float | None = None
    dropoff_lng: float | None = None
    dropoff_is_airport: bool
    pickup_at: datetime
    return_at: datetime | None = None
    duration_hours: Decimal | None = None
    distance_miles: Decimal
    duration_minutes: int
    breakdown: dict[str, Any]
    trail: list[dict[str, Any]]
    subtotal: Decimal
    tax_total: Decimal
    total: Decimal
    quoted_at: datetime
    valid_until: datetime
    is_locked: bool
    locked_at: datetime | None = None
    superseded_by_id: uuid.UUID | None = None

    model_config = ConfigDict(from_attributes=True)
