"""Booking lifecycle schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.booking import BookingStatus
from app.models.pricing import ServiceType
from app.schemas.enhancement import EnhancementRequest
from app.schemas.quote import QuoteRead, TripChanges
from app.services.booking_service import BookingChanges


class BookingCreate(BaseModel):
    quote_id: uuid.UUID
    enhancements: EnhancementRequest | None = None
    gratuity_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    gratuity_amount: Decimal | None = Field(default=None, ge=0)
    special_instructions: str | None = Field(default=None, max_length=1024)


class BookingModify(BaseModel):
    trip: TripChanges | None = None
    enhancements: EnhancementRequest | None = None
    gratuity_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    gratuity_amount: Decimal | None = Field(default=None, ge=0)
    special_instructions: str | None = Field(default=None, max_length=1024)
    reason: str | None = Field(default=None, max_length=512)

    def to_changes(self) -> BookingChanges:
        return BookingChanges(
            trip=self.trip.to_changes() if self.trip else {},
            enhancements=self.enhancements.to_selection() if self.enhancements else None,
            gratuity_percentage=self.gratuity_percentage,
            gratuity_amount=self.gratuity_amount,
            special_instructions=self.special_instructions,
        )


class BookingCancel(BaseModel):
    reason: str = Field(min_length=1, max_length=120)
    notes: str | None = Field(default=None, max_length=1024)


class BookingModificationRead(BaseModel):
    id: uuid.UUID
    sequence: int
    previous_quote_id: uuid.UUID
    new_quote_id: uuid.UUID
    changes: dict[str, Any]
    previous_total: Decimal
    new_total: Decimal
    price_difference: Decimal
    reason: str | None = None
    modified_by_id: uuid.UUID | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingCancellationRead(BaseModel):
    reason: str
    notes: str | None = None
    hours_before_pickup: Decimal
    refund_percentage: Decimal
    refund_amount: Decimal
    cancellation_fee: Decimal
    trip_protection_applied: bool
    cancelled_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    quote_id: uuid.UUID
    booking_reference: str
    service_type: ServiceType
    pickup_at: datetime
    status: BookingStatus
    enhancements: dict[str, Any]
    enhancement_breakdown: list[dict[str, Any]]
    enhancement_total: Decimal
    gratuity_amount: Decimal
    total_amount: Decimal
    special_instructions: str | None = None
    confirmation_number: str | None = None
    confirmed_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    modification_count: int
    quote: QuoteRead
    cancellation: BookingCancellationRead | None = None

    model_config = ConfigDict(from_attributes=True)


class ModificationPreviewRead(BaseModel):
    current_total: Decimal
    new_total: Decimal
    price_difference: Decimal
    quote: dict[str, Any]
    enhancements: dict[str, Any]
    gratuity_amount: Decimal


class CancellationQuoteRead(BaseModel):
    hours_before_pickup: Decimal
    refund_percentage: Decimal
    cancellation_fee: Decimal
    refund_amount: Decimal
    trip_protection_applied: bool
    tier: str
