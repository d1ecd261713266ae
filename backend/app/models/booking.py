"""Booking models."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base
from app.models.mixins import JSONB_TYPE, TimestampMixin
from app.models.pricing import ServiceType

if TYPE_CHECKING:  # pragma: no cover
    from app.models.quote import Quote
    from app.models.user import User


class BookingStatus(str, enum.Enum):
    """Lifecycle states for bookings."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Booking(TimestampMixin, Base):
    """A customer's booking against a locked quote."""

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True, default=uuid.uuid4, unique=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quote_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quotes.id", ondelete="RESTRICT"), nullable=False
    )
    booking_reference: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    service_type: Mapped[ServiceType] = mapped_column(Enum(ServiceType), nullable=False)
    pickup_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )

    enhancements: Mapped[dict[str, Any]] = mapped_column(
        JSONB_TYPE, default=dict, nullable=False
    )
    enhancement_breakdown: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB_TYPE, default=list, nullable=False
    )
    enhancement_total: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), nullable=False
    )
    gratuity_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0.00"), nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    special_instructions: Mapped[str | None] = mapped_column(String(1024))

    confirmation_number: Mapped[str | None] = mapped_column(String(16), unique=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    modification_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    user: Mapped["User"] = relationship("User")
    quote: Mapped["Quote"] = relationship("Quote")
    modifications: Mapped[list["BookingModification"]] = relationship(
        "BookingModification",
        back_populates="booking",
        order_by="BookingModification.sequence",
        cascade="all, delete-orphan",
    )
    cancellation: Mapped["BookingCancellation | None"] = relationship(
        "BookingCancellation",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}


class BookingModification(Base):
    """Append-only log entry for an applied modification."""

    __tablename__ = "booking_modifications"
    __table_args__ = (UniqueConstraint("booking_id", "sequence"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_quote_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quotes.id", ondelete="RESTRICT"), nullable=False
    )
    new_quote_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quotes.id", ondelete="RESTRICT"), nullable=False
    )
    changes: Mapped[dict[str, Any]] = mapped_column(JSONB_TYPE, nullable=False)
    previous_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    new_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_difference: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(512))
    modified_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    booking: Mapped[Booking] = relationship("Booking", back_populates="modifications")


class BookingCancellation(Base):
    """Outcome of cancelling a booking."""

    __tablename__ = "booking_cancellations"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    reason: Mapped[str] = mapped_column(String(120), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1024))
    cancelled_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    hours_before_pickup: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    refund_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cancellation_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    trip_protection_applied: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    cancelled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    booking: Mapped[Booking] = relationship("Booking", back_populates="cancellation")
