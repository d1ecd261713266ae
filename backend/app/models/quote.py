"""Quote model: an immutable, time-limited priced trip proposal."""
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, DateTime, Enum, Float, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import JSONB_TYPE, TimestampMixin
from app.models.pricing import ServiceType


class Quote(TimestampMixin, Base):
    """Persisted quote. Pricing columns are written once at creation.

    Only ``locked_at`` and ``superseded_at``/``superseded_by_id`` change
    afterwards; a changed input always produces a new row.
    """

    __tablename__ = "quotes"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    booking_reference: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    service_type: Mapped[ServiceType] = mapped_column(Enum(ServiceType), nullable=False)

    pickup_address: Mapped[str] = mapped_column(String(512), nullable=False)
    pickup_lat: Mapped[float] = mapped_column(Float, nullable=False)
    pickup_lng: Mapped[float] = mapped_column(Float, nullable=False)
    pickup_is_airport: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    dropoff_address: Mapped[str | None] = mapped_column(String(512))
    dropoff_lat: Mapped[float | None] = mapped_column(Float)
    dropoff_lng: Mapped[float | None] = mapped_column(Float)
    dropoff_is_airport: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    pickup_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    return_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2))

    distance_miles: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    inputs: Mapped[dict[str, Any]] = mapped_column(JSONB_TYPE, nullable=False)
    breakdown: Mapped[dict[str, Any]] = mapped_column(JSONB_TYPE, nullable=False)
    trail: Mapped[list[dict[str, Any]]] = mapped_column(JSONB_TYPE, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    quoted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    superseded_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("quotes.id", ondelete="SET NULL")
    )

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None
