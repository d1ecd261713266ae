"""Pricing rule models."""

from __future__ import annotations

import datetime
import enum
import uuid
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.mixins import JSONB_TYPE, TimestampMixin


class ServiceType(str, enum.Enum):
    """Trip shapes, each with distinct required inputs."""

    ONE_WAY = "ONE_WAY"
    ROUNDTRIP = "ROUNDTRIP"
    HOURLY = "HOURLY"


class PricingRuleType(str, enum.Enum):
    """Pricing phases, listed in the order a quote applies them."""

    BASE_RATE = "base_rate"
    DISTANCE_MULTIPLIER = "distance_multiplier"
    TIME_MULTIPLIER = "time_multiplier"
    SURCHARGE = "surcharge"
    DISCOUNT = "discount"


class PricingRule(TimestampMixin, Base):
    """Administrator-managed pricing rule.

    ``conditions`` and ``calculation`` are stored as JSON but are only ever
    written after being parsed into typed form, so every stored rule is
    known to evaluate cleanly.
    """

    __tablename__ = "pricing_rules"
    __table_args__ = (
        CheckConstraint("priority >= 0 AND priority <= 100", name="ck_pricing_rules_priority"),
        Index("ix_pricing_rules_lookup", "service_type", "rule_type", "is_active"),
        Index("ix_pricing_rules_window", "effective_from", "effective_to"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1024))
    rule_type: Mapped[PricingRuleType] = mapped_column(
        Enum(PricingRuleType), nullable=False
    )
    service_type: Mapped[ServiceType] = mapped_column(Enum(ServiceType), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    effective_from: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    effective_to: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    conditions: Mapped[dict[str, Any]] = mapped_column(
        JSONB_TYPE, default=dict, nullable=False
    )
    calculation: Mapped[dict[str, Any]] = mapped_column(JSONB_TYPE, nullable=False)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
