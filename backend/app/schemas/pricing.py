"""Pricing rule schema definitions."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.models.pricing import PricingRuleType, ServiceType


class PricingRuleCreate(BaseModel):
    """Payload for creating a pricing rule.

    ``conditions`` and ``calculation`` are validated by the rule engine so
    that every structural problem is reported the same way.
    """

    name: str = Field(max_length=120)
    description: str | None = None
    rule_type: PricingRuleType
    service_type: ServiceType
    priority: int = 50
    is_active: bool = True
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    conditions: dict[str, Any] = Field(default_factory=dict)
    calculation: dict[str, Any]


class PricingRuleUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=120)
    description: str | None = None
    rule_type: PricingRuleType | None = None
    service_type: ServiceType | None = None
    priority: int | None = None
    is_active: bool | None = None
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    conditions: dict[str, Any] | None = None
    calculation: dict[str, Any] | None = None


class PricingRuleRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str | None = None
    rule_type: PricingRuleType
    service_type: ServiceType
    priority: int
    is_active: bool
    effective_from: datetime | None = None
    effective_to: datetime | None = None
    conditions: dict[str, Any]
    calculation: dict[str, Any]
    created_by_id: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PricingOverview(BaseModel):
    total: int
    active: int
    expired: int
    pending: int
    by_type: dict[str, int]
