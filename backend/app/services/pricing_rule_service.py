"""Pricing rule store: administration and snapshot loading."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.pricing import PricingRule, PricingRuleType, ServiceType
from app.services import audit_service
from app.services.rule_engine import (
    RuleSnapshot,
    TypedRule,
    build_rule,
    coerce_utc,
    dump_calculation,
    dump_condition,
    typed_rule_from_model,
)

logger = logging.getLogger(__name__)

_MUTABLE_FIELDS = (
    "name",
    "description",
    "rule_type",
    "service_type",
    "priority",
    "is_active",
    "effective_from",
    "effective_to",
    "conditions",
    "calculation",
)


def _normalized(typed: TypedRule) -> dict[str, Any]:
    return {
        "conditions": {
            condition.fact: dump_condition(condition) for condition in typed.conditions
        },
        "calculation": dump_calculation(typed.calculation),
    }


def _rule_payload(rule: PricingRule) -> dict[str, Any]:
    return {
        "rule_id": str(rule.id),
        "name": rule.name,
        "rule_type": rule.rule_type.value,
        "service_type": rule.service_type.value,
        "priority": rule.priority,
        "is_active": rule.is_active,
    }


async def list_rules(
    session: AsyncSession,
    *,
    service_type: ServiceType | None = None,
    rule_type: PricingRuleType | None = None,
    is_active: bool | None = None,
    skip: int = 0,
    limit: int = 100,
) -> list[PricingRule]:
    stmt: Select[tuple[PricingRule]] = select(PricingRule)
    if service_type is not None:
        stmt = stmt.where(PricingRule.service_type == service_type)
    if rule_type is not None:
        stmt = stmt.where(PricingRule.rule_type == rule_type)
    if is_active is not None:
        stmt = stmt.where(PricingRule.is_active.is_(is_active))
    stmt = stmt.order_by(PricingRule.priority.asc(), PricingRule.id.asc())
    result = await session.execute(stmt.offset(skip).limit(limit))
    return list(result.scalars().all())


async def get_rule(session: AsyncSession, rule_id: uuid.UUID) -> PricingRule:
    rule = await session.get(PricingRule, rule_id)
    if rule is None:
        raise NotFoundError("Pricing rule not found", rule_id=str(rule_id))
    return rule


async def create_rule(
    session: AsyncSession,
    *,
    name: str,
    rule_type: PricingRuleType,
    service_type: ServiceType,
    calculation: dict[str, Any],
    conditions: dict[str, Any] | None = None,
    priority: int = 50,
    is_active: bool = True,
    effective_from: datetime | None = None,
    effective_to: datetime | None = None,
    description: str | None = None,
    created_by_id: uuid.UUID | None = None,
) -> PricingRule:
    """Validate and persist a new rule; raises ``RuleConfigurationError``."""
    rule_id = uuid.uuid4()
    typed = build_rule(
        id=rule_id,
        name=name,
        rule_type=rule_type,
        service_type=service_type,
        priority=priority,
        is_active=is_active,
        effective_from=effective_from,
        effective_to=effective_to,
        conditions=conditions,
        calculation=calculation,
    )
    rule = PricingRule(
        id=rule_id,
        name=typed.name,
        description=description,
        rule_type=rule_type,
        service_type=service_type,
        priority=priority,
        is_active=is_active,
        effective_from=typed.effective_from,
        effective_to=typed.effective_to,
        created_by_id=created_by_id,
        **_normalized(typed),
    )
    session.add(rule)
    await session.flush()
    await audit_service.record_event(
        session,
        user_id=created_by_id,
        event_type="pricing_rule.created",
        description=f"Pricing rule {typed.name} created",
        payload=_rule_payload(rule),
    )
    await session.commit()
    await session.refresh(rule)
    logger.info("Pricing rule %s (%s) created", rule.id, rule.name)
    return rule


async def update_rule(
    session: AsyncSession,
    *,
    rule: PricingRule,
    changes: dict[str, Any],
    updated_by_id: uuid.UUID | None = None,
) -> PricingRule:
    """Apply a partial update, validating the merged result."""
    merged = {field: getattr(rule, field) for field in _MUTABLE_FIELDS}
    merged.update({key: value for key, value in changes.items() if key in _MUTABLE_FIELDS})
    description = merged.pop("description")
    typed = build_rule(id=rule.id, **merged)

    rule.name = typed.name
    rule.description = description
    rule.rule_type = typed.rule_type
    rule.service_type = typed.service_type
    rule.priority = typed.priority
    rule.is_active = typed.is_active
    rule.effective_from = typed.effective_from
    rule.effective_to = typed.effective_to
    normalized = _normalized(typed)
    rule.conditions = normalized["conditions"]
    rule.calculation = normalized["calculation"]

    await audit_service.record_event(
        session,
        user_id=updated_by_id,
        event_type="pricing_rule.updated",
        description=f"Pricing rule {rule.name} updated",
        payload={**_rule_payload(rule), "changed": sorted(changes)},
    )
    await session.commit()
    await session.refresh(rule)
    logger.info("Pricing rule %s updated", rule.id)
    return rule


async def deactivate_rule(
    session: AsyncSession,
    *,
    rule: PricingRule,
    updated_by_id: uuid.UUID | None = None,
) -> PricingRule:
    """Soft-delete: historical quotes may still reference the rule."""
    rule.is_active = False
    await audit_service.record_event(
        session,
        user_id=updated_by_id,
        event_type="pricing_rule.deactivated",
        description=f"Pricing rule {rule.name} deactivated",
        payload=_rule_payload(rule),
    )
    await session.commit()
    await session.refresh(rule)
    logger.info("Pricing rule %s deactivated", rule.id)
    return rule


async def snapshot(session: AsyncSession, *, at: datetime) -> RuleSnapshot:
    """Load every active rule whose effective window can include ``at``."""
    at = coerce_utc(at)
    stmt = select(PricingRule).where(
        PricingRule.is_active.is_(True),
        or_(PricingRule.effective_from.is_(None), PricingRule.effective_from <= at),
        or_(PricingRule.effective_to.is_(None), PricingRule.effective_to >= at),
    )
    rows = (await session.execute(stmt)).scalars().all()
    return RuleSnapshot.of((typed_rule_from_model(row) for row in rows), taken_at=at)


async def pricing_overview(
    session: AsyncSession, *, now: datetime | None = None
) -> dict[str, Any]:
    now = coerce_utc(now or datetime.now(UTC))
    total = await session.scalar(select(func.count()).select_from(PricingRule))
    active = await session.scalar(
        select(func.count())
        .select_from(PricingRule)
        .where(
            PricingRule.is_active.is_(True),
            or_(PricingRule.effective_from.is_(None), PricingRule.effective_from <= now),
            or_(PricingRule.effective_to.is_(None), PricingRule.effective_to >= now),
        )
    )
    expired = await session.scalar(
        select(func.count())
        .select_from(PricingRule)
        .where(PricingRule.effective_to.is_not(None), PricingRule.effective_to < now)
    )
    pending = await session.scalar(
        select(func.count())
        .select_from(PricingRule)
        .where(PricingRule.effective_from.is_not(None), PricingRule.effective_from > now)
    )
    by_type_rows = await session.execute(
        select(PricingRule.rule_type, func.count()).group_by(PricingRule.rule_type)
    )
    by_type = {rule_type.value: 0 for rule_type in PricingRuleType}
    for rule_type, count in by_type_rows.all():
        by_type[rule_type.value] = count
    return {
        "total": total or 0,
        "active": active or 0,
        "expired": expired or 0,
        "pending": pending or 0,
        "by_type": by_type,
    }
