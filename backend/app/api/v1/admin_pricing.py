"""Pricing rule administration."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from app.api.deps import AdminUser, DbSession, StaffUser
from app.models.pricing import PricingRuleType, ServiceType
from app.schemas.pricing import (
    PricingOverview,
    PricingRuleCreate,
    PricingRuleRead,
    PricingRuleUpdate,
)
from app.services import pricing_rule_service

router = APIRouter()


@router.get("", response_model=list[PricingRuleRead], summary="List pricing rules")
async def list_pricing_rules(
    session: DbSession,
    _: StaffUser,
    service_type: ServiceType | None = None,
    rule_type: PricingRuleType | None = None,
    is_active: bool | None = None,
    skip: int = 0,
    limit: int = 100,
) -> list[PricingRuleRead]:
    rules = await pricing_rule_service.list_rules(
        session,
        service_type=service_type,
        rule_type=rule_type,
        is_active=is_active,
        skip=skip,
        limit=min(limit, 500),
    )
    return [PricingRuleRead.model_validate(rule) for rule in rules]


@router.get("/overview", response_model=PricingOverview, summary="Rule counts")
async def pricing_overview(session: DbSession, _: StaffUser) -> PricingOverview:
    return PricingOverview.model_validate(await pricing_rule_service.pricing_overview(session))


@router.post(
    "",
    response_model=PricingRuleRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create pricing rule",
)
async def create_pricing_rule(
    payload: PricingRuleCreate,
    session: DbSession,
    current_user: AdminUser,
) -> PricingRuleRead:
    rule = await pricing_rule_service.create_rule(
        session,
        created_by_id=current_user.id,
        **payload.model_dump(),
    )
    return PricingRuleRead.model_validate(rule)


@router.get("/{rule_id}", response_model=PricingRuleRead, summary="Get pricing rule")
async def get_pricing_rule(
    rule_id: uuid.UUID, session: DbSession, _: StaffUser
) -> PricingRuleRead:
    return PricingRuleRead.model_validate(await pricing_rule_service.get_rule(session, rule_id))


@router.patch("/{rule_id}", response_model=PricingRuleRead, summary="Update pricing rule")
async def update_pricing_rule(
    rule_id: uuid.UUID,
    payload: PricingRuleUpdate,
    session: DbSession,
    current_user: AdminUser,
) -> PricingRuleRead:
    rule = await pricing_rule_service.get_rule(session, rule_id)
    updated = await pricing_rule_service.update_rule(
        session,
        rule=rule,
        changes=payload.model_dump(exclude_unset=True),
        updated_by_id=current_user.id,
    )
    return PricingRuleRead.model_validate(updated)


@router.delete(
    "/{rule_id}",
    response_model=PricingRuleRead,
    summary="Deactivate pricing rule",
)
async def deactivate_pricing_rule(
    rule_id: uuid.UUID,
    session: DbSession,
    current_user: AdminUser,
) -> PricingRuleRead:
    rule = await pricing_rule_service.get_rule(session, rule_id)
    deactivated = await pricing_rule_service.deactivate_rule(
        session, rule=rule, updated_by_id=current_user.id
    )
    return PricingRuleRead.model_validate(deactivated)
