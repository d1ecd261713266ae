"""Enhancement pricing endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from app.schemas.enhancement import EnhancementCalculateRequest, EnhancementCostRead
from app.services import enhancement_service

router = APIRouter()


@router.post(
    "/calculate",
    response_model=EnhancementCostRead,
    summary="Price selected enhancements",
)
async def calculate_enhancements(payload: EnhancementCalculateRequest) -> EnhancementCostRead:
    cost = enhancement_service.calculate(
        payload.to_selection(), base_amount=payload.base_amount
    )
    return EnhancementCostRead.model_validate(cost.to_dict())
