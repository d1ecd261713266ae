"""Enhancement selection schemas."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from app.services.enhancement_service import EnhancementSelection


class EnhancementRequest(BaseModel):
    trip_protection: bool = False
    meet_and_greet: bool = False
    bag_count: int = 0
    special_handling: list[str] = Field(default_factory=list)
    vehicle_type: str = "standard"
    child_seats: dict[str, int] = Field(default_factory=dict)
    additional_stops: int = 0

    def to_selection(self) -> EnhancementSelection:
        return EnhancementSelection.from_dict(self.model_dump())


class EnhancementCalculateRequest(EnhancementRequest):
    base_amount: Decimal = Field(default=Decimal("0.00"), ge=0)


class EnhancementLineRead(BaseModel):
    code: str
    description: str
    amount: Decimal


class EnhancementCostRead(BaseModel):
    total_enhancement_cost: Decimal
    breakdown: list[EnhancementLineRead]
