"""Enhancement cost calculator.

Enhancements are customer elections priced from a fixed catalogue. Each
enabled option adds an independent line; none of them pass through the
pricing rule engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from app.core.errors import ValidationError
from app.services.rule_engine import to_money

TRIP_PROTECTION_COST = Decimal("9.00")
MEET_AND_GREET_COST = Decimal("15.00")
EXTRA_BAG_COST = Decimal("5.00")
FREE_BAGS = 2
SPECIAL_HANDLING_COST = Decimal("10.00")
CHILD_SEAT_COST = Decimal("15.00")
ADDITIONAL_STOP_COST = Decimal("10.00")
MAX_ADDITIONAL_STOPS = 5

SPECIAL_HANDLING_TYPES = (
    "golf_clubs",
    "ski_equipment",
    "musical_instruments",
    "fragile_items",
)
CHILD_SEAT_TYPES = ("infant", "toddler", "booster")

# percentage of the base booking amount
VEHICLE_UPGRADE_PERCENTAGES: dict[str, Decimal] = {
    "standard": Decimal("0"),
    "eco_friendly": Decimal("0"),
    "suv": Decimal("15"),
    "luxury_sedan": Decimal("25"),
    "executive": Decimal("50"),
}


@dataclass(slots=True)
class EnhancementSelection:
    """Options a customer elected for a trip."""

    trip_protection: bool = False
    meet_and_greet: bool = False
    bag_count: int = 0
    special_handling: list[str] = field(default_factory=list)
    vehicle_type: str = "standard"
    child_seats: dict[str, int] = field(default_factory=dict)
    additional_stops: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "EnhancementSelection":
        data = dict(data or {})
        return cls(
            trip_protection=bool(data.get("trip_protection", False)),
            meet_and_greet=bool(data.get("meet_and_greet", False)),
            bag_count=int(data.get("bag_count", 0) or 0),
            special_handling=list(data.get("special_handling") or []),
            vehicle_type=data.get("vehicle_type") or "standard",
            child_seats=dict(data.get("child_seats") or {}),
            additional_stops=int(data.get("additional_stops", 0) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "trip_protection": self.trip_protection,
            "meet_and_greet": self.meet_and_greet,
            "bag_count": self.bag_count,
            "special_handling": list(self.special_handling),
            "vehicle_type": self.vehicle_type,
            "child_seats": dict(self.child_seats),
            "additional_stops": self.additional_stops,
        }


@dataclass(slots=True)
class EnhancementLine:
    code: str
    description: str
    amount: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "code": self.code,
            "description": self.description,
            "amount": f"{self.amount:.2f}",
        }


@dataclass(slots=True)
class EnhancementCost:
    total: Decimal
    breakdown: list[EnhancementLine]

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_enhancement_cost": f"{self.total:.2f}",
            "breakdown": [line.to_dict() for line in self.breakdown],
        }


def _validate(selection: EnhancementSelection) -> None:
    if selection.bag_count < 0:
        raise ValidationError("bag_count must not be negative", field="bag_count")
    unknown = set(selection.special_handling) - set(SPECIAL_HANDLING_TYPES)
    if unknown:
        raise ValidationError(
            "Unknown special handling type", field="special_handling", values=sorted(unknown)
        )
    if selection.vehicle_type not in VEHICLE_UPGRADE_PERCENTAGES:
        raise ValidationError(
            "Unknown vehicle type", field="vehicle_type", value=selection.vehicle_type
        )
    for seat_type, count in selection.child_seats.items():
        if seat_type not in CHILD_SEAT_TYPES:
            raise ValidationError("Unknown child seat type", field="child_seats", value=seat_type)
        if count < 0:
            raise ValidationError("Child seat count must not be negative", field="child_seats")
    if selection.additional_stops < 0:
        raise ValidationError("additional_stops must not be negative", field="additional_stops")
    if selection.additional_stops > MAX_ADDITIONAL_STOPS:
        raise ValidationError(
            f"At most {MAX_ADDITIONAL_STOPS} additional stops are allowed",
            field="additional_stops",
        )


def calculate(selection: EnhancementSelection, *, base_amount: Decimal) -> EnhancementCost:
    """Price the selected enhancements.

    ``base_amount`` is the booking amount before enhancements; only the
    vehicle upgrade depends on it.
    """
    _validate(selection)
    lines: list[EnhancementLine] = []

    if selection.trip_protection:
        lines.append(EnhancementLine("trip_protection", "Trip protection", TRIP_PROTECTION_COST))
    if selection.meet_and_greet:
        lines.append(EnhancementLine("meet_and_greet", "Meet & greet", MEET_AND_GREET_COST))

    extra_bags = selection.bag_count - FREE_BAGS
    if extra_bags > 0:
        lines.append(
            EnhancementLine(
                "extra_luggage",
                f"Extra luggage ({extra_bags} bags)",
                to_money(EXTRA_BAG_COST * extra_bags),
            )
        )

    handling = [item for item in SPECIAL_HANDLING_TYPES if item in set(selection.special_handling)]
    if handling:
        lines.append(
            EnhancementLine(
                "special_handling",
                f"Special handling ({', '.join(handling)})",
                to_money(SPECIAL_HANDLING_COST * len(handling)),
            )
        )

    percentage = VEHICLE_UPGRADE_PERCENTAGES[selection.vehicle_type]
    if percentage > 0:
        lines.append(
            EnhancementLine(
                "vehicle_upgrade",
                f"Vehicle upgrade to {selection.vehicle_type.replace('_', ' ')}",
                to_money(base_amount * percentage / Decimal("100")),
            )
        )

    for seat_type in CHILD_SEAT_TYPES:
        count = selection.child_seats.get(seat_type, 0)
        if count:
            lines.append(
                EnhancementLine(
                    f"child_seat_{seat_type}",
                    f"{seat_type.capitalize()} seat ({count})",
                    to_money(CHILD_SEAT_COST * count),
                )
            )

    if selection.additional_stops:
        lines.append(
            EnhancementLine(
                "additional_stops",
                f"Additional stops ({selection.additional_stops})",
                to_money(ADDITIONAL_STOP_COST * selection.additional_stops),
            )
        )

    total = sum((line.amount for line in lines), Decimal("0.00"))
    return EnhancementCost(total=to_money(total), breakdown=lines)
