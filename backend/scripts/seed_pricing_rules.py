"""Seed a baseline set of pricing rules for every service type."""

from __future__ import annotations

import asyncio
from typing import Any

from sqlalchemy import select

from app.db.session import get_sessionmaker
from app.models import PricingRule, PricingRuleType, ServiceType
from app.services import pricing_rule_service

BASELINE_RULES: list[dict[str, Any]] = [
    {
        "name": "Base fare",
        "rule_type": PricingRuleType.BASE_RATE,
        "priority": 10,
        "calculation": {"type": "fixed", "value": "20.00"},
    },
    {
        "name": "Mileage",
        "rule_type": PricingRuleType.DISTANCE_MULTIPLIER,
        "priority": 10,
        "calculation": {"type": "per_mile", "value": "2.00"},
    },
    {
        "name": "Friday evening",
        "rule_type": PricingRuleType.SURCHARGE,
        "priority": 20,
        "conditions": {
            "day_of_week": {"operator": "equals", "value": 4},
            "hour": {"operator": "greater_than", "value": 17},
        },
        "calculation": {"type": "percentage", "value": "15"},
    },
    {
        "name": "Late night",
        "rule_type": PricingRuleType.SURCHARGE,
        "priority": 30,
        "conditions": {"hour": {"operator": "in", "value": [0, 1, 2, 3, 4]}},
        "calculation": {"type": "fixed", "value": "10.00"},
    },
    {
        "name": "Corporate account",
        "rule_type": PricingRuleType.DISCOUNT,
        "priority": 10,
        "conditions": {"is_corporate": {"operator": "equals", "value": True}},
        "calculation": {"type": "percentage", "value": "-10"},
    },
]

HOURLY_RULES: list[dict[str, Any]] = [
    {
        "name": "Hourly charter",
        "rule_type": PricingRuleType.TIME_MULTIPLIER,
        "priority": 10,
        "calculation": {"type": "per_hour", "value": "75.00"},
    },
]


def _rules_for(service_type: ServiceType) -> list[dict[str, Any]]:
    if service_type is ServiceType.HOURLY:
        # hourly trips are priced on time, not mileage
        return [rule for rule in BASELINE_RULES if rule["name"] != "Mileage"] + HOURLY_RULES
    return BASELINE_RULES


async def seed_pricing_rules() -> None:
    sessionmaker = get_sessionmaker()
    created = 0
    async with sessionmaker() as session:
        existing = {
            (rule.name, rule.service_type)
            for rule in (await session.execute(select(PricingRule))).scalars().all()
        }
        for service_type in ServiceType:
            for definition in _rules_for(service_type):
                if (definition["name"], service_type) in existing:
                    continue
                await pricing_rule_service.create_rule(
                    session, service_type=service_type, **definition
                )
                created += 1

    print(f"Seeded {created} pricing rule(s).")


def main() -> None:
    asyncio.run(seed_pricing_rules())


if __name__ == "__main__":
    main()
