"""Typed pricing rules and the rule evaluator.

Rules are stored as JSON but parsed into the closed variants below when an
administrator saves them. Evaluation only ever sees parsed rules, so it
never has to cope with a malformed condition or calculation.

Evaluation of one rule type is a left fold: matching rules are ordered by
``(priority, id)`` and each one is applied to the running amount in turn.
Percentage calculations compound on the running amount, so the order of
two percentage rules changes the result.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from types import MappingProxyType
from typing import Any, Union

from app.core.errors import RuleConfigurationError
from app.models.pricing import PricingRule, PricingRuleType, ServiceType

MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

_MISSING = object()


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value)
        except InvalidOperation:
            return None
    return None


def coerce_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


# -- calculations -----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Fixed:
    value: Decimal
    kind = "fixed"

    def apply(self, running: Decimal, facts: Mapping[str, Any]) -> Decimal:
        return running + self.value


@dataclass(frozen=True, slots=True)
class Percentage:
    value: Decimal
    kind = "percentage"

    def apply(self, running: Decimal, facts: Mapping[str, Any]) -> Decimal:
        return running * (1 + self.value / HUNDRED)


@dataclass(frozen=True, slots=True)
class PerMile:
    value: Decimal
    kind = "per_mile"

    def apply(self, running: Decimal, facts: Mapping[str, Any]) -> Decimal:
        miles = _to_decimal(facts.get("total_distance_miles", facts.get("distance_miles")))
        return running + self.value * (miles or ZERO)


@dataclass(frozen=True, slots=True)
class PerMinute:
    value: Decimal
    kind = "per_minute"

    def apply(self, running: Decimal, facts: Mapping[str, Any]) -> Decimal:
        return running + self.value * (_to_decimal(facts.get("duration_minutes")) or ZERO)


@dataclass(frozen=True, slots=True)
class PerHour:
    value: Decimal
    kind = "per_hour"

    def apply(self, running: Decimal, facts: Mapping[str, Any]) -> Decimal:
        return running + self.value * (_to_decimal(facts.get("duration_hours")) or ZERO)


Calculation = Union[Fixed, Percentage, PerMile, PerMinute, PerHour]

_CALCULATIONS: dict[str, type] = {
    "fixed": Fixed,
    "percentage": Percentage,
    "per_mile": PerMile,
    "per_minute": PerMinute,
    "per_hour": PerHour,
}

# per-unit calculations only make sense while building up the fare
_PER_UNIT_RULE_TYPES = frozenset(
    {
        PricingRuleType.BASE_RATE,
        PricingRuleType.DISTANCE_MULTIPLIER,
        PricingRuleType.TIME_MULTIPLIER,
    }
)


# -- conditions -------------------------------------------------------------


def _strict_equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    actual_number = _to_decimal(actual) if not isinstance(actual, str) else None
    expected_number = _to_decimal(expected) if not isinstance(expected, str) else None
    if actual_number is not None and expected_number is not None:
        return actual_number == expected_number
    if isinstance(actual, str) and isinstance(expected, str):
        return actual == expected
    return False


def _numeric_fact(actual: Any) -> Decimal | None:
    if isinstance(actual, str):
        return None
    return _to_decimal(actual)


@dataclass(frozen=True, slots=True)
class Equals:
    value: Any
    operator = "equals"

    def matches(self, actual: Any) -> bool:
        return _strict_equals(actual, self.value)


@dataclass(frozen=True, slots=True)
class GreaterThan:
    value: Decimal
    operator = "greater_than"

    def matches(self, actual: Any) -> bool:
        number = _numeric_fact(actual)
        return number is not None and number > self.value


@dataclass(frozen=True, slots=True)
class LessThan:
    value: Decimal
    operator = "less_than"

    def matches(self, actual: Any) -> bool:
        number = _numeric_fact(actual)
        return number is not None and number < self.value


@dataclass(frozen=True, slots=True)
class In:
    values: tuple[Any, ...]
    operator = "in"

    def matches(self, actual: Any) -> bool:
        return any(_strict_equals(actual, candidate) for candidate in self.values)


@dataclass(frozen=True, slots=True)
class Between:
    low: Decimal
    high: Decimal
    operator = "between"

    def matches(self, actual: Any) -> bool:
        number = _numeric_fact(actual)
        return number is not None and self.low <= number <= self.high


Operator = Union[Equals, GreaterThan, LessThan, In, Between]


@dataclass(frozen=True, slots=True)
class Condition:
    fact: str
    test: Operator

    def matches(self, facts: Mapping[str, Any]) -> bool:
        actual = facts.get(self.fact, _MISSING)
        if actual is _MISSING or actual is None:
            return False
        return self.test.matches(actual)


def _require_number(value: Any, where: str) -> Decimal:
    number = _to_decimal(value)
    if number is None or not number.is_finite():
        raise RuleConfigurationError(f"{where} must be a number", field=where)
    return number


def _scalar(value: Any, where: str) -> Any:
    if isinstance(value, (bool, int, float, str, Decimal)):
        return value
    raise RuleConfigurationError(f"{where} must be a scalar value", field=where)


def parse_condition(fact: str, raw: Any) -> Condition:
    where = f"conditions.{fact}"
    if not isinstance(fact, str) or not fact.strip():
        raise RuleConfigurationError("Condition field name must be non-empty", field="conditions")
    if not isinstance(raw, Mapping):
        raise RuleConfigurationError(f"{where} must be an object", field=where)
    operator = raw.get("operator")
    if "value" not in raw:
        raise RuleConfigurationError(f"{where}.value is required", field=where)
    value = raw["value"]
    if operator == "equals":
        return Condition(fact, Equals(_scalar(value, f"{where}.value")))
    if operator == "greater_than":
        return Condition(fact, GreaterThan(_require_number(value, f"{where}.value")))
    if operator == "less_than":
        return Condition(fact, LessThan(_require_number(value, f"{where}.value")))
    if operator == "in":
        if not isinstance(value, (list, tuple)) or not value:
            raise RuleConfigurationError(f"{where}.value must be a non-empty list", field=where)
        return Condition(fact, In(tuple(_scalar(item, f"{where}.value") for item in value)))
    if operator == "between":
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise RuleConfigurationError(
                f"{where}.value must be a [low, high] pair", field=where
            )
        low = _require_number(value[0], f"{where}.value[0]")
        high = _require_number(value[1], f"{where}.value[1]")
        if low > high:
            raise RuleConfigurationError(f"{where}.value low exceeds high", field=where)
        return Condition(fact, Between(low, high))
    raise RuleConfigurationError(f"{where}.operator {operator!r} is not supported", field=where)


def parse_conditions(raw: Any) -> tuple[Condition, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, Mapping):
        raise RuleConfigurationError("conditions must be an object", field="conditions")
    return tuple(parse_condition(fact, raw_condition) for fact, raw_condition in sorted(raw.items()))


def parse_calculation(raw: Any) -> Calculation:
    if not isinstance(raw, Mapping):
        raise RuleConfigurationError("calculation must be an object", field="calculation")
    kind = raw.get("type")
    factory = _CALCULATIONS.get(kind) if isinstance(kind, str) else None
    if factory is None:
        raise RuleConfigurationError(
            f"calculation.type {kind!r} is not supported", field="calculation.type"
        )
    return factory(_require_number(raw.get("value"), "calculation.value"))


def dump_condition(condition: Condition) -> dict[str, Any]:
    test = condition.test

    def _plain(value: Any) -> Any:
        return float(value) if isinstance(value, Decimal) else value

    if isinstance(test, In):
        value: Any = [_plain(item) for item in test.values]
    elif isinstance(test, Between):
        value = [_plain(test.low), _plain(test.high)]
    else:
        value = _plain(test.value)
    return {"operator": test.operator, "value": value}


def dump_calculation(calculation: Calculation) -> dict[str, Any]:
    return {"type": calculation.kind, "value": str(calculation.value)}


# -- rules and snapshots ----------------------------------------------------


@dataclass(frozen=True, slots=True)
class TypedRule:
    """Parsed, immutable view of a pricing rule."""

    id: uuid.UUID
    name: str
    rule_type: PricingRuleType
    service_type: ServiceType
    priority: int
    is_active: bool
    effective_from: datetime | None
    effective_to: datetime | None
    conditions: tuple[Condition, ...]
    calculation: Calculation

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.priority, str(self.id))

    def is_effective(self, at: datetime) -> bool:
        at = coerce_utc(at)
        if self.effective_from is not None and at < self.effective_from:
            return False
        if self.effective_to is not None and at > self.effective_to:
            return False
        return True

    def matches(self, facts: Mapping[str, Any]) -> bool:
        return all(condition.matches(facts) for condition in self.conditions)


def build_rule(
    *,
    id: uuid.UUID,
    name: str,
    rule_type: PricingRuleType,
    service_type: ServiceType,
    priority: int,
    is_active: bool = True,
    effective_from: datetime | None = None,
    effective_to: datetime | None = None,
    conditions: Any = None,
    calculation: Any,
) -> TypedRule:
    """Validate raw rule fields and return the typed rule.

    Raises ``RuleConfigurationError`` naming the first offending field.
    """
    if not name or not name.strip():
        raise RuleConfigurationError("name must not be empty", field="name")
    if isinstance(priority, bool) or not isinstance(priority, int) or not 0 <= priority <= 100:
        raise RuleConfigurationError("priority must be an integer between 0 and 100", field="priority")
    start = coerce_utc(effective_from) if effective_from is not None else None
    end = coerce_utc(effective_to) if effective_to is not None else None
    if start is not None and end is not None and end < start:
        raise RuleConfigurationError(
            "effective_to must not be earlier than effective_from", field="effective_to"
        )
    parsed_conditions = parse_conditions(conditions)
    parsed_calculation = parse_calculation(calculation)
    if (
        isinstance(parsed_calculation, (PerMile, PerMinute, PerHour))
        and rule_type not in _PER_UNIT_RULE_TYPES
    ):
        raise RuleConfigurationError(
            f"{parsed_calculation.kind} calculations are not allowed on {rule_type.value} rules",
            field="calculation.type",
        )
    if rule_type is PricingRuleType.DISCOUNT and parsed_calculation.value > 0:
        raise RuleConfigurationError(
            "discount rules take a negative or zero value", field="calculation.value"
        )
    return TypedRule(
        id=id,
        name=name.strip(),
        rule_type=rule_type,
        service_type=service_type,
        priority=priority,
        is_active=is_active,
        effective_from=start,
        effective_to=end,
        conditions=parsed_conditions,
        calculation=parsed_calculation,
    )


def typed_rule_from_model(rule: PricingRule) -> TypedRule:
    return build_rule(
        id=rule.id,
        name=rule.name,
        rule_type=rule.rule_type,
        service_type=rule.service_type,
        priority=rule.priority,
        is_active=rule.is_active,
        effective_from=rule.effective_from,
        effective_to=rule.effective_to,
        conditions=rule.conditions,
        calculation=rule.calculation,
    )


@dataclass(frozen=True, slots=True)
class RuleSnapshot:
    """Rule set captured once and used for an entire quote composition."""

    rules: tuple[TypedRule, ...]
    taken_at: datetime

    @classmethod
    def of(cls, rules: Iterable[TypedRule], taken_at: datetime) -> "RuleSnapshot":
        return cls(rules=tuple(sorted(rules, key=lambda rule: rule.sort_key)), taken_at=taken_at)

    def candidates(
        self, service_type: ServiceType, rule_type: PricingRuleType, at: datetime
    ) -> list[TypedRule]:
        return [
            rule
            for rule in self.rules
            if rule.is_active
            and rule.service_type is service_type
            and rule.rule_type is rule_type
            and rule.is_effective(at)
        ]


# -- evaluation -------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Facts about one trip, evaluated at a single instant."""

    service_type: ServiceType
    evaluated_at: datetime
    facts: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "evaluated_at", coerce_utc(self.evaluated_at))
        object.__setattr__(self, "facts", MappingProxyType(dict(self.facts)))


@dataclass(frozen=True, slots=True)
class TrailEntry:
    rule_id: uuid.UUID | None
    name: str
    rule_type: str
    delta: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": str(self.rule_id) if self.rule_id else None,
            "name": self.name,
            "rule_type": self.rule_type,
            "delta": f"{self.delta:.2f}",
        }


@dataclass(frozen=True, slots=True)
class RuleApplication:
    amount: Decimal
    trail: tuple[TrailEntry, ...]


def step(running: Decimal, calculation: Calculation, facts: Mapping[str, Any]) -> Decimal:
    """Apply one calculation, rounded to cents and clamped at zero."""
    result = to_money(calculation.apply(running, facts))
    return result if result > ZERO else ZERO


def apply_rules(
    snapshot: RuleSnapshot,
    context: EvaluationContext,
    rule_type: PricingRuleType,
    base_amount: Decimal,
) -> RuleApplication:
    """Fold every matching rule of ``rule_type`` over ``base_amount``."""
    running = to_money(base_amount)
    trail: list[TrailEntry] = []
    candidates = snapshot.candidates(context.service_type, rule_type, context.evaluated_at)
    for rule in sorted(candidates, key=lambda item: item.sort_key):
        if not rule.matches(context.facts):
            continue
        updated = step(running, rule.calculation, context.facts)
        trail.append(
            TrailEntry(
                rule_id=rule.id,
                name=rule.name,
                rule_type=rule_type.value,
                delta=updated - running,
            )
        )
        running = updated
    return RuleApplication(amount=running, trail=tuple(trail))


__all__ = [
    "Between",
    "Calculation",
    "Condition",
    "Equals",
    "EvaluationContext",
    "Fixed",
    "GreaterThan",
    "In",
    "LessThan",
    "MONEY_PLACES",
    "PerHour",
    "PerMile",
    "PerMinute",
    "Percentage",
    "RuleApplication",
    "RuleSnapshot",
    "TrailEntry",
    "TypedRule",
    "apply_rules",
    "build_rule",
    "coerce_utc",
    "dump_calculation",
    "dump_condition",
    "parse_calculation",
    "parse_conditions",
    "step",
    "to_money",
    "typed_rule_from_model",
]
