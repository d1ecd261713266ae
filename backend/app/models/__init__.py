"""ORM models package export."""

from app.models.audit_event import AuditEvent
from app.models.booking import (
    Booking,
    BookingCancellation,
    BookingModification,
    BookingStatus,
)
from app.models.calendar import BusinessHours, Holiday
from app.models.pricing import PricingRule, PricingRuleType, ServiceType
from app.models.quote import Quote
from app.models.user import STAFF_ROLES, User, UserRole, UserStatus

__all__ = [
    "AuditEvent",
    "Booking",
    "BookingCancellation",
    "BookingModification",
    "BookingStatus",
    "BusinessHours",
    "Holiday",
    "PricingRule",
    "PricingRuleType",
    "Quote",
    "STAFF_ROLES",
    "ServiceType",
    "User",
    "UserRole",
    "UserStatus",
]
