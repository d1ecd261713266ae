"""Service layer exports."""
from app.services import (
    audit_service,
    auth_service,
    booking_service,
    calendar_service,
    enhancement_service,
    notification_service,
    pricing_rule_service,
    pricing_service,
    quote_service,
    user_service,
)

__all__ = [
    "audit_service",
    "auth_service",
    "booking_service",
    "calendar_service",
    "enhancement_service",
    "notification_service",
    "pricing_rule_service",
    "pricing_service",
    "quote_service",
    "user_service",
]
