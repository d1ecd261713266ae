"""Schema exports."""

from app.schemas.auth import RegistrationRequest, RegistrationResponse, Token
from app.schemas.booking import (
    BookingCancel,
    BookingCancellationRead,
    BookingCreate,
    BookingModificationRead,
    BookingModify,
    BookingRead,
    CancellationQuoteRead,
    ModificationPreviewRead,
)
from app.schemas.calendar import (
    BusinessHoursEntry,
    BusinessHoursRead,
    BusinessHoursUpdate,
    HolidayCreate,
    HolidayRead,
    HolidayUpdate,
    OpenStatusRead,
)
from app.schemas.enhancement import (
    EnhancementCalculateRequest,
    EnhancementCostRead,
    EnhancementRequest,
)
from app.schemas.pricing import (
    PricingOverview,
    PricingRuleCreate,
    PricingRuleRead,
    PricingRuleUpdate,
)
from app.schemas.quote import LocationIn, QuoteCreate, QuoteRead, TripChanges
from app.schemas.user import UserCreate, UserRead

__all__ = [
    "BookingCancel",
    "BookingCancellationRead",
    "BookingCreate",
    "BookingModificationRead",
    "BookingModify",
    "BookingRead",
    "BusinessHoursEntry",
    "BusinessHoursRead",
    "BusinessHoursUpdate",
    "CancellationQuoteRead",
    "EnhancementCalculateRequest",
    "EnhancementCostRead",
    "EnhancementRequest",
    "HolidayCreate",
    "HolidayRead",
    "HolidayUpdate",
    "LocationIn",
    "ModificationPreviewRead",
    "OpenStatusRead",
    "PricingOverview",
    "PricingRuleCreate",
    "PricingRuleRead",
    "PricingRuleUpdate",
    "QuoteCreate",
    "QuoteRead",
    "RegistrationRequest",
    "RegistrationResponse",
    "Token",
    "TripChanges",
    "UserCreate",
    "UserRead",
]
