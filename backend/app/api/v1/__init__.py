"""Versioned API router."""

from fastapi import APIRouter

from . import (
    admin_calendar,
    admin_pricing,
    auth,
    bookings,
    calendar,
    enhancements,
    health,
    quotes,
)

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(quotes.router, prefix="/quotes", tags=["quotes"])
router.include_router(
    enhancements.router, prefix="/enhancements", tags=["enhancements"]
)
router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
# Admin
router.include_router(
    admin_pricing.router, prefix="/admin/pricing-rules", tags=["admin-pricing"]
)
router.include_router(admin_calendar.router, prefix="/admin", tags=["admin-calendar"])

__all__ = ["router"]
