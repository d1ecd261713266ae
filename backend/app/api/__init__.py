"""HTTP surface of the Stable Ride API, mounted under the versioned prefix."""

from fastapi import APIRouter

from app.core.config import get_settings

from .v1 import router as v1_router


def build_api_router() -> APIRouter:
    router = APIRouter()
    router.include_router(v1_router, prefix=get_settings().api_v1_prefix)
    return router


api_router = build_api_router()

__all__ = ["api_router", "build_api_router"]
