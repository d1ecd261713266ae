"""Bootstrap helpers for default data."""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.config import get_settings
from app.db.session import get_sessionmaker
from app.models import User, UserRole, UserStatus
from app.schemas.user import UserCreate
from app.services.user_service import create_user

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_FIRST = "Stable Ride"
DEFAULT_ADMIN_LAST = "Admin"


async def ensure_default_admin() -> None:
    """Create the configured admin user if one does not yet exist."""

    settings = get_settings()
    if not settings.default_admin_email or not settings.default_admin_password:
        logger.debug("DEFAULT_ADMIN_EMAIL/PASSWORD not set; skipping admin bootstrap")
        return

    sessionmaker = get_sessionmaker(settings.database_url)
    async with sessionmaker() as session:
        existing = await session.execute(
            select(User).where(User.email == settings.default_admin_email.lower())
        )
        if existing.scalar_one_or_none() is not None:
            return

        payload = UserCreate(
            email=settings.default_admin_email,
            password=settings.default_admin_password,
            first_name=DEFAULT_ADMIN_FIRST,
            last_name=DEFAULT_ADMIN_LAST,
            role=UserRole.ADMIN,
            status=UserStatus.ACTIVE,
        )
        await create_user(session, payload)
        logger.info("Default admin %s created", payload.email)
