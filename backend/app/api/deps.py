"""Common API dependencies."""

from __future__ import annotations

import uuid
from typing import Annotated
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordBearer
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import PermissionDeniedError
from app.core.security import decode_access_token
from app.db.session import get_session
from app.integrations.maps_client import DistanceOracle, build_distance_oracle
from app.models.user import User, UserRole, UserStatus
from app.services import user_service

settings = get_settings()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_prefix}/auth/token")

_RATE_WINDOWS = {
    "second": 1,
    "seconds": 1,
    "minute": 60,
    "minutes": 60,
    "hour": 3600,
    "hours": 3600,
    "day": 86400,
    "days": 86400,
}


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


def get_distance_oracle() -> DistanceOracle:
    """Distance oracle used for quote composition; overridden in tests."""
    return build_distance_oracle()


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> User:
    """Authenticate request via bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
    except JWTError as exc:  # pragma: no cover - handled as HTTP 401
        raise credentials_exception from exc

    subject = payload.get("sub")
    if subject is None:
        raise credentials_exception

    try:
        user_id = uuid.UUID(subject)
    except (ValueError, TypeError) as exc:
        raise credentials_exception from exc

    user = await user_service.get_user(session, user_id)
    if user is None or user.status != UserStatus.ACTIVE:
        raise credentials_exception
    return user


async def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Ensure the current user is active."""
    return current_user


async def require_staff(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    """Dispatchers and administrators only."""
    if not current_user.is_staff:
        raise PermissionDeniedError("Staff access required")
    return current_user


async def require_admin(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    if current_user.role != UserRole.ADMIN:
        raise PermissionDeniedError("Administrator access required")
    return current_user


def parse_rate(value: str, *, fallback: tuple[int, int]) -> tuple[int, int]:
    """Parse ``"10/minute"`` style limits into ``(times, seconds)``."""
    count_str, _, window_str = value.partition("/")
    try:
        count = int(count_str.strip())
    except ValueError:
        return fallback
    seconds = _RATE_WINDOWS.get(window_str.strip().lower(), fallback[1])
    return count, seconds


def rate_limit(limit: tuple[int, int]):
    """Dependency enforcing ``limit``; a no-op when Redis is not configured."""

    async def _dependency(request: Request, response: Response) -> None:
        if FastAPILimiter.redis is None:
            return None
        limiter = RateLimiter(times=limit[0], seconds=limit[1])
        await limiter(request, response)

    return Depends(_dependency)


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentUser = Annotated[User, Depends(get_current_active_user)]
StaffUser = Annotated[User, Depends(require_staff)]
AdminUser = Annotated[User, Depends(require_admin)]
Oracle = Annotated[DistanceOracle, Depends(get_distance_oracle)]

DEFAULT_RATE_LIMIT = rate_limit(parse_rate(settings.rate_limit_default, fallback=(100, 60)))
LOGIN_RATE_LIMIT = rate_limit(parse_rate(settings.rate_limit_login, fallback=(10, 60)))
