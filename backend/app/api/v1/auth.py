"""Authentication endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm

from app.api.deps import DEFAULT_RATE_LIMIT, LOGIN_RATE_LIMIT, DbSession, client_ip
from app.models.user import User
from app.schemas.auth import RegistrationRequest, RegistrationResponse, Token
from app.schemas.user import UserRead
from app.services import audit_service, auth_service, notification_service
from app.services.auth_service import authenticate_user, create_access_token_for_user

router = APIRouter()


def _event_payload_for_user(user: User) -> dict[str, str]:
    return {"user_id": str(user.id), "email": user.email}


@router.post(
    "/token",
    response_model=Token,
    summary="Obtain access token",
    dependencies=[LOGIN_RATE_LIMIT],
)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    session: DbSession,
    request: Request,
) -> Token:
    """Validate credentials and issue a bearer token."""
    user = await authenticate_user(
        session, email=form_data.username, password=form_data.password
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = await create_access_token_for_user(user)
    await audit_service.record_event(
        session,
        user_id=user.id,
        event_type="auth.login",
        description="Successful login",
        payload=_event_payload_for_user(user),
        ip_address=client_ip(request),
        commit=True,
    )
    return Token(access_token=access_token)


@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register customer",
    dependencies=[DEFAULT_RATE_LIMIT],
)
async def register_customer(
    payload: RegistrationRequest,
    session: DbSession,
    background_tasks: BackgroundTasks,
    request: Request,
) -> RegistrationResponse:
    user = await auth_service.register_customer(session, payload)
    token_value = await create_access_token_for_user(user)
    await audit_service.record_event(
        session,
        user_id=user.id,
        event_type="auth.register.customer",
        description="Customer self-registration",
        payload=_event_payload_for_user(user),
        ip_address=client_ip(request),
        commit=True,
    )
    notification_service.notify_welcome(user, background_tasks)
    return RegistrationResponse(
        token=Token(access_token=token_value), user=UserRead.model_validate(user)
    )
