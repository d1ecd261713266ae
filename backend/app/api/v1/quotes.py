"""Quote endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from app.api.deps import DEFAULT_RATE_LIMIT, CurrentUser, DbSession, Oracle
from app.schemas.quote import QuoteCreate, QuoteRead, TripChanges
from app.services import quote_service

router = APIRouter()


@router.post(
    "",
    response_model=QuoteRead,
    status_code=status.HTTP_201_CREATED,
    summary="Compose a quote",
    dependencies=[DEFAULT_RATE_LIMIT],
)
async def create_quote(
    payload: QuoteCreate,
    session: DbSession,
    current_user: CurrentUser,
    oracle: Oracle,
) -> QuoteRead:
    quote = await quote_service.create_quote(
        session, trip=payload.to_trip(), oracle=oracle, user=current_user
    )
    return QuoteRead.model_validate(quote)


@router.get("", response_model=list[QuoteRead], summary="List my live quotes")
async def list_quotes(
    session: DbSession,
    current_user: CurrentUser,
    limit: int = 20,
) -> list[QuoteRead]:
    quotes = await quote_service.list_recent_quotes(
        session, user_id=current_user.id, limit=min(limit, 100)
    )
    return [QuoteRead.model_validate(quote) for quote in quotes]


@router.get("/{quote_id}", response_model=QuoteRead, summary="Get quote")
async def get_quote(
    quote_id: uuid.UUID,
    session: DbSession,
    current_user: CurrentUser,
) -> QuoteRead:
    quote = await quote_service.get_quote(session, quote_id, user=current_user)
    return QuoteRead.model_validate(quote)


@router.post(
    "/{quote_id}/refresh",
    response_model=QuoteRead,
    status_code=status.HTTP_201_CREATED,
    summary="Re-price a quote, keeping its booking reference",
    dependencies=[DEFAULT_RATE_LIMIT],
)
async def refresh_quote(
    quote_id: uuid.UUID,
    payload: TripChanges,
    session: DbSession,
    current_user: CurrentUser,
    oracle: Oracle,
) -> QuoteRead:
    quote = await quote_service.refresh_quote(
        session,
        quote_id=quote_id,
        changes=payload.to_changes(),
        oracle=oracle,
        user=current_user,
    )
    return QuoteRead.model_validate(quote)


@router.post(
    "/{quote_id}/lock",
    response_model=QuoteRead,
    summary="Freeze a quote's price without booking it",
)
async def lock_quote(
    quote_id: uuid.UUID,
    session: DbSession,
    current_user: CurrentUser,
) -> QuoteRead:
    """Freeze the quote as pricing history.

    A locked quote can no longer be refreshed or booked; ``POST /bookings``
    locks the quote itself, so this is not a step towards booking.
    """
    quote = await quote_service.get_quote(session, quote_id, user=current_user)
    locked = await quote_service.lock_quote(session, quote=quote, user=current_user)
    return QuoteRead.model_validate(locked)
