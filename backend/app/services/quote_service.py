"""Quote lifecycle: persist, read, refresh and lock composed quotes."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    NotFoundError,
    PermissionDeniedError,
    QuoteExpiredError,
    QuoteLockedError,
)
from app.integrations.maps_client import DistanceOracle
from app.models.booking import Booking, BookingStatus
from app.models.quote import Quote
from app.models.user import User
from app.services import pricing_service
from app.services.pricing_service import ComposedQuote, CustomerFacts, TripRequest
from app.services.rule_engine import coerce_utc

logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return coerce_utc(now or datetime.now(UTC))


def is_expired(quote: Quote, *, now: datetime) -> bool:
    """Locked quotes are pricing history and never expire."""
    if quote.superseded_at is not None:
        return True
    if quote.locked_at is not None:
        return False
    return coerce_utc(quote.valid_until) < coerce_utc(now)


def ensure_access(quote: Quote, user: User | None) -> None:
    if user is None or user.is_staff:
        return
    if quote.user_id is not None and quote.user_id != user.id:
        raise PermissionDeniedError("Quote belongs to another customer")


async def customer_facts(session: AsyncSession, user: User | None) -> CustomerFacts:
    if user is None:
        return CustomerFacts()
    completed = await session.scalar(
        select(func.count())
        .select_from(Booking)
        .where(Booking.user_id == user.id, Booking.status == BookingStatus.COMPLETED)
    )
    return CustomerFacts(
        is_returning_customer=bool(completed),
        is_corporate=user.is_corporate,
    )


def build_quote(composed: ComposedQuote, *, user_id: uuid.UUID | None) -> Quote:
    """Map a composed quote onto a new, unsaved ``Quote`` row."""
    trip = composed.trip
    dropoff = trip.dropoff
    return Quote(
        id=uuid.uuid4(),
        user_id=user_id,
        booking_reference=composed.booking_reference,
        service_type=trip.service_type,
        pickup_address=trip.pickup.address,
        pickup_lat=trip.pickup.lat,
        pickup_lng=trip.pickup.lng,
        pickup_is_airport=trip.pickup.is_airport,
        dropoff_address=dropoff.address if dropoff else None,
        dropoff_lat=dropoff.lat if dropoff else None,
        dropoff_lng=dropoff.lng if dropoff else None,
        dropoff_is_airport=dropoff.is_airport if dropoff else False,
        pickup_at=coerce_utc(trip.pickup_at),
        return_at=coerce_utc(trip.return_at) if trip.return_at else None,
        duration_hours=trip.duration_hours,
        distance_miles=composed.distance.miles,
        duration_minutes=composed.distance.minutes,
        inputs=trip.to_dict(),
        breakdown=composed.breakdown.to_dict(),
        trail=[entry.to_dict() for entry in composed.trail],
        subtotal=composed.breakdown.subtotal,
        tax_total=composed.breakdown.tax_total,
        total=composed.breakdown.total,
        quoted_at=composed.quoted_at,
        valid_until=composed.valid_until,
    )


async def create_quote(
    session: AsyncSession,
    *,
    trip: TripRequest,
    oracle: DistanceOracle,
    user: User | None = None,
    now: datetime | None = None,
) -> Quote:
    now = _now(now)
    composed = await pricing_service.compose_quote(
        session,
        trip=trip,
        oracle=oracle,
        customer=await customer_facts(session, user),
        now=now,
    )
    quote = build_quote(composed, user_id=user.id if user else None)
    session.add(quote)
    await session.commit()
    await session.refresh(quote)
    logger.info("Quote %s (%s) created, total %s", quote.id, quote.booking_reference, quote.total)
    return quote


async def _load(session: AsyncSession, quote_id: uuid.UUID) -> Quote:
    quote = await session.get(Quote, quote_id)
    if quote is None:
        raise NotFoundError("Quote not found", quote_id=str(quote_id))
    return quote


async def get_quote(
    session: AsyncSession,
    quote_id: uuid.UUID,
    *,
    user: User | None = None,
    now: datetime | None = None,
) -> Quote:
    """Return a live quote. Expiry is checked here, at read time."""
    quote = await _load(session, quote_id)
    ensure_access(quote, user)
    if is_expired(quote, now=_now(now)):
        details: dict[str, Any] = {"quote_id": str(quote.id)}
        if quote.superseded_by_id is not None:
            details["superseded_by"] = str(quote.superseded_by_id)
        raise QuoteExpiredError(**details)
    return quote


async def list_recent_quotes(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    limit: int = 20,
    now: datetime | None = None,
) -> Sequence[Quote]:
    now = _now(now)
    stmt = (
        select(Quote)
        .where(
            Quote.user_id == user_id,
            Quote.superseded_at.is_(None),
            Quote.valid_until >= now,
        )
        .order_by(Quote.quoted_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return result.scalars().all()


async def refresh_quote(
    session: AsyncSession,
    *,
    quote_id: uuid.UUID,
    changes: dict[str, Any],
    oracle: DistanceOracle,
    user: User | None = None,
    now: datetime | None = None,
) -> Quote:
    """Re-price with ``changes`` merged into the stored inputs.

    The new quote keeps the original booking reference; the old one is
    marked superseded. Expired quotes may be refreshed, locked ones not.
    """
    now = _now(now)
    original = await _load(session, quote_id)
    ensure_access(original, user)
    if original.locked_at is not None:
        raise QuoteLockedError(quote_id=str(original.id))
    if original.superseded_at is not None:
        raise QuoteExpiredError(
            "Quote was already refreshed",
            quote_id=str(original.id),
            superseded_by=str(original.superseded_by_id),
        )

    trip = TripRequest.from_dict(original.inputs).merged(changes)
    # Pricing facts describe the quote's customer, not whoever is refreshing it.
    owner = await session.get(User, original.user_id) if original.user_id else None
    composed = await pricing_service.compose_quote(
        session,
        trip=trip,
        oracle=oracle,
        customer=await customer_facts(session, owner),
        booking_reference=original.booking_reference,
        now=now,
    )
    replacement = build_quote(composed, user_id=original.user_id)
    session.add(replacement)
    await session.flush()

    result = await session.execute(
        update(Quote)
        .where(
            Quote.id == original.id,
            Quote.locked_at.is_(None),
            Quote.superseded_at.is_(None),
        )
        .values(superseded_at=now, superseded_by_id=replacement.id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        current = await _load(session, quote_id)
        if current.locked_at is not None:
            raise QuoteLockedError(quote_id=str(quote_id))
        raise QuoteExpiredError("Quote was already refreshed", quote_id=str(quote_id))

    await session.commit()
    await session.refresh(original)
    await session.refresh(replacement)
    logger.info(
        "Quote %s refreshed as %s (%s)",
        original.id,
        replacement.id,
        replacement.booking_reference,
    )
    return replacement


async def lock_quote(
    session: AsyncSession,
    *,
    quote: Quote,
    user: User | None = None,
    now: datetime | None = None,
    commit: bool = True,
) -> Quote:
    """Mark ``quote`` as consumed; its pricing is frozen from here on.

    Raises ``QuoteLockedError`` if it is already locked and
    ``QuoteExpiredError`` if it has expired or been superseded. The lock
    is a conditional update, so two callers cannot both succeed.
    """
    now = _now(now)
    ensure_access(quote, user)
    if quote.locked_at is not None:
        raise QuoteLockedError(quote_id=str(quote.id))
    if is_expired(quote, now=now):
        raise QuoteExpiredError(quote_id=str(quote.id))

    result = await session.execute(
        update(Quote)
        .where(
            Quote.id == quote.id,
            Quote.locked_at.is_(None),
            Quote.superseded_at.is_(None),
        )
        .values(locked_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.refresh(quote)
        if quote.superseded_at is not None:
            raise QuoteExpiredError(
                quote_id=str(quote.id), superseded_by=str(quote.superseded_by_id)
            )
        raise QuoteLockedError(quote_id=str(quote.id))
    if commit:
        await session.commit()
    await session.refresh(quote)
    logger.info("Quote %s locked", quote.id)
    return quote


async def cleanup_expired_quotes(
    session: AsyncSession,
    *,
    older_than: timedelta = timedelta(days=7),
    now: datetime | None = None,
) -> int:
    """Delete unlocked quotes that expired more than ``older_than`` ago."""
    cutoff = _now(now) - older_than
    result = await session.execute(
        delete(Quote)
        .where(Quote.locked_at.is_(None), Quote.valid_until < cutoff)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    removed = result.rowcount or 0
    if removed:
        logger.info("Removed %s expired quotes", removed)
    return removed
