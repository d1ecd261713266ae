"""Booking lifecycle: creation from a locked quote and policy-gated transitions.

Every mutating operation runs under the booking's in-process lock and
reloads the row inside it. The ``version`` column catches writers in other
processes; a stale write surfaces as ``ConcurrentModificationError``.
"""
from __future__ import annotations

import logging
import secrets
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import (
    ConcurrentModificationError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    PolicyViolationError,
    ValidationError,
)
from app.core.settings import BookingPolicySettings, get_booking_policy_settings
from app.integrations.maps_client import DistanceOracle
from app.models.booking import (
    Booking,
    BookingCancellation,
    BookingModification,
    BookingStatus,
)
from app.models.quote import Quote
from app.models.user import User
from app.services import audit_service, enhancement_service, pricing_service, quote_service
from app.services.booking_locks import lock_for
from app.services.cancellation_policy import CancellationOutcome, CancellationPolicy
from app.services.enhancement_service import EnhancementCost, EnhancementSelection
from app.services.pricing_service import ComposedQuote, TripRequest
from app.services.rule_engine import coerce_utc, to_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

_ALLOWED_STATUS_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

_MODIFIABLE_STATUSES = {BookingStatus.PENDING, BookingStatus.CONFIRMED}

_TRIP_FIELDS = frozenset(
    {"service_type", "pickup", "dropoff", "pickup_at", "return_at", "duration_hours"}
)


@dataclass(slots=True)
class BookingChanges:
    """Requested modification of a booking."""

    trip: dict[str, Any] = field(default_factory=dict)
    enhancements: EnhancementSelection | None = None
    gratuity_percentage: Decimal | None = None
    gratuity_amount: Decimal | None = None
    special_instructions: str | None = None

    def is_empty(self) -> bool:
        return (
            not self.trip
            and self.enhancements is None
            and self.gratuity_percentage is None
            and self.gratuity_amount is None
            and self.special_instructions is None
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for key, value in self.trip.items():
            if hasattr(value, "to_dict"):
                value = value.to_dict()
            elif isinstance(value, datetime):
                value = coerce_utc(value).isoformat()
            elif isinstance(value, Decimal):
                value = str(value)
            elif hasattr(value, "value"):
                value = value.value
            data[key] = value
        if self.enhancements is not None:
            data["enhancements"] = self.enhancements.to_dict()
        if self.gratuity_percentage is not None:
            data["gratuity_percentage"] = str(self.gratuity_percentage)
        if self.gratuity_amount is not None:
            data["gratuity_amount"] = str(self.gratuity_amount)
        if self.special_instructions is not None:
            data["special_instructions"] = self.special_instructions
        return data


@dataclass(slots=True)
class BookingPrice:
    enhancements: EnhancementCost
    gratuity: Decimal
    total: Decimal


@dataclass(slots=True)
class ModificationPreview:
    composed: ComposedQuote
    price: BookingPrice
    current_total: Decimal

    @property
    def price_difference(self) -> Decimal:
        return self.price.total - self.current_total

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_total": f"{self.current_total:.2f}",
            "new_total": f"{self.price.total:.2f}",
            "price_difference": f"{self.price_difference:.2f}",
            "quote": self.composed.breakdown.to_dict(),
            "enhancements": self.price.enhancements.to_dict(),
            "gratuity_amount": f"{self.price.gratuity:.2f}",
        }


def _now(now: datetime | None) -> datetime:
    return coerce_utc(now or datetime.now(UTC))


def generate_confirmation_number() -> str:
    return f"CNF-{secrets.token_hex(3).upper()}"


def _validate_status_transition(current: BookingStatus, target: BookingStatus) -> None:
    allowed = _ALLOWED_STATUS_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Invalid status transition from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )


def resolve_gratuity(
    *,
    subtotal: Decimal,
    percentage: Decimal | None = None,
    amount: Decimal | None = None,
) -> Decimal:
    """Gratuity is a percentage of the quote subtotal or an explicit amount."""
    if percentage is not None and amount is not None:
        raise ValidationError(
            "Provide gratuity_percentage or gratuity_amount, not both", field="gratuity"
        )
    if percentage is not None:
        if not ZERO <= percentage <= Decimal("100"):
            raise ValidationError(
                "gratuity_percentage must be between 0 and 100", field="gratuity_percentage"
            )
        return to_money(Decimal(subtotal) * percentage / Decimal("100"))
    if amount is not None:
        if amount < 0:
            raise ValidationError("gratuity_amount must not be negative", field="gratuity_amount")
        return to_money(amount)
    return ZERO


def price_booking(
    *,
    quote_total: Decimal,
    quote_subtotal: Decimal,
    selection: EnhancementSelection,
    gratuity_percentage: Decimal | None = None,
    gratuity_amount: Decimal | None = None,
) -> BookingPrice:
    enhancements = enhancement_service.calculate(selection, base_amount=Decimal(quote_total))
    gratuity = resolve_gratuity(
        subtotal=quote_subtotal, percentage=gratuity_percentage, amount=gratuity_amount
    )
    total = to_money(Decimal(quote_total) + enhancements.total + gratuity)
    return BookingPrice(enhancements=enhancements, gratuity=gratuity, total=total)


def _base_booking_query():
    return select(Booking).options(
        selectinload(Booking.user),
        selectinload(Booking.quote),
        selectinload(Booking.modifications),
        selectinload(Booking.cancellation),
    )


def _ensure_access(booking: Booking, actor: User) -> None:
    if actor.is_staff or booking.user_id == actor.id:
        return
    raise PermissionDeniedError("Booking belongs to another customer")


async def _load(
    session: AsyncSession, booking_id: uuid.UUID, *, fresh: bool = False
) -> Booking:
    stmt = _base_booking_query().where(Booking.id == booking_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    booking = result.scalars().unique().one_or_none()
    if booking is None:
        raise NotFoundError("Booking not found", booking_id=str(booking_id))
    return booking


async def _commit(session: AsyncSession) -> None:
    try:
        await session.commit()
    except StaleDataError as exc:
        await session.rollback()
        raise ConcurrentModificationError() from exc


async def get_booking(
    session: AsyncSession, booking_id: uuid.UUID, *, actor: User
) -> Booking:
    booking = await _load(session, booking_id)
    _ensure_access(booking, actor)
    return booking


async def list_bookings(
    session: AsyncSession,
    *,
    actor: User,
    status: BookingStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> Sequence[Booking]:
    stmt = _base_booking_query().order_by(Booking.pickup_at.desc())
    if not actor.is_staff:
        stmt = stmt.where(Booking.user_id == actor.id)
    if status is not None:
        stmt = stmt.where(Booking.status == status)
    result = await session.execute(stmt.offset(skip).limit(limit))
    return result.scalars().unique().all()


async def list_modifications(
    session: AsyncSession, booking_id: uuid.UUID, *, actor: User
) -> list[BookingModification]:
    booking = await get_booking(session, booking_id, actor=actor)
    return list(booking.modifications)


async def create_booking(
    session: AsyncSession,
    *,
    quote_id: uuid.UUID,
    actor: User,
    enhancements: EnhancementSelection | None = None,
    gratuity_percentage: Decimal | None = None,
    gratuity_amount: Decimal | None = None,
    special_instructions: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """Lock the quote and open a ``PENDING`` booking against it.

    The quote lock and the booking insert commit together.
    """
    now = _now(now)
    quote = await quote_service.get_quote(session, quote_id, user=actor, now=now)
    selection = enhancements or EnhancementSelection()
    price = price_booking(
        quote_total=quote.total,
        quote_subtotal=quote.subtotal,
        selection=selection,
        gratuity_percentage=gratuity_percentage,
        gratuity_amount=gratuity_amount,
    )

    try:
        await quote_service.lock_quote(session, quote=quote, user=actor, now=now, commit=False)
        booking = Booking(
            user_id=quote.user_id or actor.id,
            quote_id=quote.id,
            booking_reference=quote.booking_reference,
            service_type=quote.service_type,
            pickup_at=coerce_utc(quote.pickup_at),
            status=BookingStatus.PENDING,
            enhancements=selection.to_dict(),
            enhancement_breakdown=[line.to_dict() for line in price.enhancements.breakdown],
            enhancement_total=price.enhancements.total,
            gratuity_amount=price.gratuity,
            total_amount=price.total,
            special_instructions=special_instructions,
            modification_count=0,
        )
        session.add(booking)
        await session.flush()
        await audit_service.record_event(
            session,
            user_id=actor.id,
            event_type="booking.created",
            description=f"Booking {booking.booking_reference} created",
            payload={
                "booking_id": str(booking.id),
                "quote_id": str(quote.id),
                "total_amount": f"{booking.total_amount:.2f}",
            },
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "Booking %s created from quote %s, total %s", booking.id, quote.id, booking.total_amount
    )
    return await _load(session, booking.id, fresh=True)


async def _transition(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    actor: User,
    target: BookingStatus,
    now: datetime,
) -> Booking:
    async with lock_for(booking_id):
        booking = await _load(session, booking_id, fresh=True)
        _ensure_access(booking, actor)
        _validate_status_transition(booking.status, target)
        previous = booking.status
        booking.status = target
        if target is BookingStatus.CONFIRMED:
            booking.confirmed_at = now
            booking.confirmation_number = generate_confirmation_number()
        elif target is BookingStatus.IN_PROGRESS:
            booking.started_at = now
        elif target is BookingStatus.COMPLETED:
            booking.completed_at = now
        await audit_service.record_event(
            session,
            user_id=actor.id,
            event_type=f"booking.{target.value.lower()}",
            description=f"Booking {booking.booking_reference} {previous.value} -> {target.value}",
            payload={"booking_id": str(booking.id), "from": previous.value, "to": target.value},
        )
        await _commit(session)
        logger.info("Booking %s moved %s -> %s", booking.id, previous.value, target.value)
        return await _load(session, booking_id, fresh=True)


async def confirm_booking(
    session: AsyncSession, *, booking_id: uuid.UUID, actor: User, now: datetime | None = None
) -> Booking:
    return await _transition(
        session, booking_id=booking_id, actor=actor, target=BookingStatus.CONFIRMED, now=_now(now)
    )


async def start_booking(
    session: AsyncSession, *, booking_id: uuid.UUID, actor: User, now: datetime | None = None
) -> Booking:
    return await _transition(
        session, booking_id=booking_id, actor=actor, target=BookingStatus.IN_PROGRESS, now=_now(now)
    )


async def complete_booking(
    session: AsyncSession, *, booking_id: uuid.UUID, actor: User, now: datetime | None = None
) -> Booking:
    return await _transition(
        session, booking_id=booking_id, actor=actor, target=BookingStatus.COMPLETED, now=_now(now)
    )


def _check_modification_window(
    booking: Booking, *, now: datetime, policy: BookingPolicySettings
) -> None:
    if booking.status not in _MODIFIABLE_STATUSES:
        raise InvalidTransitionError(
            f"Bookings in status {booking.status.value} cannot be modified",
            current=booking.status.value,
        )
    cutoff = coerce_utc(booking.pickup_at) - timedelta(hours=policy.modification_cutoff_hours)
    if now > cutoff:
        raise PolicyViolationError(
            f"Modifications close {policy.modification_cutoff_hours} hours before pickup",
            cutoff=cutoff.isoformat(),
        )
    if booking.modification_count >= policy.max_modifications:
        raise PolicyViolationError(
            f"A booking can be modified at most {policy.max_modifications} times",
            modification_count=booking.modification_count,
        )


async def _prepare_modification(
    session: AsyncSession,
    *,
    booking: Booking,
    changes: BookingChanges,
    oracle: DistanceOracle,
    actor: User,
    now: datetime,
) -> ModificationPreview:
    if changes.is_empty():
        raise ValidationError("No changes supplied")
    unknown = set(changes.trip) - _TRIP_FIELDS
    if unknown:
        raise ValidationError("Unsupported trip fields", fields=sorted(unknown))

    trip = TripRequest.from_dict(booking.quote.inputs).merged(changes.trip)
    owner = booking.user
    composed = await pricing_service.compose_quote(
        session,
        trip=trip,
        oracle=oracle,
        customer=await quote_service.customer_facts(session, owner),
        booking_reference=booking.booking_reference,
        now=now,
    )
    selection = changes.enhancements or EnhancementSelection.from_dict(booking.enhancements)
    if changes.gratuity_percentage is None and changes.gratuity_amount is None:
        gratuity_amount: Decimal | None = booking.gratuity_amount
    else:
        gratuity_amount = changes.gratuity_amount
    price = price_booking(
        quote_total=composed.breakdown.total,
        quote_subtotal=composed.breakdown.subtotal,
        selection=selection,
        gratuity_percentage=changes.gratuity_percentage,
        gratuity_amount=gratuity_amount,
    )
    return ModificationPreview(
        composed=composed, price=price, current_total=Decimal(booking.total_amount)
    )


async def preview_modification(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    actor: User,
    changes: BookingChanges,
    oracle: DistanceOracle,
    now: datetime | None = None,
    policy: BookingPolicySettings | None = None,
) -> ModificationPreview:
    """Validate and price a modification without persisting anything."""
    now = _now(now)
    policy = policy or get_booking_policy_settings()
    booking = await get_booking(session, booking_id, actor=actor)
    _check_modification_window(booking, now=now, policy=policy)
    return await _prepare_modification(
        session, booking=booking, changes=changes, oracle=oracle, actor=actor, now=now
    )


async def modify_booking(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    actor: User,
    changes: BookingChanges,
    oracle: DistanceOracle,
    reason: str | None = None,
    now: datetime | None = None,
    policy: BookingPolicySettings | None = None,
) -> tuple[Booking, BookingModification]:
    """Re-price the booking with ``changes`` against a new locked quote.

    Nothing is written unless every check and the new composition succeed.
    """
    now = _now(now)
    policy = policy or get_booking_policy_settings()
    async with lock_for(booking_id):
        booking = await _load(session, booking_id, fresh=True)
        _ensure_access(booking, actor)
        _check_modification_window(booking, now=now, policy=policy)
        preview = await _prepare_modification(
            session, booking=booking, changes=changes, oracle=oracle, actor=actor, now=now
        )

        previous_quote: Quote = booking.quote
        previous_total = Decimal(booking.total_amount)
        try:
            new_quote = quote_service.build_quote(
                preview.composed, user_id=previous_quote.user_id or booking.user_id
            )
            new_quote.locked_at = now
            session.add(new_quote)
            await session.flush()

            modification = BookingModification(
                booking_id=booking.id,
                sequence=booking.modification_count + 1,
                previous_quote_id=previous_quote.id,
                new_quote_id=new_quote.id,
                changes=changes.to_dict(),
                previous_total=previous_total,
                new_total=preview.price.total,
                price_difference=preview.price_difference,
                reason=reason,
                modified_by_id=actor.id,
                created_at=now,
            )
            session.add(modification)

            booking.quote = new_quote
            booking.service_type = new_quote.service_type
            booking.pickup_at = new_quote.pickup_at
            booking.enhancements = (
                changes.enhancements or EnhancementSelection.from_dict(booking.enhancements)
            ).to_dict()
            booking.enhancement_breakdown = [
                line.to_dict() for line in preview.price.enhancements.breakdown
            ]
            booking.enhancement_total = preview.price.enhancements.total
            booking.gratuity_amount = preview.price.gratuity
            booking.total_amount = preview.price.total
            if changes.special_instructions is not None:
                booking.special_instructions = changes.special_instructions
            booking.modification_count += 1

            await audit_service.record_event(
                session,
                user_id=actor.id,
                event_type="booking.modified",
                description=f"Booking {booking.booking_reference} modified",
                payload={
                    "booking_id": str(booking.id),
                    "sequence": modification.sequence,
                    "previous_total": f"{previous_total:.2f}",
                    "new_total": f"{preview.price.total:.2f}",
                },
            )
            await _commit(session)
        except Exception:
            await session.rollback()
            raise

        logger.info(
            "Booking %s modified (#%s): %s -> %s",
            booking_id,
            modification.sequence,
            previous_total,
            preview.price.total,
        )
        refreshed = await _load(session, booking_id, fresh=True)
        return refreshed, refreshed.modifications[-1]


def _has_trip_protection(booking: Booking) -> bool:
    return bool((booking.enhancements or {}).get("trip_protection"))


async def cancellation_quote(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    actor: User,
    reason: str = "customer_request",
    now: datetime | None = None,
    policy: CancellationPolicy | None = None,
) -> CancellationOutcome:
    """Refund the policy would grant if the booking were cancelled now."""
    booking = await get_booking(session, booking_id, actor=actor)
    _validate_status_transition(booking.status, BookingStatus.CANCELLED)
    policy = policy or CancellationPolicy.from_settings()
    return policy.evaluate(
        total=Decimal(booking.total_amount),
        pickup_at=booking.pickup_at,
        cancelled_at=_now(now),
        reason=reason,
        has_trip_protection=_has_trip_protection(booking),
    )


async def cancel_booking(
    session: AsyncSession,
    *,
    booking_id: uuid.UUID,
    actor: User,
    reason: str,
    notes: str | None = None,
    now: datetime | None = None,
    policy: CancellationPolicy | None = None,
) -> Booking:
    if not reason or not reason.strip():
        raise ValidationError("A cancellation reason is required", field="reason")
    now = _now(now)
    policy = policy or CancellationPolicy.from_settings()
    async with lock_for(booking_id):
        booking = await _load(session, booking_id, fresh=True)
        _ensure_access(booking, actor)
        _validate_status_transition(booking.status, BookingStatus.CANCELLED)
        outcome = policy.evaluate(
            total=Decimal(booking.total_amount),
            pickup_at=booking.pickup_at,
            cancelled_at=now,
            reason=reason.strip(),
            has_trip_protection=_has_trip_protection(booking),
        )
        try:
            booking.cancellation = BookingCancellation(
                reason=reason.strip(),
                notes=notes,
                cancelled_by_id=actor.id,
                hours_before_pickup=outcome.hours_before_pickup,
                refund_percentage=outcome.refund_percentage,
                refund_amount=outcome.refund_amount,
                cancellation_fee=outcome.cancellation_fee,
                trip_protection_applied=outcome.trip_protection_applied,
                cancelled_at=now,
            )
            booking.status = BookingStatus.CANCELLED
            booking.cancelled_at = now
            await audit_service.record_event(
                session,
                user_id=actor.id,
                event_type="booking.cancelled",
                description=f"Booking {booking.booking_reference} cancelled",
                payload={"booking_id": str(booking.id), **outcome.to_dict()},
            )
            await _commit(session)
        except Exception:
            await session.rollback()
            raise

        logger.info(
            "Booking %s cancelled (%s tier), refund %s",
            booking_id,
            outcome.tier,
            outcome.refund_amount,
        )
        return await _load(session, booking_id, fresh=True)
