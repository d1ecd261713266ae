"""Booking lifecycle API."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, BackgroundTasks, status

from app.api.deps import CurrentUser, DbSession, Oracle, StaffUser
from app.models.booking import BookingStatus
from app.schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingModificationRead,
    BookingModify,
    BookingRead,
    CancellationQuoteRead,
    ModificationPreviewRead,
)
from app.services import booking_service, notification_service

router = APIRouter()


@router.get("", response_model=list[BookingRead], summary="List bookings")
async def list_bookings(
    session: DbSession,
    current_user: CurrentUser,
    status_filter: BookingStatus | None = None,
    skip: int = 0,
    limit: int = 50,
) -> list[BookingRead]:
    bookings = await booking_service.list_bookings(
        session,
        actor=current_user,
        status=status_filter,
        skip=skip,
        limit=min(limit, 100),
    )
    return [BookingRead.model_validate(booking) for booking in bookings]


@router.post(
    "",
    response_model=BookingRead,
    status_code=status.HTTP_201_CREATED,
    summary="Book a quote",
)
async def create_booking(
    payload: BookingCreate,
    session: DbSession,
    current_user: CurrentUser,
) -> BookingRead:
    booking = await booking_service.create_booking(
        session,
        quote_id=payload.quote_id,
        actor=current_user,
        enhancements=payload.enhancements.to_selection() if payload.enhancements else None,
        gratuity_percentage=payload.gratuity_percentage,
        gratuity_amount=payload.gratuity_amount,
        special_instructions=payload.special_instructions,
    )
    return BookingRead.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingRead, summary="Get booking")
async def get_booking(
    booking_id: uuid.UUID,
    session: DbSession,
    current_user: CurrentUser,
) -> BookingRead:
    booking = await booking_service.get_booking(session, booking_id, actor=current_user)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/confirm", response_model=BookingRead, summary="Confirm booking")
async def confirm_booking(
    booking_id: uuid.UUID,
    session: DbSession,
    current_user: CurrentUser,
    background_tasks: BackgroundTasks,
) -> BookingRead:
    booking = await booking_service.confirm_booking(
        session, booking_id=booking_id, actor=current_user
    )
    notification_service.notify_booking_confirmation(booking, booking.user, background_tasks)
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/start", response_model=BookingRead, summary="Start ride")
async def start_booking(
    booking_id: uuid.UUID,
    session: DbSession,
    current_user: StaffUser,
) -> BookingRead:
    booking = await booking_service.start_booking(
        session, booking_id=booking_id, actor=current_user
    )
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingRead, summary="Complete ride")
async def complete_booking(
    booking_id: uuid.UUID,
    session: DbSession,
    current_user: StaffUser,
) -> BookingRead:
    booking = await booking_service.complete_booking(
        session, booking_id=booking_id, actor=current_user
    )
    return BookingRead.model_validate(booking)


@router.post("/{booking_id}/modify", response_model=BookingRead, summary="Modify booking")
async def modify_booking(
    booking_id: uuid.UUID,
    payload: BookingModify,
    session: DbSession,
    current_user: CurrentUser,
    oracle: Oracle,
    background_tasks: BackgroundTasks,
) -> BookingRead:
    booking, modification = await booking_service.modify_booking(
        session,
        booking_id=booking_id,
        actor=current_user,
        changes=payload.to_changes(),
        oracle=oracle,
        reason=payload.reason,
    )
    notification_service.notify_booking_modified(
        booking, modification, booking.user, background_tasks
    )
    return BookingRead.model_validate(booking)


@router.post(
    "/{booking_id}/modify/preview",
    response_model=ModificationPreviewRead,
    summary="Price a modification without applying it",
)
async def preview_modification(
    booking_id: uuid.UUID,
    payload: BookingModify,
    session: DbSession,
    current_user: CurrentUser,
    oracle: Oracle,
) -> ModificationPreviewRead:
    preview = await booking_service.preview_modification(
        session,
        booking_id=booking_id,
        actor=current_user,
        changes=payload.to_changes(),
        oracle=oracle,
    )
    return ModificationPreviewRead.model_validate(preview.to_dict())


@router.get(
    "/{booking_id}/modifications",
    response_model=list[BookingModificationRead],
    summary="Modification history",
)
async def list_modifications(
    booking_id: uuid.UUID,
    session: DbSession,
    current_user: CurrentUser,
) -> list[BookingModificationRead]:
    modifications = await booking_service.list_modifications(
        session, booking_id, actor=current_user
    )
    return [BookingModificationRead.model_validate(item) for item in modifications]


@router.get(
    "/{booking_id}/cancellation-quote",
    response_model=CancellationQuoteRead,
    summary="Refund if cancelled now",
)
async def cancellation_quote(
    booking_id: uuid.UUID,
    session: DbSession,
    current_user: CurrentUser,
    reason: str = "customer_request",
) -> CancellationQuoteRead:
    outcome = await booking_service.cancellation_quote(
        session, booking_id=booking_id, actor=current_user, reason=reason
    )
    return CancellationQuoteRead.model_validate(outcome.to_dict())


@router.post("/{booking_id}/cancel", response_model=BookingRead, summary="Cancel booking")
async def cancel_booking(
    booking_id: uuid.UUID,
    payload: BookingCancel,
    session: DbSession,
    current_user: CurrentUser,
    background_tasks: BackgroundTasks,
) -> BookingRead:
    booking = await booking_service.cancel_booking(
        session,
        booking_id=booking_id,
        actor=current_user,
        reason=payload.reason,
        notes=payload.notes,
    )
    if booking.cancellation is not None:
        notification_service.notify_booking_cancelled(
            booking, booking.cancellation, booking.user, background_tasks
        )
    return BookingRead.model_validate(booking)
