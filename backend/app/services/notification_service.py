"""Email and SMS notification helpers."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Iterable

from fastapi import BackgroundTasks

from app.core.config import get_settings
from app.models.booking import Booking, BookingCancellation, BookingModification
from app.models.user import User

logger = logging.getLogger(__name__)

SIGNATURE = "-- Stable Ride"


def schedule_email(
    background_tasks: BackgroundTasks,
    *,
    recipients: Iterable[str],
    subject: str,
    body: str,
) -> None:
    """Queue an email to be delivered asynchronously."""
    recipients_list = [addr for addr in recipients if addr]
    if not recipients_list:
        logger.debug("No recipients provided for email; skipping")
        return
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_port:
        logger.debug("SMTP disabled; skipping email to %s", recipients_list)
        return
    background_tasks.add_task(_send_email, recipients_list, subject, body)


def schedule_sms(
    background_tasks: BackgroundTasks,
    *,
    phone_numbers: Iterable[str],
    message: str,
) -> None:
    """Queue an SMS notification (logged only, no provider wired)."""
    numbers = [number for number in phone_numbers if number]
    if not numbers:
        logger.debug("No phone numbers provided for SMS; skipping")
        return
    for number in numbers:
        background_tasks.add_task(_log_sms_stub, number, message)


def _pickup_label(booking: Booking) -> str:
    return booking.pickup_at.strftime("%Y-%m-%d %H:%M UTC")


def build_welcome_email(*, first_name: str) -> tuple[str, str]:
    subject = "Welcome to Stable Ride"
    body = (
        f"Hi {first_name},\n\n"
        "Thanks for creating a Stable Ride account. "
        "You can now request quotes and book chauffeured rides.\n\n"
        f"{SIGNATURE}"
    )
    return subject, body


def build_booking_confirmation_email(
    *,
    first_name: str,
    booking_reference: str,
    confirmation_number: str,
    pickup_address: str,
    pickup_at: str,
    total: str,
) -> tuple[str, str]:
    subject = f"Ride confirmed: {booking_reference}"
    body = (
        f"Hi {first_name},\n\n"
        f"Your ride {booking_reference} is confirmed.\n"
        f"Confirmation number: {confirmation_number}\n"
        f"Pickup: {pickup_address}\n"
        f"Pickup time: {pickup_at}\n"
        f"Total: ${total}\n\n"
        "Need a change? Modifications are possible until shortly before pickup.\n\n"
        f"{SIGNATURE}"
    )
    return subject, body


def build_modification_email(
    *,
    first_name: str,
    booking_reference: str,
    pickup_at: str,
    previous_total: str,
    new_total: str,
) -> tuple[str, str]:
    subject = f"Ride updated: {booking_reference}"
    body = (
        f"Hi {first_name},\n\n"
        f"Your ride {booking_reference} has been updated.\n"
        f"Pickup time: {pickup_at}\n"
        f"Previous total: ${previous_total}\n"
        f"New total: ${new_total}\n\n"
        f"{SIGNATURE}"
    )
    return subject, body


def build_cancellation_email(
    *,
    first_name: str,
    booking_reference: str,
    refund_amount: str,
    refund_percentage: str,
) -> tuple[str, str]:
    subject = f"Ride cancelled: {booking_reference}"
    body = (
        f"Hi {first_name},\n\n"
        f"Your ride {booking_reference} has been cancelled.\n"
        f"Refund: ${refund_amount} ({refund_percentage}% of the booking total, less fees)\n\n"
        f"{SIGNATURE}"
    )
    return subject, body


def _send_email(recipients: list[str], subject: str, body: str) -> None:
    settings = get_settings()
    if not settings.smtp_host or not settings.smtp_port:
        logger.info("SMTP settings missing; skipping email delivery to %s", recipients)
        return

    message = EmailMessage()
    message["Subject"] = subject
    message["To"] = ", ".join(recipients)
    message["From"] = settings.smtp_from or settings.smtp_username or "no-reply@stableride.local"
    message.set_content(body)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=5) as smtp:
            if settings.smtp_username and settings.smtp_password:
                smtp.starttls()
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)
        logger.info("Email sent to %s", recipients)
    except Exception as exc:  # pragma: no cover - logging side-effect only
        logger.exception("Failed to send email to %s: %s", recipients, exc)


def _log_sms_stub(phone_number: str, message: str) -> None:
    logger.info("SMS to %s: %s", phone_number, message)


def notify_welcome(user: User, background_tasks: BackgroundTasks) -> None:
    subject, body = build_welcome_email(first_name=user.first_name)
    schedule_email(background_tasks, recipients=[user.email], subject=subject, body=body)


def notify_booking_confirmation(
    booking: Booking, user: User, background_tasks: BackgroundTasks
) -> None:
    subject, body = build_booking_confirmation_email(
        first_name=user.first_name,
        booking_reference=booking.booking_reference,
        confirmation_number=booking.confirmation_number or "",
        pickup_address=booking.quote.pickup_address,
        pickup_at=_pickup_label(booking),
        total=f"{booking.total_amount:.2f}",
    )
    schedule_email(background_tasks, recipients=[user.email], subject=subject, body=body)
    if user.phone_number:
        schedule_sms(
            background_tasks,
            phone_numbers=[user.phone_number],
            message=(
                f"Stable Ride: ride {booking.booking_reference} confirmed for "
                f"{_pickup_label(booking)}. Conf {booking.confirmation_number}."
            ),
        )


def notify_booking_modified(
    booking: Booking,
    modification: BookingModification,
    user: User,
    background_tasks: BackgroundTasks,
) -> None:
    subject, body = build_modification_email(
        first_name=user.first_name,
        booking_reference=booking.booking_reference,
        pickup_at=_pickup_label(booking),
        previous_total=f"{modification.previous_total:.2f}",
        new_total=f"{modification.new_total:.2f}",
    )
    schedule_email(background_tasks, recipients=[user.email], subject=subject, body=body)


def notify_booking_cancelled(
    booking: Booking,
    cancellation: BookingCancellation,
    user: User,
    background_tasks: BackgroundTasks,
) -> None:
    subject, body = build_cancellation_email(
        first_name=user.first_name,
        booking_reference=booking.booking_reference,
        refund_amount=f"{cancellation.refund_amount:.2f}",
        refund_percentage=f"{cancellation.refund_percentage:.0f}",
    )
    schedule_email(background_tasks, recipients=[user.email], subject=subject, body=body)
    if user.phone_number:
        schedule_sms(
            background_tasks,
            phone_numbers=[user.phone_number],
            message=(
                f"Stable Ride: ride {booking.booking_reference} cancelled. "
                f"Refund ${cancellation.refund_amount:.2f}."
            ),
        )
