"""Domain exception hierarchy shared by services and the API layer."""

from __future__ import annotations

from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse


class StableRideError(Exception):
    """Base class for errors the API reports to callers."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "ERROR"
    default_message = "Request could not be processed."

    def __init__(self, message: str | None = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(StableRideError):
    """Malformed or incomplete request."""

    code = "VALIDATION_ERROR"
    default_message = "Validation error."


class NotFoundError(StableRideError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Resource not found."


class PermissionDeniedError(StableRideError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action."


class QuoteError(StableRideError):
    """Quote could not be produced or used."""

    code = "QUOTE_ERROR"
    default_message = "Quote could not be produced."


class OutOfServiceAreaError(QuoteError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "OUT_OF_SERVICE_AREA"
    default_message = "Location is outside the service area."


class DistanceLookupError(QuoteError):
    """Distance oracle failed; never defaulted to zero."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "DISTANCE_LOOKUP_FAILED"
    default_message = "Distance lookup failed."


class QuoteExpiredError(QuoteError, NotFoundError):
    status_code = status.HTTP_410_GONE
    code = "QUOTE_EXPIRED"
    default_message = "Quote has expired."


class QuoteLockedError(QuoteError):
    status_code = status.HTTP_409_CONFLICT
    code = "QUOTE_LOCKED"
    default_message = "Quote is locked."


class PolicyViolationError(StableRideError):
    """Lifecycle action attempted outside the window the policy allows."""

    status_code = status.HTTP_409_CONFLICT
    code = "POLICY_VIOLATION"
    default_message = "Action is not allowed by booking policy."


class InvalidTransitionError(PolicyViolationError):
    code = "INVALID_TRANSITION"
    default_message = "Invalid booking status transition."


class ConcurrentModificationError(StableRideError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONCURRENT_MODIFICATION"
    default_message = "Booking was changed by another request; retry."


class RuleConfigurationError(ValidationError):
    """Administrator-entered pricing rule is structurally invalid."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "RULE_CONFIGURATION_ERROR"
    default_message = "Pricing rule is invalid."


async def stableride_error_handler(_: Request, exc: StableRideError) -> JSONResponse:
    """Render a domain error as a JSON response."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


__all__ = [
    "ConcurrentModificationError",
    "DistanceLookupError",
    "InvalidTransitionError",
    "NotFoundError",
    "OutOfServiceAreaError",
    "PermissionDeniedError",
    "PolicyViolationError",
    "QuoteError",
    "QuoteExpiredError",
    "QuoteLockedError",
    "RuleConfigurationError",
    "StableRideError",
    "ValidationError",
    "stableride_error_handler",
]
