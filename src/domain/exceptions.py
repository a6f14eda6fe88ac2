"""
Error taxonomy for the ride booking core.

Every error that crosses a service boundary derives from ``RydyError`` and
carries the HTTP status it maps to, so the API layer needs a single handler.
``PreconditionFailed`` is raised by the repository only; the seat inventory
engine always reclassifies it before it leaves the service layer.
"""

from typing import Any


class RydyError(Exception):
    """Base exception for all ride booking errors."""

    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.details = details or {}


class PermanentError(RydyError):
    """Errors that will not succeed on retry without a change of input."""


class TransientError(RydyError):
    """Errors that may succeed on retry."""


class ValidationError(PermanentError):
    status_code = 400
    default_message = "Invalid request"


class PermissionDeniedError(PermanentError):
    status_code = 403
    default_message = "Not authorized to modify this ride"


class NotFoundError(PermanentError):
    status_code = 404
    default_message = "Ride not found"


class AlreadyBookedError(PermanentError):
    status_code = 400
    default_message = "You have already booked this ride."


class NoSeatsAvailableError(PermanentError):
    status_code = 400
    default_message = "No seats available"


class NotBookedError(PermanentError):
    status_code = 400
    default_message = "You have not booked this ride."


class RideInactiveError(PermanentError):
    status_code = 409
    default_message = "Ride is no longer active"


class ConcurrencyConflictError(TransientError):
    status_code = 409
    default_message = "Ride was modified concurrently, please retry"


class PreconditionFailed(Exception):
    """A conditional write found the stored state did not match its predicate."""

    def __init__(self, ride_id: str):
        super().__init__(f"Precondition failed for ride {ride_id}")
        self.ride_id = ride_id
