# ============================================================
# errors.py — Error taxonomy of the booking lifecycle
# ------------------------------------------------------------
# Every failure the lifecycle can report carries the status
# code and message that end up in the response envelope.
# AuditWriteError is the exception: the orchestrator logs it
# and never lets it reach the caller.
# ============================================================
from typing import Optional


class ParcelBookingError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ParcelBookingError):
    status_code = 400
    default_message = "Invalid request format"


class AuthenticationError(ParcelBookingError):
    status_code = 401
    default_message = "Invalid user claims"


class NotFoundError(ParcelBookingError):
    status_code = 404
    default_message = "Parcel booking not found"


class PreconditionError(ParcelBookingError):
    status_code = 400
    default_message = "Parcel booking is not in the required status"


class ExternalServiceError(ParcelBookingError):
    """Transport failure, timeout, non-2xx status or malformed body from the DMS."""

    status_code = 502
    default_message = "External service error"

    def __init__(
        self,
        message: Optional[str] = None,
        upstream_status: Optional[int] = None,
        upstream_body: Optional[str] = None,
    ):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body


class PersistenceError(ParcelBookingError):
    status_code = 500
    default_message = "Failed to persist parcel booking"


class ConflictError(PersistenceError):
    # unique barcode or one active booking per (owner, post code)
    status_code = 409
    default_message = "Parcel booking conflicts with an existing record"


class AuditWriteError(ParcelBookingError):
    default_message = "Failed to create parcel booking status event"
