"""
Error taxonomy for the booking core.

Raised by the services and repositories, translated to HTTP responses by the
handlers registered in ``salon_booking.main``.
"""


class BookingError(Exception):
    """Base exception for all booking errors."""

    code = "booking_error"

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(BookingError):
    """Raised for malformed or missing input the core cannot work with."""

    code = "validation_error"


class NotFoundError(BookingError):
    """Raised when a staff member, customer, service or appointment does not exist."""

    code = "not_found"


class ConflictError(BookingError):
    """Raised when the requested interval overlaps an active appointment."""

    code = "conflict"


class TransientStoreError(BookingError):
    """Raised when the persistence layer fails with an I/O error."""

    code = "store_unavailable"
