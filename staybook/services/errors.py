"""Booking domain errors.

Services raise these; ``staybook.main`` renders them as ``{"detail": ...}``
responses with the attached status code, so every message here is written
for the end user and never carries internal state.
"""

from fastapi import status


class BookingError(Exception):
    """Base class for expected booking-flow failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    detail: str = "Booking request failed"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class InvalidRange(BookingError):
    detail = "Check-out must be after check-in"


class PastDateError(BookingError):
    detail = "Cannot book past dates"


class ListingNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Listing not found"


class BookingNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Booking not found"


class GuestCountError(BookingError):
    detail = "Invalid number of guests"


class DatesUnavailable(BookingError):
    """The requested range overlaps an active booking. Expected; retry with other dates."""

    status_code = status.HTTP_409_CONFLICT
    detail = "Dates unavailable"


class NotAuthorized(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Not authorized to modify this booking"


class AlreadyCancelled(BookingError):
    detail = "Booking already cancelled"


class AlreadyCompleted(BookingError):
    detail = "Cannot change a completed booking"


class InvalidStatusTransition(BookingError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Booking status cannot be changed that way"


class PaymentIncomplete(BookingError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    detail = "Payment not completed"


class PaymentGatewayUnavailable(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Payments are not configured"


class ReconciliationConflict(BookingError):
    """A paid checkout whose dates were taken before the booking was confirmed.

    Always accompanied by a ``ReconciliationFailure`` row for refund follow-up.
    """

    status_code = status.HTTP_409_CONFLICT
    detail = "Your payment was received but the dates are no longer available. A refund will be issued."

    def __init__(self, session_id: str, detail: str | None = None) -> None:
        self.session_id = session_id
        super().__init__(detail)
