"""Booking error taxonomy.

Every failure the booking core can report is a DRF ``APIException`` with a
stable ``default_code`` so API clients can branch on it.
"""

from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler


class BookingError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Booking request failed."
    default_code = "booking_error"

    @property
    def code(self):
        return self.detail.code


class InvalidBookingInput(BookingError):
    """Request rejected before any lock was taken."""


class MissingFields(InvalidBookingInput):
    default_detail = "Missing required fields."
    default_code = "missing_fields"

    def __init__(self, fields=(), detail=None, code=None):
        self.fields = list(fields)
        if detail is None and self.fields:
            detail = f"Missing required fields: {', '.join(self.fields)}."
        super().__init__(detail, code)


class InvalidGuestCount(InvalidBookingInput):
    default_detail = "Guests must be an integer between 1 and 20."
    default_code = "invalid_guest_count"


class InvalidFormat(InvalidBookingInput):
    default_detail = "Invalid date format. Use YYYY-MM-DD."
    default_code = "invalid_date_format"


class InvalidOrder(InvalidBookingInput):
    default_detail = "Check-out date must be after check-in date."
    default_code = "invalid_date_order"


class PastCheckIn(InvalidBookingInput):
    default_detail = "Check-in date cannot be in the past."
    default_code = "past_check_in"


class InvalidRequesterId(InvalidBookingInput):
    default_detail = "Requester id is too long."
    default_code = "invalid_requester_id"


class RoomNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Room not found or inactive."
    default_code = "room_not_found"


class RoomUnavailable(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Room is no longer available for the selected dates."
    default_code = "room_unavailable"


class LockTimeout(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Timed out waiting for the room to become free. Try again."
    default_code = "lock_timeout"


class ReferenceCollision(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Generated booking reference is already in use."
    default_code = "reference_collision"


class BookingCreationFailed(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Failed to create booking."
    default_code = "booking_creation_failed"


class BookingNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Booking not found."
    default_code = "booking_not_found"


class DataStoreUnavailable(BookingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Database service unavailable."
    default_code = "data_store_unavailable"


class InvalidStatusTransition(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Booking cannot move to the requested status."
    default_code = "invalid_status_transition"


def exception_handler(exc, context):
    """Render booking errors as ``{success, error, message, timestamp}``."""
    response = drf_exception_handler(exc, context)
    if response is None or not isinstance(exc, BookingError):
        return response

    response.data = {
        "success": False,
        "error": exc.code,
        "message": str(exc.detail),
        "timestamp": timezone.now().isoformat(),
    }
    if isinstance(exc, MissingFields):
        response.data["fields"] = exc.fields
    return response
