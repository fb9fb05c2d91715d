"""
Mapping from booking error kinds to HTTP responses.
Routes catch BookingError once and hand it here so status codes stay consistent.
"""
from fastapi import HTTPException, status

from salon_backend.booking.errors import (
    AppointmentNotFound,
    BookingError,
    CorruptAppointment,
    InvalidRange,
    InvalidSlot,
    InvalidTransition,
    PastSlot,
    SlotConflict,
    StoreUnavailable,
)

# (error class, status code). First match wins.
BOOKING_ERROR_STATUS: list[tuple[type[BookingError], int]] = [
    (InvalidSlot, status.HTTP_400_BAD_REQUEST),
    (PastSlot, status.HTTP_400_BAD_REQUEST),
    (AppointmentNotFound, status.HTTP_404_NOT_FOUND),
    (SlotConflict, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidRange, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (CorruptAppointment, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def booking_error_to_http(exc: BookingError) -> HTTPException:
    for error_type, status_code in BOOKING_ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
