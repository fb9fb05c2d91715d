"""Error kinds raised by the booking engine and the appointment store.

Each kind is its own exception class so callers can branch on the type, and
carries a stable ``kind`` string for logs and API payloads.
"""


class BookingError(Exception):
    kind = 'booking_error'
    default_message = 'Booking operation failed.'

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRange(BookingError):
    kind = 'invalid_range'
    default_message = 'Closing time must be after opening time.'


class InvalidSlot(BookingError):
    kind = 'invalid_slot'
    default_message = 'Requested time is not a bookable slot.'


class PastSlot(BookingError):
    kind = 'past_slot'
    default_message = 'Appointments must be scheduled in the future.'


class SlotConflict(BookingError):
    kind = 'slot_conflict'
    default_message = 'This time is no longer available, please choose another.'


class AppointmentNotFound(BookingError):
    kind = 'not_found'
    default_message = 'Appointment not found.'


class InvalidTransition(BookingError):
    kind = 'invalid_transition'
    default_message = 'Cancelled appointments cannot be changed.'


class StoreUnavailable(BookingError):
    kind = 'store_unavailable'
    default_message = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class StoreConflict(BookingError):
    """Storage-level uniqueness violation on an active slot."""

    kind = 'store_conflict'
    default_message = 'An active appointment already holds this slot.'


class CorruptAppointment(BookingError):
    """A stored appointment row that cannot be read, such as an unknown status label."""

    kind = 'corrupt_record'
    default_message = 'Stored appointment data could not be read.'
