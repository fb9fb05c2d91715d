"""One user-facing booking attempt on top of the availability engine."""

import logging
from dataclasses import dataclass, field
from datetime import date, time

from salon_backend.booking.calendar import Slot
from salon_backend.booking.engine import AvailabilityEngine
from salon_backend.booking.errors import SlotConflict
from salon_backend.booking.types import AppointmentRecord, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    date: date
    start_time: time
    client_id: str
    service_name: str
    duration_minutes: int
    notes: str | None = None
    role: Role = Role.CLIENT
    allow_past: bool = False


@dataclass(frozen=True)
class BookingOutcome:
    appointment: AppointmentRecord | None = None
    available_slots: list[Slot] = field(default_factory=list)
    message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.appointment is not None


class BookingWorkflow:
    """Browse, then book; on a lost slot hand back a fresh list instead of retrying.

    Nothing is held between browsing and booking since a person chooses in
    between, and the workflow never picks a different slot on the caller's
    behalf.
    """

    def __init__(self, engine: AvailabilityEngine):
        self.engine = engine

    def browse(self, slot_date: date, duration_minutes: int | None = None) -> list[Slot]:
        return self.engine.get_available_slots(slot_date, duration_minutes)

    def book(self, request: BookingRequest) -> BookingOutcome:
        try:
            appointment = self.engine.reserve(
                request.date,
                request.start_time,
                request.client_id,
                request.service_name,
                request.duration_minutes,
                request.notes,
                role=request.role,
                allow_past=request.allow_past,
            )
        except SlotConflict as conflict:
            logger.info(
                'Booking for client %s at %s %s conflicted; returning refreshed availability.',
                request.client_id,
                request.date,
                request.start_time.strftime('%H:%M'),
            )
            refreshed = self.engine.get_available_slots(request.date, request.duration_minutes)
            return BookingOutcome(available_slots=refreshed, message=conflict.message)

        return BookingOutcome(appointment=appointment)
