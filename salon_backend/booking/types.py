"""Value types shared by the booking engine and its store."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum


class AppointmentStatus(str, Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'

    @property
    def is_active(self) -> bool:
        return self is not AppointmentStatus.CANCELLED

    @classmethod
    def parse(cls, value: str) -> 'AppointmentStatus':
        normalized = (value or '').strip().lower()
        if normalized in LEGACY_STATUS_LABELS:
            return LEGACY_STATUS_LABELS[normalized]
        return cls(normalized)


# Labels written by the first version of the booking UI.
LEGACY_STATUS_LABELS = {
    'in attesa': AppointmentStatus.PENDING,
    'confermato': AppointmentStatus.CONFIRMED,
    'cancellato': AppointmentStatus.CANCELLED,
}

ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


class Role(str, Enum):
    CLIENT = 'client'
    ADMIN = 'admin'


@dataclass(frozen=True)
class NewAppointment:
    client_id: str
    service_name: str
    duration_minutes: int
    date: date
    start_time: time
    status: AppointmentStatus = AppointmentStatus.PENDING
    notes: str | None = None
    # Grid slots the appointment holds; just its start when empty.
    slot_times: tuple[time, ...] = ()


@dataclass(frozen=True)
class AppointmentRecord:
    id: str
    client_id: str
    service_name: str
    duration_minutes: int
    date: date
    start_time: time
    status: AppointmentStatus
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)
