"""Slot generation and calendar bucketing for the salon's business hours."""

import calendar as _calendar
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from salon_backend.booking.errors import InvalidRange, InvalidSlot

DEFAULT_SLOT_MINUTES = 30
MONDAY = 0
SUNDAY = 6

WEEKDAY_NAMES = {
    'monday': 0,
    'tuesday': 1,
    'wednesday': 2,
    'thursday': 3,
    'friday': 4,
    'saturday': 5,
    'sunday': 6,
}


@dataclass(frozen=True, order=True)
class Slot:
    date: date
    start_time: time
    duration_minutes: int = DEFAULT_SLOT_MINUTES

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    @property
    def label(self) -> str:
        return self.start_time.strftime('%H:%M')


@dataclass(frozen=True)
class BusinessHours:
    open_time: time | None = None
    close_time: time | None = None
    slot_minutes: int = DEFAULT_SLOT_MINUTES

    def __post_init__(self) -> None:
        if self.slot_minutes <= 0:
            raise InvalidRange('Slot length must be a positive number of minutes.')
        if (self.open_time is None) != (self.close_time is None):
            raise InvalidRange('Opening and closing time must both be set, or neither for a closed day.')
        if self.open_time is not None and self.close_time <= self.open_time:
            raise InvalidRange(
                f'Closing time {self.close_time:%H:%M} must be after opening time {self.open_time:%H:%M}.'
            )

    @classmethod
    def closed(cls, slot_minutes: int = DEFAULT_SLOT_MINUTES) -> 'BusinessHours':
        return cls(slot_minutes=slot_minutes)

    @property
    def is_closed(self) -> bool:
        return self.open_time is None


def generate_day_slots(slot_date: date, hours: BusinessHours) -> list[Slot]:
    if hours.is_closed:
        return []

    step = timedelta(minutes=hours.slot_minutes)
    current = datetime.combine(slot_date, hours.open_time)
    day_close = datetime.combine(slot_date, hours.close_time)

    slots: list[Slot] = []
    while current + step <= day_close:
        slots.append(Slot(date=slot_date, start_time=current.time(), duration_minutes=hours.slot_minutes))
        current += step

    return slots


def iterate_slot_starts(
    start_time: datetime,
    end_time: datetime,
    increment_minutes: int,
    origin: datetime | None = None,
) -> list[datetime]:
    """Grid starts covered by ``[start_time, end_time)``, rounding a misaligned start up.

    The grid is anchored at ``origin``, midnight of ``start_time``'s day by default.
    """
    current = start_time.replace(second=0, microsecond=0)
    anchor = origin or datetime.combine(current.date(), time.min)
    offset = int((current - anchor).total_seconds() // 60) % increment_minutes

    if offset:
        current += timedelta(minutes=increment_minutes - offset)

    starts: list[datetime] = []
    while current < end_time:
        starts.append(current)
        current += timedelta(minutes=increment_minutes)

    return starts


def slots_needed(duration_minutes: int, slot_minutes: int = DEFAULT_SLOT_MINUTES) -> int:
    if duration_minutes <= 0:
        raise InvalidSlot('Service duration must be a positive number of minutes.')
    return -(-duration_minutes // slot_minutes)


def week_of(day: date, week_start: int = MONDAY) -> tuple[date, date]:
    offset = (day.weekday() - week_start) % 7
    start = day - timedelta(days=offset)
    return start, start + timedelta(days=6)


def month_of(day: date) -> tuple[date, date]:
    last_day = _calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def days_between(start: date, end: date) -> list[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def parse_weekday(value: str | int) -> int:
    if isinstance(value, int):
        weekday = value
    else:
        normalized = value.strip().lower()
        weekday = WEEKDAY_NAMES[normalized] if normalized in WEEKDAY_NAMES else int(normalized)
    if not MONDAY <= weekday <= SUNDAY:
        raise ValueError(f'Weekday must be between 0 (Monday) and 6 (Sunday), got {value!r}.')
    return weekday


@dataclass(frozen=True)
class BusinessCalendar:
    """Opening hours per weekday plus one-off closures.

    Weekdays missing from ``weekly_hours`` are closed.
    """

    weekly_hours: Mapping[int, BusinessHours]
    closed_dates: frozenset[date] = field(default_factory=frozenset)
    week_start: int = MONDAY
    slot_minutes: int = DEFAULT_SLOT_MINUTES

    @classmethod
    def uniform(
        cls,
        open_time: time,
        close_time: time,
        *,
        closed_weekdays: Iterable[int] = (),
        closed_dates: Iterable[date] = (),
        week_start: int = MONDAY,
        slot_minutes: int = DEFAULT_SLOT_MINUTES,
    ) -> 'BusinessCalendar':
        hours = BusinessHours(open_time, close_time, slot_minutes)
        closed = set(closed_weekdays)
        return cls(
            weekly_hours={weekday: hours for weekday in range(7) if weekday not in closed},
            closed_dates=frozenset(closed_dates),
            week_start=week_start,
            slot_minutes=slot_minutes,
        )

    def hours_for(self, day: date) -> BusinessHours:
        if day in self.closed_dates:
            return BusinessHours.closed(self.slot_minutes)
        return self.weekly_hours.get(day.weekday()) or BusinessHours.closed(self.slot_minutes)

    def day_slots(self, day: date) -> list[Slot]:
        return generate_day_slots(day, self.hours_for(day))

    def week_of(self, day: date) -> tuple[date, date]:
        return week_of(day, self.week_start)

    def month_of(self, day: date) -> tuple[date, date]:
        return month_of(day)
