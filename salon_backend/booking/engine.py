"""Slot availability and conflict-checked booking.

All slot arithmetic and the one-active-appointment-per-slot rule live here.
Occupancy is measured against the day's own slot intervals, so an appointment
blocks every slot it overlaps. The conflict check before each write is
optimistic: the store's per-slot unique constraint decides races, and a lost
race surfaces as ``SlotConflict`` just like a conflict found by the pre-check.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import date, datetime, time, timedelta

from salon_backend.booking.calendar import BusinessCalendar, Slot, days_between, slots_needed
from salon_backend.booking.errors import InvalidSlot, InvalidTransition, PastSlot, SlotConflict, StoreConflict
from salon_backend.booking.notifications import NotificationAction, NotificationDispatcher
from salon_backend.booking.store import AppointmentStore
from salon_backend.booking.types import AppointmentRecord, AppointmentStatus, NewAppointment, Role

logger = logging.getLogger(__name__)

UNCHANGED = object()


class AvailabilityEngine:
    def __init__(
        self,
        store: AppointmentStore,
        calendar: BusinessCalendar,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], datetime] = datetime.now,
        admin_bookings_confirmed: bool = True,
        hard_delete_on_cancel: bool = False,
    ):
        self.store = store
        self.calendar = calendar
        self.dispatcher = dispatcher
        self.clock = clock
        self.admin_bookings_confirmed = admin_bookings_confirmed
        self.hard_delete_on_cancel = hard_delete_on_cancel

    # Availability

    def get_available_slots(self, slot_date: date, service_duration_minutes: int | None = None) -> list[Slot]:
        day_slots = self.calendar.day_slots(slot_date)
        if not day_slots:
            return []

        slot_minutes = day_slots[0].duration_minutes
        span = slots_needed(service_duration_minutes or slot_minutes, slot_minutes)
        occupied = self._occupied_starts(slot_date, day_slots)
        now = self.clock()

        available: list[Slot] = []
        for index, slot in enumerate(day_slots):
            if slot.starts_at <= now:
                continue
            window = self._window(day_slots, index, span)
            if window is None:
                break
            if any(candidate.start_time in occupied for candidate in window):
                continue
            available.append(slot)

        return available

    def week_availability(self, day: date, service_duration_minutes: int | None = None) -> dict[date, list[Slot]]:
        week_start, week_end = self.calendar.week_of(day)
        return {
            current: self.get_available_slots(current, service_duration_minutes)
            for current in days_between(week_start, week_end)
        }

    # Booking operations

    def reserve(
        self,
        slot_date: date,
        start_time: time,
        client_id: str,
        service_name: str,
        duration_minutes: int,
        notes: str | None = None,
        *,
        role: Role = Role.CLIENT,
        allow_past: bool = False,
    ) -> AppointmentRecord:
        window = self._validated_window(slot_date, start_time, duration_minutes)
        self._ensure_not_past(window[0], role, allow_past)

        occupied = self._occupied_starts(slot_date)
        if any(slot.start_time in occupied for slot in window):
            logger.info('Slot %s %s already taken; rejecting booking for client %s.', slot_date, start_time, client_id)
            raise SlotConflict()

        status = (
            AppointmentStatus.CONFIRMED
            if role is Role.ADMIN and self.admin_bookings_confirmed
            else AppointmentStatus.PENDING
        )
        try:
            appointment = self.store.insert(
                NewAppointment(
                    client_id=client_id,
                    service_name=service_name,
                    duration_minutes=duration_minutes,
                    date=slot_date,
                    start_time=start_time,
                    status=status,
                    notes=notes,
                    slot_times=_slot_times(window),
                )
            )
        except StoreConflict as exc:
            logger.info('Lost race for slot %s %s; client %s must pick another time.', slot_date, start_time, client_id)
            raise SlotConflict() from exc

        logger.info(
            'Booked appointment %s (%s) for client %s on %s at %s.',
            appointment.id,
            appointment.status.value,
            client_id,
            slot_date,
            start_time.strftime('%H:%M'),
        )
        self._notify(appointment, NotificationAction.NEW)
        return appointment

    def reschedule(
        self,
        appointment_id: str,
        new_date: date,
        new_start_time: time,
        *,
        role: Role = Role.CLIENT,
        allow_past: bool = False,
    ) -> AppointmentRecord:
        current = self._get_changeable(appointment_id)

        window = self._validated_window(new_date, new_start_time, current.duration_minutes)
        self._ensure_not_past(window[0], role, allow_past)

        occupied = self._occupied_starts(new_date, exclude_id=current.id)
        if any(slot.start_time in occupied for slot in window):
            raise SlotConflict()

        try:
            updated = self.store.update(
                current.id,
                {'date': new_date, 'start_time': new_start_time, 'slot_times': _slot_times(window)},
            )
        except StoreConflict as exc:
            raise SlotConflict() from exc

        logger.info('Rescheduled appointment %s to %s at %s.', current.id, new_date, new_start_time.strftime('%H:%M'))
        self._notify(updated, NotificationAction.UPDATED)
        return updated

    def confirm(self, appointment_id: str) -> AppointmentRecord:
        current = self._get_changeable(appointment_id)
        if current.status is AppointmentStatus.CONFIRMED:
            return current

        confirmed = self.store.update(current.id, {'status': AppointmentStatus.CONFIRMED})
        logger.info('Confirmed appointment %s.', current.id)
        self._notify(confirmed, NotificationAction.UPDATED)
        return confirmed

    def update_details(
        self,
        appointment_id: str,
        *,
        service_name: str | None = None,
        duration_minutes: int | None = None,
        notes=UNCHANGED,
    ) -> AppointmentRecord:
        current = self._get_changeable(appointment_id)

        changes = {}
        if service_name is not None and service_name != current.service_name:
            changes['service_name'] = service_name
        if duration_minutes is not None and duration_minutes != current.duration_minutes:
            window = self._validated_window(current.date, current.start_time, duration_minutes)
            occupied = self._occupied_starts(current.date, exclude_id=current.id)
            if any(slot.start_time in occupied for slot in window):
                raise SlotConflict('The longer service overlaps another appointment.')
            changes['duration_minutes'] = duration_minutes
            changes['slot_times'] = _slot_times(window)
        if notes is not UNCHANGED and notes != current.notes:
            changes['notes'] = notes

        if not changes:
            return current

        try:
            updated = self.store.update(current.id, changes)
        except StoreConflict as exc:
            raise SlotConflict('The longer service overlaps another appointment.') from exc
        self._notify(updated, NotificationAction.UPDATED)
        return updated

    def cancel(self, appointment_id: str, *, hard: bool | None = None) -> AppointmentRecord:
        current = self.store.find_by_id(appointment_id)
        hard = self.hard_delete_on_cancel if hard is None else hard

        if current.status is AppointmentStatus.CANCELLED:
            if hard:
                self.store.delete(current.id)
                logger.info('Purged cancelled appointment %s.', current.id)
            return current

        if hard:
            cancelled = replace(self.store.delete(current.id), status=AppointmentStatus.CANCELLED)
            logger.info('Deleted appointment %s.', current.id)
        else:
            cancelled = self.store.soft_cancel(current.id)
            logger.info('Cancelled appointment %s.', current.id)

        self._notify(cancelled, NotificationAction.CANCELLED)
        return cancelled

    # Calendar views

    def appointments_between(self, start_date: date, end_date: date) -> list[AppointmentRecord]:
        return self.store.find_by_date_range(start_date, end_date)

    def appointments_for_day(self, day: date) -> list[AppointmentRecord]:
        return self.appointments_between(day, day)

    def appointments_for_week(self, day: date) -> list[AppointmentRecord]:
        return self.appointments_between(*self.calendar.week_of(day))

    def appointments_for_month(self, day: date) -> list[AppointmentRecord]:
        return self.appointments_between(*self.calendar.month_of(day))

    def appointments_for_client(self, client_id: str) -> list[AppointmentRecord]:
        return self.store.find_by_client(client_id)

    # Helpers

    def _get_changeable(self, appointment_id: str) -> AppointmentRecord:
        current = self.store.find_by_id(appointment_id)
        if current.status is AppointmentStatus.CANCELLED:
            raise InvalidTransition()
        return current

    def _occupied_starts(
        self,
        slot_date: date,
        day_slots: list[Slot] | None = None,
        exclude_id: str | None = None,
    ) -> set[time]:
        if day_slots is None:
            day_slots = self.calendar.day_slots(slot_date)
        active = [
            appointment
            for appointment in self.store.find_by_date_range(slot_date, slot_date)
            if appointment.is_active and appointment.id != exclude_id
        ]
        return _covered_start_times(active, day_slots)

    @staticmethod
    def _window(day_slots: list[Slot], index: int, span: int) -> list[Slot] | None:
        window = day_slots[index:index + span]
        if len(window) < span:
            return None
        expected_end = window[0].starts_at + timedelta(minutes=window[0].duration_minutes * span)
        if window[-1].ends_at != expected_end:
            return None
        return window

    def _validated_window(self, slot_date: date, start_time: time, duration_minutes: int) -> list[Slot]:
        day_slots = self.calendar.day_slots(slot_date)
        starts = [slot.start_time for slot in day_slots]
        if start_time not in starts:
            if not day_slots:
                raise InvalidSlot(f'The salon is closed on {slot_date.isoformat()}.')
            raise InvalidSlot(
                f'{start_time.strftime("%H:%M")} is not a bookable time on {slot_date.isoformat()}.'
            )

        slot_minutes = day_slots[0].duration_minutes
        window = self._window(day_slots, starts.index(start_time), slots_needed(duration_minutes, slot_minutes))
        if window is None:
            raise InvalidSlot('The service would run past closing time.')
        return window

    def _ensure_not_past(self, first_slot: Slot, role: Role, allow_past: bool) -> None:
        if role is Role.ADMIN and allow_past:
            return
        if first_slot.starts_at <= self.clock():
            raise PastSlot()

    def _notify(self, appointment: AppointmentRecord, action: NotificationAction) -> None:
        if self.dispatcher is None:
            return
        try:
            self.dispatcher.notify(appointment, action)
        except Exception:
            logger.exception('Could not dispatch %s notification for appointment %s.', action.value, appointment.id)


def _covered_start_times(appointments: Iterable[AppointmentRecord], day_slots: list[Slot]) -> set[time]:
    """Starts of the day's slots that overlap an appointment, whatever grid it was booked on."""
    covered: set[time] = set()
    for appointment in appointments:
        covered.update(
            slot.start_time
            for slot in day_slots
            if slot.starts_at < appointment.ends_at and appointment.starts_at < slot.ends_at
        )
    return covered


def _slot_times(window: list[Slot]) -> tuple[time, ...]:
    return tuple(slot.start_time for slot in window)
