"""Persistence boundary for appointments.

The engine only talks to :class:`AppointmentStore`. The SQLAlchemy
implementation below is the one component allowed to write appointment rows;
every active appointment claims one ``appointment_slots`` row per grid slot it
covers, in the same transaction as the appointment itself, so the unique
constraint on those rows is the final arbiter when two bookings race for
overlapping slots.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from datetime import date, time
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from salon_backend.booking.errors import AppointmentNotFound, CorruptAppointment, StoreConflict, StoreUnavailable
from salon_backend.booking.types import AppointmentRecord, AppointmentStatus, NewAppointment
from salon_backend.models.appointment import Appointment, AppointmentSlot

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {'date', 'start_time', 'status', 'service_name', 'duration_minutes', 'notes', 'slot_times'}
)


class AppointmentStore(ABC):
    @abstractmethod
    def find_by_date_range(self, start_date: date, end_date: date) -> list[AppointmentRecord]:
        """All appointments between both dates inclusive, ordered by date and time."""

    @abstractmethod
    def find_by_id(self, appointment_id: str) -> AppointmentRecord:
        """Raises AppointmentNotFound."""

    @abstractmethod
    def find_by_client(self, client_id: str) -> list[AppointmentRecord]:
        ...

    @abstractmethod
    def insert(self, appointment: NewAppointment) -> AppointmentRecord:
        """Raises StoreConflict when an active appointment already holds one of its slots."""

    @abstractmethod
    def update(self, appointment_id: str, changes: Mapping[str, Any]) -> AppointmentRecord:
        """Raises AppointmentNotFound or StoreConflict."""

    @abstractmethod
    def soft_cancel(self, appointment_id: str) -> AppointmentRecord:
        ...

    @abstractmethod
    def delete(self, appointment_id: str) -> AppointmentRecord:
        """Hard delete; returns the removed appointment."""


class SqlAlchemyAppointmentStore(AppointmentStore):
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except IntegrityError as exc:
            db.rollback()
            raise StoreConflict() from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception('Appointment store operation failed.')
            raise StoreUnavailable() from exc
        finally:
            db.close()

    @staticmethod
    def _get_row(db: Session, appointment_id: str) -> Appointment:
        row = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if row is None:
            raise AppointmentNotFound(f'Appointment {appointment_id} not found.')
        return row

    @staticmethod
    def _to_record(row: Appointment) -> AppointmentRecord:
        try:
            return row.to_record()
        except ValueError as exc:
            logger.error('Appointment %s has unreadable status %r.', row.id, row.status)
            raise CorruptAppointment(f'Appointment {row.id} has an unknown status.') from exc

    @staticmethod
    def _claim_slots(db: Session, row: Appointment, slot_times: Iterable[time]) -> None:
        # Release first so a move into slots the appointment already holds does not collide with itself.
        if row.slots:
            row.slots.clear()
            db.flush()
        row.slots.extend(AppointmentSlot(date=row.date, time=slot_time) for slot_time in slot_times)

    def find_by_date_range(self, start_date: date, end_date: date) -> list[AppointmentRecord]:
        with self._session() as db:
            rows = db.query(Appointment).filter(
                Appointment.date >= start_date,
                Appointment.date <= end_date,
            ).order_by(Appointment.date.asc(), Appointment.start_time.asc()).all()
            return [self._to_record(row) for row in rows]

    def find_by_id(self, appointment_id: str) -> AppointmentRecord:
        with self._session() as db:
            return self._to_record(self._get_row(db, appointment_id))

    def find_by_client(self, client_id: str) -> list[AppointmentRecord]:
        with self._session() as db:
            rows = db.query(Appointment).filter(
                Appointment.client_id == client_id,
            ).order_by(Appointment.date.asc(), Appointment.start_time.asc()).all()
            return [self._to_record(row) for row in rows]

    def insert(self, appointment: NewAppointment) -> AppointmentRecord:
        with self._session() as db:
            row = Appointment(
                client_id=appointment.client_id,
                service_name=appointment.service_name,
                duration_minutes=appointment.duration_minutes,
                date=appointment.date,
                start_time=appointment.start_time,
                status=appointment.status.value,
                notes=appointment.notes,
            )
            if appointment.status.is_active:
                self._claim_slots(db, row, appointment.slot_times or (appointment.start_time,))
            db.add(row)
            db.commit()
            db.refresh(row)
            return self._to_record(row)

    def update(self, appointment_id: str, changes: Mapping[str, Any]) -> AppointmentRecord:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f'Cannot update appointment fields: {", ".join(sorted(unknown))}')

        with self._session() as db:
            row = self._get_row(db, appointment_id)
            for field_name, value in changes.items():
                if field_name == 'slot_times':
                    continue
                if isinstance(value, AppointmentStatus):
                    value = value.value
                setattr(row, field_name, value)

            if not self._to_record(row).is_active:
                row.slots.clear()
            elif changes.keys() & {'date', 'start_time', 'slot_times'}:
                self._claim_slots(db, row, changes.get('slot_times') or (row.start_time,))

            db.commit()
            db.refresh(row)
            return self._to_record(row)

    def soft_cancel(self, appointment_id: str) -> AppointmentRecord:
        with self._session() as db:
            row = self._get_row(db, appointment_id)
            if self._to_record(row).status is not AppointmentStatus.CANCELLED:
                row.status = AppointmentStatus.CANCELLED.value
                row.slots.clear()
                db.commit()
                db.refresh(row)
            return self._to_record(row)

    def delete(self, appointment_id: str) -> AppointmentRecord:
        with self._session() as db:
            row = self._get_row(db, appointment_id)
            record = self._to_record(row)
            db.delete(row)
            db.commit()
            return record
