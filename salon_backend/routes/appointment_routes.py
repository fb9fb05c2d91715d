from datetime import date, datetime, time
from enum import Enum

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from salon_backend.auth.dependencies import get_current_user, require_admin, role_of
from salon_backend.booking.engine import UNCHANGED, AvailabilityEngine
from salon_backend.booking.errors import BookingError
from salon_backend.booking.types import AppointmentRecord, Role
from salon_backend.booking.workflow import BookingRequest, BookingWorkflow
from salon_backend.core import config
from salon_backend.core.engine_factory import get_availability_engine, get_booking_workflow
from salon_backend.core.errors import booking_error_to_http
from salon_backend.database import get_db
from salon_backend.models.user import User
from salon_backend.routes.availability_routes import SlotResponse, resolve_service

router = APIRouter(tags=['appointments'])


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class CalendarView(str, Enum):
    DAY = 'day'
    WEEK = 'week'
    MONTH = 'month'


class CreateAppointmentRequest(BaseModel):
    service: str
    date: date
    time: time
    notes: str | None = None
    client_id: str | None = None
    allow_past: bool = False

    @field_validator('service')
    @classmethod
    def validate_service(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Service is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class RescheduleAppointmentRequest(BaseModel):
    date: date
    time: time
    allow_past: bool = False


class UpdateAppointmentRequest(BaseModel):
    service: str | None = None
    notes: str | None = None
    clear_notes: bool = False

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class AppointmentResponse(BaseModel):
    id: str
    client_id: str
    service: str
    duration_minutes: int
    date: date
    time: time
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None

    @classmethod
    def from_record(cls, record: AppointmentRecord) -> 'AppointmentResponse':
        return cls(
            id=record.id,
            client_id=record.client_id,
            service=record.service_name,
            duration_minutes=record.duration_minutes,
            date=record.date,
            time=record.start_time,
            start_time=record.starts_at,
            end_time=record.ends_at,
            status=record.status.value,
            notes=record.notes,
        )


def ensure_owner_or_admin(record: AppointmentRecord, current_user: User, action: str) -> None:
    if role_of(current_user) is Role.ADMIN:
        return
    if record.client_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'Only the client who booked this appointment can {action} it.',
        )


def load_appointment(appointment_id: str, engine: AvailabilityEngine) -> AppointmentRecord:
    try:
        return engine.store.find_by_id(appointment_id)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc


@router.get('', response_model=list[AppointmentResponse])
def list_calendar_appointments(
    day: date = Query(..., alias='date'),
    view: CalendarView = Query(default=CalendarView.DAY),
    _admin: User = Depends(require_admin),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        if view is CalendarView.WEEK:
            records = engine.appointments_for_week(day)
        elif view is CalendarView.MONTH:
            records = engine.appointments_for_month(day)
        else:
            records = engine.appointments_for_day(day)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    return [AppointmentResponse.from_record(record) for record in records]


@router.get('/mine', response_model=list[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        records = engine.appointments_for_client(current_user.id)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    return [AppointmentResponse.from_record(record) for record in records]


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    workflow: BookingWorkflow = Depends(get_booking_workflow),
):
    role = role_of(current_user)
    if role is Role.CLIENT and data.client_id and data.client_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Clients can only book appointments for themselves.',
        )
    if role is Role.CLIENT and data.allow_past:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only salon staff can record past appointments.',
        )

    service = resolve_service(data.service, db)

    try:
        outcome = workflow.book(
            BookingRequest(
                date=data.date,
                start_time=data.time,
                client_id=data.client_id or current_user.id,
                service_name=service.name,
                duration_minutes=service.duration_minutes,
                notes=data.notes,
                role=role,
                allow_past=data.allow_past,
            )
        )
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    if not outcome.succeeded:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                'message': outcome.message,
                'available_slots': [
                    SlotResponse.from_slot(slot, service.duration_minutes).model_dump(mode='json')
                    for slot in outcome.available_slots
                ],
            },
        )

    return AppointmentResponse.from_record(outcome.appointment)


@router.post('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: str,
    data: RescheduleAppointmentRequest,
    current_user: User = Depends(get_current_user),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    ensure_owner_or_admin(load_appointment(appointment_id, engine), current_user, 'reschedule')
    role = role_of(current_user)

    try:
        record = engine.reschedule(
            appointment_id,
            data.date,
            data.time,
            role=role,
            allow_past=data.allow_past and role is Role.ADMIN,
        )
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    return AppointmentResponse.from_record(record)


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: str,
    _admin: User = Depends(require_admin),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        record = engine.confirm(appointment_id)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    return AppointmentResponse.from_record(record)


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    data: UpdateAppointmentRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    service = resolve_service(data.service, db) if data.service else None
    if data.clear_notes:
        notes = None
    elif data.notes is not None:
        notes = data.notes
    else:
        notes = UNCHANGED

    try:
        record = engine.update_details(
            appointment_id,
            service_name=service.name if service else None,
            duration_minutes=service.duration_minutes if service else None,
            notes=notes,
        )
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    return AppointmentResponse.from_record(record)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    ensure_owner_or_admin(load_appointment(appointment_id, engine), current_user, 'cancel')

    try:
        record = engine.cancel(appointment_id)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    return AppointmentResponse.from_record(record)


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: str,
    _admin: User = Depends(require_admin),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        engine.cancel(appointment_id, hard=True)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc
