from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.booking.calendar import Slot
from salon_backend.booking.engine import AvailabilityEngine
from salon_backend.booking.errors import BookingError
from salon_backend.core.engine_factory import get_availability_engine
from salon_backend.core.errors import booking_error_to_http
from salon_backend.database import get_db
from salon_backend.models.service import Service

router = APIRouter(tags=['availability'])


class SlotResponse(BaseModel):
    date: date
    time: time
    label: str
    duration_minutes: int
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_slot(cls, slot: Slot, duration_minutes: int) -> 'SlotResponse':
        return cls(
            date=slot.date,
            time=slot.start_time,
            label=slot.label,
            duration_minutes=duration_minutes,
            start_time=slot.starts_at,
            end_time=slot.starts_at + timedelta(minutes=duration_minutes),
        )


class DayAvailabilityResponse(BaseModel):
    date: date
    is_open: bool
    slots: list[SlotResponse]


def resolve_service(service_name: str, db: Session) -> Service:
    normalized = service_name.strip()
    if not normalized:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Service is required.',
        )

    try:
        service = db.query(Service).filter(
            Service.name == normalized,
            Service.active.is_(True),
        ).first()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc

    if service is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Service not found.',
        )
    return service


def resolve_duration(
    service_name: str | None,
    duration_minutes: int | None,
    db: Session | None,
    engine: AvailabilityEngine,
) -> int:
    if service_name:
        return resolve_service(service_name, db).duration_minutes
    return duration_minutes or engine.calendar.slot_minutes


@router.get('/slots', response_model=list[SlotResponse])
def list_available_slots(
    slot_date: date = Query(..., alias='date'),
    service: str | None = Query(default=None),
    duration_minutes: int | None = Query(default=None, ge=1, le=480),
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    duration = resolve_duration(service, duration_minutes, db, engine)

    try:
        slots = engine.get_available_slots(slot_date, duration)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    return [SlotResponse.from_slot(slot, duration) for slot in slots]


@router.get('/week', response_model=list[DayAvailabilityResponse])
def list_week_availability(
    slot_date: date = Query(..., alias='date'),
    service: str | None = Query(default=None),
    duration_minutes: int | None = Query(default=None, ge=1, le=480),
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    duration = resolve_duration(service, duration_minutes, db, engine)

    try:
        week = engine.week_availability(slot_date, duration)
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc

    return [
        DayAvailabilityResponse(
            date=day,
            is_open=not engine.calendar.hours_for(day).is_closed,
            slots=[SlotResponse.from_slot(slot, duration) for slot in slots],
        )
        for day, slots in week.items()
    ]
