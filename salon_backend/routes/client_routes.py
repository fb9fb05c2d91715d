"""Staff-facing client directory: profiles with a summary of their bookings."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth.dependencies import require_admin, role_of
from salon_backend.booking.engine import AvailabilityEngine
from salon_backend.booking.errors import BookingError
from salon_backend.booking.types import Role
from salon_backend.core.engine_factory import get_availability_engine
from salon_backend.core.errors import booking_error_to_http
from salon_backend.database import get_db
from salon_backend.models.user import User

router = APIRouter(tags=['clients'])


def _optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


class CreateClientRequest(BaseModel):
    email: str
    full_name: str
    phone: str | None = None
    notes: str | None = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized or normalized.startswith('@') or normalized.endswith('@'):
            raise ValueError('A valid email address is required.')
        return normalized

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Client name is required.')
        return normalized

    @field_validator('phone', 'notes')
    @classmethod
    def normalize_optional_text(cls, value: str | None) -> str | None:
        return _optional_text(value)


class ClientResponse(BaseModel):
    id: str
    email: str
    full_name: str | None = None
    phone: str | None = None
    notes: str | None = None
    appointments_count: int = 0
    last_visit: datetime | None = None
    next_appointment: datetime | None = None


def summarize_client(user: User, engine: AvailabilityEngine) -> ClientResponse:
    now = engine.clock()
    starts = sorted(record.starts_at for record in engine.appointments_for_client(user.id) if record.is_active)
    past = [start for start in starts if start <= now]
    upcoming = [start for start in starts if start > now]
    return ClientResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        notes=user.notes,
        appointments_count=len(starts),
        last_visit=past[-1] if past else None,
        next_appointment=upcoming[0] if upcoming else None,
    )


def _database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail='Database unavailable. Verify DATABASE_URL and database credentials.',
    )


@router.get('', response_model=list[ClientResponse])
def list_clients(
    search: str | None = Query(default=None),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    engine: AvailabilityEngine = Depends(get_availability_engine),
):
    try:
        query = db.query(User)
        term = _optional_text(search)
        if term:
            pattern = f'%{term}%'
            query = query.filter(
                or_(User.full_name.ilike(pattern), User.email.ilike(pattern), User.phone.ilike(pattern))
            )
        users = [
            user for user in query.order_by(User.full_name.asc(), User.email.asc()).all()
            if role_of(user) is Role.CLIENT
        ]
    except SQLAlchemyError as exc:
        raise _database_unavailable() from exc

    try:
        return [summarize_client(user, engine) for user in users]
    except BookingError as exc:
        raise booking_error_to_http(exc) from exc


@router.post('', response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
def create_client(
    data: CreateClientRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        client = User(
            email=data.email,
            full_name=data.full_name,
            phone=data.phone,
            notes=data.notes,
            role=Role.CLIENT.value,
        )
        db.add(client)
        db.commit()
        db.refresh(client)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='A client with this email already exists.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise _database_unavailable() from exc

    return ClientResponse(
        id=client.id,
        email=client.email,
        full_name=client.full_name,
        phone=client.phone,
        notes=client.notes,
    )
