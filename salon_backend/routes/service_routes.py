from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth.dependencies import require_admin
from salon_backend.database import get_db
from salon_backend.models.service import Service
from salon_backend.models.user import User

router = APIRouter(tags=['services'])


class CreateServiceRequest(BaseModel):
    name: str
    description: str | None = None
    price: Decimal = Field(default=Decimal('0'), ge=0)
    duration_minutes: int = Field(gt=0, le=480)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Service name is required.')
        return normalized


class ServiceResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    price: Decimal
    duration_minutes: int
    active: bool

    class Config:
        from_attributes = True


@router.get('', response_model=list[ServiceResponse])
def list_services(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Service)
        if not include_inactive:
            query = query.filter(Service.active.is_(True))
        return query.order_by(Service.name.asc()).all()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        service = Service(
            name=data.name,
            description=data.description,
            price=data.price,
            duration_minutes=data.duration_minutes,
            active=True,
        )
        db.add(service)
        db.commit()
        db.refresh(service)
        return service
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='A service with this name already exists.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc
