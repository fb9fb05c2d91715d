"""Service catalog model definitions."""

from sqlalchemy import Boolean, Column, Integer, Numeric, String

from salon_backend.database import Base


class Service(Base):
    """A bookable salon service; appointments copy its name and duration."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
