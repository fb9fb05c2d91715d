"""User model definitions."""

from uuid import uuid4

from sqlalchemy import Column, String

from salon_backend.database import Base


class User(Base):
    """Represents a client or staff profile."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    email = Column(String, unique=True, index=True)
    full_name = Column(String)
    phone = Column(String)
    role = Column(String, default="client")  # client/admin
    notes = Column(String, nullable=True)
