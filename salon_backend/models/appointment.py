"""Appointment model definitions."""

from uuid import uuid4

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from salon_backend.booking.types import AppointmentRecord, AppointmentStatus
from salon_backend.database import Base


def _new_appointment_id() -> str:
    return str(uuid4())


class Appointment(Base):
    """Represents a booked salon appointment."""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=_new_appointment_id)
    client_id = Column(String, nullable=False, index=True)
    service_name = Column("service", String, nullable=False)
    duration_minutes = Column("duration", Integer, nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column("time", Time, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Only active appointments hold slots.
    slots = relationship(
        "AppointmentSlot",
        back_populates="appointment",
        cascade="all, delete-orphan",
        order_by="AppointmentSlot.time",
    )

    def to_record(self) -> AppointmentRecord:
        return AppointmentRecord(
            id=self.id,
            client_id=self.client_id,
            service_name=self.service_name,
            duration_minutes=self.duration_minutes,
            date=self.date,
            start_time=self.start_time,
            status=AppointmentStatus.parse(self.status),
            notes=self.notes,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class AppointmentSlot(Base):
    """One grid slot held by an active appointment; the database allows one holder per slot."""
    __tablename__ = "appointment_slots"
    __table_args__ = (
        UniqueConstraint("date", "time", name="uq_appointment_slots_date_time"),
    )

    id = Column(Integer, primary_key=True)
    appointment_id = Column(
        String(36),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)

    appointment = relationship("Appointment", back_populates="slots")


# At most one active appointment per start slot, enforced by the database.
Index(
    "uq_appointments_active_slot",
    Appointment.date,
    Appointment.start_time,
    unique=True,
    postgresql_where=text("status != 'cancelled'"),
    sqlite_where=text("status != 'cancelled'"),
)
