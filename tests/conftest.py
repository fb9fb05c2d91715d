import os
from datetime import datetime, time, timedelta, timezone

import jwt
import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from salon_backend.booking.calendar import BusinessCalendar  # noqa: E402
from salon_backend.booking.engine import AvailabilityEngine  # noqa: E402
from salon_backend.booking.notifications import NotificationDispatcher  # noqa: E402
from salon_backend.booking.store import SqlAlchemyAppointmentStore  # noqa: E402
from salon_backend.core import config  # noqa: E402
from salon_backend.database import Base  # noqa: E402
from salon_backend.models.appointment import Appointment, AppointmentSlot  # noqa: E402
from salon_backend.models.service import Service  # noqa: E402
from salon_backend.models.user import User  # noqa: E402

# Sunday morning before the Monday used throughout the booking tests.
FIXED_NOW = datetime(2024, 7, 14, 8, 0)

TABLES = [User.__table__, Service.__table__, Appointment.__table__, AppointmentSlot.__table__]


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.sent = []

    def notify(self, appointment, action) -> None:
        self.sent.append((appointment, action))


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=TABLES)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(TABLES)))
        engine.dispose()


@pytest.fixture
def appointment_store(session_factory) -> SqlAlchemyAppointmentStore:
    return SqlAlchemyAppointmentStore(session_factory)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def salon_calendar() -> BusinessCalendar:
    return BusinessCalendar.uniform(time(9, 0), time(18, 0))


@pytest.fixture
def booking_engine(appointment_store, salon_calendar, dispatcher) -> AvailabilityEngine:
    return AvailabilityEngine(
        store=appointment_store,
        calendar=salon_calendar,
        dispatcher=dispatcher,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def issue_token():
    """Sign tokens the way the identity provider does for a signed-in account."""

    def _issue(subject: str, email: str | None = None, expires_in: timedelta = timedelta(minutes=5), **claims) -> str:
        payload = {'sub': subject, 'exp': datetime.now(timezone.utc) + expires_in, **claims}
        if email is not None:
            payload['email'] = email
        return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)

    return _issue
