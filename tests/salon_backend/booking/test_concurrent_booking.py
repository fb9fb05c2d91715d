from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, time
from threading import Barrier

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from salon_backend.booking.calendar import BusinessCalendar
from salon_backend.booking.engine import AvailabilityEngine
from salon_backend.booking.errors import SlotConflict
from salon_backend.booking.store import SqlAlchemyAppointmentStore
from salon_backend.database import Base
from salon_backend.models.appointment import Appointment, AppointmentSlot

CONTENDERS = 6


@pytest.fixture
def file_session_factory(tmp_path):
    engine = create_engine(
        f'sqlite:///{tmp_path / "race.db"}',
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine, tables=[Appointment.__table__, AppointmentSlot.__table__])
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


def test_concurrent_reservations_for_one_slot_have_single_winner(file_session_factory) -> None:
    store = SqlAlchemyAppointmentStore(file_session_factory)
    engine = AvailabilityEngine(
        store=store,
        calendar=BusinessCalendar.uniform(time(9, 0), time(18, 0)),
        clock=lambda: datetime(2024, 7, 14, 8, 0),
    )
    barrier = Barrier(CONTENDERS)

    def attempt(client_number: int) -> str:
        barrier.wait()
        try:
            engine.reserve(date(2024, 7, 15), time(11, 0), f'client-{client_number}', 'Taglio', 30)
        except SlotConflict:
            return 'conflict'
        return 'booked'

    with ThreadPoolExecutor(max_workers=CONTENDERS) as pool:
        results = list(pool.map(attempt, range(CONTENDERS)))

    assert results.count('booked') == 1
    assert results.count('conflict') == CONTENDERS - 1
    active = [item for item in store.find_by_date_range(date(2024, 7, 15), date(2024, 7, 15)) if item.is_active]
    assert len(active) == 1


def test_concurrent_overlapping_reservations_have_single_winner(file_session_factory) -> None:
    store = SqlAlchemyAppointmentStore(file_session_factory)
    engine = AvailabilityEngine(
        store=store,
        calendar=BusinessCalendar.uniform(time(9, 0), time(18, 0)),
        clock=lambda: datetime(2024, 7, 14, 8, 0),
    )
    # Every request wants 11:30; the long ones start half an hour earlier.
    requests = [(time(11, 0), 60) if number % 2 else (time(11, 30), 30) for number in range(CONTENDERS)]
    barrier = Barrier(CONTENDERS)

    def attempt(client_number: int) -> str:
        start, duration = requests[client_number]
        barrier.wait()
        try:
            engine.reserve(date(2024, 7, 15), start, f'client-{client_number}', 'Taglio', duration)
        except SlotConflict:
            return 'conflict'
        return 'booked'

    with ThreadPoolExecutor(max_workers=CONTENDERS) as pool:
        results = list(pool.map(attempt, range(CONTENDERS)))

    assert results.count('booked') == 1
    active = [item for item in store.find_by_date_range(date(2024, 7, 15), date(2024, 7, 15)) if item.is_active]
    assert len(active) == 1
