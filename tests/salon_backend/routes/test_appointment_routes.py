from datetime import date, time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import text

from salon_backend.booking.types import AppointmentStatus
from salon_backend.booking.workflow import BookingWorkflow
from salon_backend.models.service import Service
from salon_backend.models.user import User
from salon_backend.routes.appointment_routes import (
    CalendarView,
    CreateAppointmentRequest,
    RescheduleAppointmentRequest,
    UpdateAppointmentRequest,
    cancel_appointment,
    confirm_appointment,
    create_appointment,
    delete_appointment,
    list_calendar_appointments,
    list_my_appointments,
    load_appointment,
    reschedule_appointment,
    update_appointment,
)

MONDAY = date(2024, 7, 15)

CLIENT = User(id='client-1', email='maria@example.com', full_name='Maria Rossi', role='client')
OTHER_CLIENT = User(id='client-2', email='luca@example.com', full_name='Luca Bianchi', role='client')
ADMIN = User(id='admin-1', email='staff@example.com', full_name='Staff', role='admin')


@pytest.fixture
def salon_db(session_factory):
    db = session_factory()
    db.add_all([
        Service(name='Taglio', duration_minutes=30, price=25, active=True),
        Service(name='Colore', duration_minutes=60, price=60, active=True),
        Service(name='Permanente', duration_minutes=90, price=80, active=False),
    ])
    db.commit()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def workflow(booking_engine) -> BookingWorkflow:
    return BookingWorkflow(booking_engine)


def _book(salon_db, workflow, user: User = CLIENT, **fields):
    payload = {'service': 'Taglio', 'date': MONDAY, 'time': time(11, 0)}
    payload.update(fields)
    return create_appointment(
        data=CreateAppointmentRequest(**payload),
        current_user=user,
        db=salon_db,
        workflow=workflow,
    )


def test_create_appointment_request_normalizes_fields() -> None:
    request = CreateAppointmentRequest(service=' Taglio ', date=MONDAY, time=time(9, 0), notes='   ')

    assert request.service == 'Taglio'
    assert request.notes is None


def test_create_appointment_request_rejects_long_notes() -> None:
    with pytest.raises(ValidationError):
        CreateAppointmentRequest(service='Taglio', date=MONDAY, time=time(9, 0), notes='x' * 601)


def test_create_appointment_books_pending_for_client(salon_db, workflow, dispatcher) -> None:
    response = _book(salon_db, workflow, notes=' Short layers ')

    assert response.client_id == 'client-1'
    assert response.service == 'Taglio'
    assert response.duration_minutes == 30
    assert response.status == 'pending'
    assert response.notes == 'Short layers'
    assert len(dispatcher.sent) == 1


def test_create_appointment_uses_service_duration(salon_db, workflow) -> None:
    response = _book(salon_db, workflow, service='Colore')

    assert response.duration_minutes == 60
    assert response.end_time.time() == time(12, 0)


def test_admin_books_confirmed_for_client(salon_db, workflow) -> None:
    response = _book(salon_db, workflow, user=ADMIN, client_id='client-2')

    assert response.client_id == 'client-2'
    assert response.status == 'confirmed'


def test_client_cannot_book_for_someone_else(salon_db, workflow) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _book(salon_db, workflow, client_id='client-2')

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Clients can only book appointments for themselves.'


def test_client_cannot_record_past_appointment(salon_db, workflow) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _book(salon_db, workflow, allow_past=True)

    assert exception_info.value.status_code == 403


def test_admin_can_record_past_appointment(salon_db, workflow) -> None:
    response = _book(salon_db, workflow, user=ADMIN, date=date(2024, 7, 13), allow_past=True)

    assert response.date == date(2024, 7, 13)


def test_past_slot_is_rejected(salon_db, workflow) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _book(salon_db, workflow, date=date(2024, 7, 13))

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Appointments must be scheduled in the future.'


def test_off_grid_time_is_rejected(salon_db, workflow) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _book(salon_db, workflow, time=time(11, 10))

    assert exception_info.value.status_code == 400


def test_unknown_or_inactive_service_is_not_bookable(salon_db, workflow) -> None:
    with pytest.raises(HTTPException) as exception_info:
        _book(salon_db, workflow, service='Permanente')

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Service not found.'


def test_conflict_returns_message_and_fresh_slots(salon_db, workflow) -> None:
    _book(salon_db, workflow, user=OTHER_CLIENT)

    with pytest.raises(HTTPException) as exception_info:
        _book(salon_db, workflow)

    detail = exception_info.value.detail
    assert exception_info.value.status_code == 409
    assert detail['message'] == 'This time is no longer available, please choose another.'
    labels = [slot['label'] for slot in detail['available_slots']]
    assert '11:00' not in labels
    assert labels[0] == '09:00'
    assert detail['available_slots'][0]['date'] == '2024-07-15'


def test_list_my_appointments_returns_only_own(salon_db, workflow, booking_engine) -> None:
    _book(salon_db, workflow)
    _book(salon_db, workflow, user=OTHER_CLIENT, time=time(12, 0))

    mine = list_my_appointments(current_user=CLIENT, engine=booking_engine)

    assert [item.time for item in mine] == [time(11, 0)]


@pytest.mark.parametrize(
    ('view', 'expected_count'),
    [(CalendarView.DAY, 1), (CalendarView.WEEK, 2), (CalendarView.MONTH, 3)],
)
def test_list_calendar_appointments_by_view(salon_db, workflow, booking_engine, view, expected_count) -> None:
    _book(salon_db, workflow)
    _book(salon_db, workflow, date=date(2024, 7, 17))
    _book(salon_db, workflow, date=date(2024, 7, 30))
    _book(salon_db, workflow, date=date(2024, 8, 1))

    records = list_calendar_appointments(day=MONDAY, view=view, _admin=ADMIN, engine=booking_engine)

    assert len(records) == expected_count


def test_owner_can_reschedule(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow)

    response = reschedule_appointment(
        appointment_id=booked.id,
        data=RescheduleAppointmentRequest(date=date(2024, 7, 16), time=time(14, 30)),
        current_user=CLIENT,
        engine=booking_engine,
    )

    assert (response.date, response.time) == (date(2024, 7, 16), time(14, 30))


def test_other_client_cannot_reschedule_or_cancel(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow)

    with pytest.raises(HTTPException) as reschedule_error:
        reschedule_appointment(
            appointment_id=booked.id,
            data=RescheduleAppointmentRequest(date=MONDAY, time=time(15, 0)),
            current_user=OTHER_CLIENT,
            engine=booking_engine,
        )
    with pytest.raises(HTTPException) as cancel_error:
        cancel_appointment(appointment_id=booked.id, current_user=OTHER_CLIENT, engine=booking_engine)

    assert reschedule_error.value.status_code == 403
    assert cancel_error.value.detail == 'Only the client who booked this appointment can cancel it.'


def test_reschedule_into_taken_slot_conflicts(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow)
    _book(salon_db, workflow, user=OTHER_CLIENT, time=time(15, 0))

    with pytest.raises(HTTPException) as exception_info:
        reschedule_appointment(
            appointment_id=booked.id,
            data=RescheduleAppointmentRequest(date=MONDAY, time=time(15, 0)),
            current_user=CLIENT,
            engine=booking_engine,
        )

    assert exception_info.value.status_code == 409


def test_cancel_frees_slot_and_is_repeatable(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow)

    first = cancel_appointment(appointment_id=booked.id, current_user=CLIENT, engine=booking_engine)
    second = cancel_appointment(appointment_id=booked.id, current_user=CLIENT, engine=booking_engine)
    rebooked = _book(salon_db, workflow, user=OTHER_CLIENT)

    assert first.status == second.status == 'cancelled'
    assert rebooked.status == 'pending'


def test_confirm_then_cancelled_appointment_cannot_be_confirmed(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow)

    confirmed = confirm_appointment(appointment_id=booked.id, _admin=ADMIN, engine=booking_engine)
    cancel_appointment(appointment_id=booked.id, current_user=ADMIN, engine=booking_engine)

    with pytest.raises(HTTPException) as exception_info:
        confirm_appointment(appointment_id=booked.id, _admin=ADMIN, engine=booking_engine)

    assert confirmed.status == 'confirmed'
    assert exception_info.value.status_code == 409


def test_update_appointment_changes_service_and_clears_notes(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow, notes='Bring photo')

    updated = update_appointment(
        appointment_id=booked.id,
        data=UpdateAppointmentRequest(service='Colore', clear_notes=True),
        _admin=ADMIN,
        db=salon_db,
        engine=booking_engine,
    )

    assert updated.service == 'Colore'
    assert updated.duration_minutes == 60
    assert updated.notes is None


def test_update_appointment_keeps_notes_when_not_given(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow, notes='Bring photo')

    updated = update_appointment(
        appointment_id=booked.id,
        data=UpdateAppointmentRequest(),
        _admin=ADMIN,
        db=salon_db,
        engine=booking_engine,
    )

    assert updated.notes == 'Bring photo'


def test_longer_service_overlapping_next_booking_conflicts(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow)
    _book(salon_db, workflow, user=OTHER_CLIENT, time=time(11, 30))

    with pytest.raises(HTTPException) as exception_info:
        update_appointment(
            appointment_id=booked.id,
            data=UpdateAppointmentRequest(service='Colore'),
            _admin=ADMIN,
            db=salon_db,
            engine=booking_engine,
        )

    assert exception_info.value.status_code == 409


def test_delete_appointment_removes_record(salon_db, workflow, booking_engine, appointment_store) -> None:
    booked = _book(salon_db, workflow)

    delete_appointment(appointment_id=booked.id, _admin=ADMIN, engine=booking_engine)

    with pytest.raises(HTTPException) as exception_info:
        load_appointment(booked.id, booking_engine)
    assert exception_info.value.status_code == 404
    assert appointment_store.find_by_client('client-1') == []


def test_missing_appointment_returns_not_found(booking_engine) -> None:
    with pytest.raises(HTTPException) as exception_info:
        cancel_appointment(appointment_id='missing', current_user=ADMIN, engine=booking_engine)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment missing not found.'


def test_cancelled_status_is_reported_in_response(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow)

    response = cancel_appointment(appointment_id=booked.id, current_user=ADMIN, engine=booking_engine)

    assert response.status == AppointmentStatus.CANCELLED.value


def test_unreadable_status_returns_typed_server_error(salon_db, workflow, booking_engine) -> None:
    booked = _book(salon_db, workflow)
    salon_db.execute(text("UPDATE appointments SET status = 'boh' WHERE id = :id"), {'id': booked.id})
    salon_db.commit()

    with pytest.raises(HTTPException) as exception_info:
        load_appointment(booked.id, booking_engine)

    assert exception_info.value.status_code == 500
    assert exception_info.value.detail == f'Appointment {booked.id} has an unknown status.'
