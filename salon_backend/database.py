import logging
from datetime import datetime, timedelta
from threading import Lock

from sqlalchemy import Date, Integer, String, Time, bindparam, create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from salon_backend.booking.calendar import iterate_slot_starts
from salon_backend.core import config

logger = logging.getLogger(__name__)

engine = create_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_database_schema(bind=None) -> None:
    """Bring tables created by older releases up to date.

    Older databases were created by the first booking UI without the
    duration/notes columns, without client notes, without the partial unique
    index that stops two active appointments from sharing a start, and without
    the per-slot claims that stop overlapping appointments.
    """
    global _schema_checked

    if _schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _schema_checked:
            return

        inspector = inspect(bind)
        table_names = set(inspector.get_table_names())

        with bind.begin() as connection:
            if 'users' in table_names:
                user_columns = {column['name'] for column in inspector.get_columns('users')}
                if 'notes' not in user_columns:
                    connection.execute(text('ALTER TABLE users ADD COLUMN notes VARCHAR'))

            if 'appointments' in table_names:
                _upgrade_appointments(connection, inspector)
                if 'appointment_slots' in table_names:
                    _backfill_slot_claims(connection)

        _schema_checked = True


def _upgrade_appointments(connection, inspector) -> None:
    existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
    migration_steps = [
        ('duration', 'ALTER TABLE appointments ADD COLUMN duration INTEGER'),
        ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
        ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
    ]

    for column_name, statement in migration_steps:
        if column_name not in existing_columns:
            connection.execute(text(statement))
    connection.execute(
        text('UPDATE appointments SET duration = :minutes WHERE duration IS NULL'),
        {'minutes': config.SLOT_MINUTES},
    )
    connection.execute(
        text("UPDATE appointments SET status = 'pending' WHERE status = 'in attesa'")
    )
    connection.execute(
        text("UPDATE appointments SET status = 'confirmed' WHERE status = 'confermato'")
    )
    connection.execute(
        text("UPDATE appointments SET status = 'cancelled' WHERE status = 'cancellato'")
    )
    connection.execute(
        text(
            'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_slot '
            "ON appointments(date, time) WHERE status != 'cancelled'"
        )
    )
    connection.execute(
        text('CREATE INDEX IF NOT EXISTS idx_appointments_client_date ON appointments(client_id, date)')
    )


def _backfill_slot_claims(connection) -> None:
    """Give active appointments written before slot claims existed their claims."""
    unclaimed = connection.execute(
        text(
            'SELECT a.id, a.date, a.time, a.duration FROM appointments a '
            "WHERE a.status != 'cancelled' AND NOT EXISTS "
            '(SELECT 1 FROM appointment_slots s WHERE s.appointment_id = a.id) '
            'ORDER BY a.date, a.time'
        ).columns(id=String, date=Date, time=Time, duration=Integer)
    ).all()
    if not unclaimed:
        return

    claimed = {
        (row.date, row.time)
        for row in connection.execute(
            text('SELECT date, time FROM appointment_slots').columns(date=Date, time=Time)
        )
    }
    insert_claim = text(
        'INSERT INTO appointment_slots (appointment_id, date, time) VALUES (:appointment_id, :date, :time)'
    ).bindparams(bindparam('date', type_=Date), bindparam('time', type_=Time))

    for appointment in unclaimed:
        starts_at = datetime.combine(appointment.date, appointment.time)
        ends_at = starts_at + timedelta(minutes=appointment.duration)
        for slot_start in iterate_slot_starts(starts_at, ends_at, config.SLOT_MINUTES, origin=starts_at):
            key = (slot_start.date(), slot_start.time())
            if key in claimed:
                logger.warning(
                    'Appointment %s overlaps an earlier booking at %s %s; leaving that slot with the earlier one.',
                    appointment.id,
                    key[0],
                    key[1].strftime('%H:%M'),
                )
                continue
            connection.execute(
                insert_claim,
                {'appointment_id': appointment.id, 'date': key[0], 'time': key[1]},
            )
            claimed.add(key)
