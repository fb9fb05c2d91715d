"""Builds the booking engine from configuration, once per process."""

from functools import lru_cache

from salon_backend.booking.calendar import BusinessCalendar, BusinessHours, parse_weekday
from salon_backend.booking.engine import AvailabilityEngine
from salon_backend.booking.notifications import (
    BackgroundNotificationDispatcher,
    LoggingNotificationChannel,
    NotificationChannel,
)
from salon_backend.booking.store import SqlAlchemyAppointmentStore
from salon_backend.booking.workflow import BookingWorkflow
from salon_backend.core import config
from salon_backend.database import SessionLocal
from salon_backend.services.email_notifier import ResendEmailChannel, profile_recipient_lookup

SATURDAY = 5
SUNDAY = 6


def build_business_calendar() -> BusinessCalendar:
    weekday_hours = BusinessHours(config.WEEKDAY_OPEN_TIME, config.WEEKDAY_CLOSE_TIME, config.SLOT_MINUTES)
    weekly_hours = {weekday: weekday_hours for weekday in range(SATURDAY)}
    if config.SATURDAY_OPEN:
        weekly_hours[SATURDAY] = BusinessHours(
            config.SATURDAY_OPEN_TIME,
            config.SATURDAY_CLOSE_TIME,
            config.SLOT_MINUTES,
        )
    if config.SUNDAY_OPEN:
        weekly_hours[SUNDAY] = weekday_hours

    return BusinessCalendar(
        weekly_hours=weekly_hours,
        closed_dates=config.CLOSED_DATES,
        week_start=parse_weekday(config.WEEK_START),
        slot_minutes=config.SLOT_MINUTES,
    )


def build_notification_channels() -> list[NotificationChannel]:
    channels: list[NotificationChannel] = [LoggingNotificationChannel()]
    if config.RESEND_API_KEY:
        channels.append(ResendEmailChannel(profile_recipient_lookup(SessionLocal)))
    return channels


@lru_cache
def get_notification_dispatcher() -> BackgroundNotificationDispatcher:
    return BackgroundNotificationDispatcher(
        build_notification_channels(),
        max_workers=config.NOTIFICATION_WORKERS,
    )


@lru_cache
def get_availability_engine() -> AvailabilityEngine:
    return AvailabilityEngine(
        store=SqlAlchemyAppointmentStore(SessionLocal),
        calendar=build_business_calendar(),
        dispatcher=get_notification_dispatcher(),
        admin_bookings_confirmed=config.ADMIN_BOOKINGS_CONFIRMED,
        hard_delete_on_cancel=config.HARD_DELETE_ON_CANCEL,
    )


def get_booking_workflow() -> BookingWorkflow:
    return BookingWorkflow(get_availability_engine())
