"""Booking notifications.

The engine calls :meth:`NotificationDispatcher.notify` after every committed
change. Delivery happens off the request path and a failing channel is only
logged, so notifications can never undo or delay a booking.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum

from salon_backend.booking.types import AppointmentRecord

logger = logging.getLogger(__name__)


class NotificationAction(str, Enum):
    NEW = 'new'
    UPDATED = 'updated'
    CANCELLED = 'cancelled'


class NotificationDispatcher(ABC):
    @abstractmethod
    def notify(self, appointment: AppointmentRecord, action: NotificationAction) -> None:
        ...


class NotificationChannel(ABC):
    """A concrete delivery mechanism (email, SMS, ...)."""

    name = 'channel'

    @abstractmethod
    def send(self, appointment: AppointmentRecord, action: NotificationAction) -> None:
        ...


class LoggingNotificationChannel(NotificationChannel):
    name = 'log'

    def send(self, appointment: AppointmentRecord, action: NotificationAction) -> None:
        logger.info(
            'Appointment %s %s: %s on %s at %s for client %s',
            appointment.id,
            action.value,
            appointment.service_name,
            appointment.date.isoformat(),
            appointment.start_time.strftime('%H:%M'),
            appointment.client_id,
        )


class BackgroundNotificationDispatcher(NotificationDispatcher):
    def __init__(
        self,
        channels: Sequence[NotificationChannel],
        max_workers: int = 2,
        executor: ThreadPoolExecutor | None = None,
    ):
        self.channels = list(channels)
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='booking-notify',
        )

    def notify(self, appointment: AppointmentRecord, action: NotificationAction) -> None:
        for channel in self.channels:
            try:
                future = self._executor.submit(channel.send, appointment, action)
            except RuntimeError:
                logger.warning(
                    'Notification executor is shut down; dropping %s notification for appointment %s via %s.',
                    action.value,
                    appointment.id,
                    channel.name,
                )
                continue
            future.add_done_callback(
                lambda done, channel=channel: self._log_outcome(done, channel, appointment, action)
            )

    @staticmethod
    def _log_outcome(
        future: Future,
        channel: NotificationChannel,
        appointment: AppointmentRecord,
        action: NotificationAction,
    ) -> None:
        error = future.exception()
        if error is None:
            logger.debug('Sent %s notification for appointment %s via %s.', action.value, appointment.id, channel.name)
            return
        logger.error(
            'Failed to send %s notification for appointment %s via %s: %s',
            action.value,
            appointment.id,
            channel.name,
            error,
            exc_info=error,
        )

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
