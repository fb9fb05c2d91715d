"""
Appointment emails sent through Resend.

One message per booking change (new / updated / cancelled), addressed to the
client profile that owns the appointment.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from html import escape

import resend
from sqlalchemy.orm import sessionmaker

from salon_backend.booking.notifications import NotificationAction, NotificationChannel
from salon_backend.booking.types import AppointmentRecord
from salon_backend.core import config
from salon_backend.models.user import User

logger = logging.getLogger(__name__)

SUBJECTS = {
    NotificationAction.NEW: "Appointment booked",
    NotificationAction.UPDATED: "Appointment updated",
    NotificationAction.CANCELLED: "Appointment cancelled",
}

BODIES = {
    NotificationAction.NEW: "Dear {name}, your appointment for {service} is booked for {date} at {time}.",
    NotificationAction.UPDATED: "Dear {name}, your appointment for {service} has been updated to {date} at {time}.",
    NotificationAction.CANCELLED: "Dear {name}, your appointment for {service} on {date} at {time} has been cancelled.",
}


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str


def profile_recipient_lookup(session_factory: sessionmaker) -> Callable[[str], Recipient | None]:
    def lookup(client_id: str) -> Recipient | None:
        db = session_factory()
        try:
            user = db.query(User).filter(User.id == client_id).first()
        finally:
            db.close()
        if user is None or not user.email:
            return None
        return Recipient(email=user.email, name=user.full_name or user.email)

    return lookup


def render_email(appointment: AppointmentRecord, action: NotificationAction, recipient_name: str) -> tuple[str, str]:
    content = BODIES[action].format(
        name=escape(recipient_name),
        service=escape(appointment.service_name),
        date=appointment.date.strftime("%d/%m/%Y"),
        time=appointment.start_time.strftime("%H:%M"),
    )
    heading = SUBJECTS[action]
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f"<h1>{heading}</h1>"
        f"<p>{content}</p>"
        "<p>If you have questions or need to change your appointment, please contact us.</p>"
        f"<p>{escape(config.SALON_NAME)}</p>"
        "</div>"
    )
    return heading, html


class ResendEmailChannel(NotificationChannel):
    name = "email"

    def __init__(
        self,
        recipient_lookup: Callable[[str], Recipient | None],
        api_key: str | None = None,
        from_address: str | None = None,
    ):
        self.recipient_lookup = recipient_lookup
        self.api_key = api_key if api_key is not None else config.RESEND_API_KEY
        self.from_address = from_address or config.EMAIL_FROM_ADDRESS

    def send(self, appointment: AppointmentRecord, action: NotificationAction) -> None:
        if not self.api_key:
            raise RuntimeError("Email service not configured - RESEND_API_KEY missing")

        recipient = self.recipient_lookup(appointment.client_id)
        if recipient is None:
            logger.warning(
                "No email address for client %s; skipping %s email for appointment %s",
                appointment.client_id,
                action.value,
                appointment.id,
            )
            return

        subject, html = render_email(appointment, action, recipient.name)
        resend.api_key = self.api_key
        response = resend.Emails.send({
            "from": self.from_address,
            "to": [recipient.email],
            "subject": subject,
            "html": html,
        })
        logger.info("Sent %s email for appointment %s to %s: %s", action.value, appointment.id, recipient.email, response)
