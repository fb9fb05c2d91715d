import os
from datetime import date, time

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_time(value: str | None, default: str) -> time:
    return time.fromisoformat((value or default).strip())


def _get_dates(value: str | None) -> frozenset[date]:
    if not value:
        return frozenset()
    return frozenset(date.fromisoformat(item.strip()) for item in value.split(",") if item.strip())


def _get_list(value: str | None, default: str) -> list[str]:
    return [item.strip() for item in (value or default).split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./salon.db")
CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), "http://localhost:5173,http://localhost:8080")

SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "30"))
WEEKDAY_OPEN_TIME = _get_time(os.getenv("WEEKDAY_OPEN_TIME"), "09:00")
WEEKDAY_CLOSE_TIME = _get_time(os.getenv("WEEKDAY_CLOSE_TIME"), "18:00")
SATURDAY_OPEN = _get_bool(os.getenv("SATURDAY_OPEN"), default=True)
SATURDAY_OPEN_TIME = _get_time(os.getenv("SATURDAY_OPEN_TIME"), "10:00")
SATURDAY_CLOSE_TIME = _get_time(os.getenv("SATURDAY_CLOSE_TIME"), "16:00")
SUNDAY_OPEN = _get_bool(os.getenv("SUNDAY_OPEN"), default=False)
CLOSED_DATES = _get_dates(os.getenv("CLOSED_DATES"))
WEEK_START = os.getenv("WEEK_START", "monday")

ADMIN_BOOKINGS_CONFIRMED = _get_bool(os.getenv("ADMIN_BOOKINGS_CONFIRMED"), default=True)
HARD_DELETE_ON_CANCEL = _get_bool(os.getenv("HARD_DELETE_ON_CANCEL"), default=False)
MAX_APPOINTMENT_NOTES_LENGTH = int(os.getenv("MAX_APPOINTMENT_NOTES_LENGTH", "600"))

NOTIFICATION_WORKERS = int(os.getenv("NOTIFICATION_WORKERS", "2"))
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Salone Achi <onboarding@resend.dev>")
SALON_NAME = os.getenv("SALON_NAME", "Salone Achi")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
# Tokens come from the identity provider; set the audience it stamps on them, if any.
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_MINUTES <= 0:
        raise RuntimeError("SLOT_MINUTES must be a positive number of minutes.")
