import re
from datetime import date, datetime
from typing import Callable

from telecare.core.errors import ValidationError

Clock = Callable[[], datetime]

TIME_OF_DAY_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

def local_now() -> datetime:
    # Naive local wall clock, the same basis appointment times are booked in
    return datetime.now()

def normalize_time_of_day(value: str) -> str:
    """Return ``value`` as a zero-padded 24h "HH:MM" string.

    Accepts "9:05", "09:05" and "09:05:00"; anything else is a
    ``ValidationError``. Zero padding keeps string comparison in time order.
    """
    if not isinstance(value, str):
        raise ValidationError("Appointment time must be a string in HH:MM format")
    candidate = value.strip()
    if re.match(r"^\d:\d{2}", candidate):
        candidate = f"0{candidate}"
    if re.match(r"^\d{2}:\d{2}:\d{2}$", candidate):
        candidate = candidate[:5]
    if not TIME_OF_DAY_RE.match(candidate):
        raise ValidationError(f"Invalid appointment time '{value}'. Use HH:MM (24-hour)")
    return candidate

def split_now(now: datetime) -> tuple[date, str]:
    return now.date(), now.strftime("%H:%M")

def full_name(first_name: str | None, last_name: str | None) -> str:
    return " ".join(part for part in (first_name, last_name) if part).strip()
