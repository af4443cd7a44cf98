"""Slot normalization and the bookable half-hour grid.

Slots are stored as one naive local timestamp (``scheduled_at``). No timezone
is attached or converted anywhere, so ``2025-09-05`` + ``11:00`` is always
``2025-09-05T11:00:00``.
"""

import re
from datetime import date, datetime
from typing import List, Tuple

DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def to_db_time(t: str) -> str:
    """Pad an ``HH:MM`` time-of-day with seconds: ``11:00`` -> ``11:00:00``."""
    return f"{t}:00" if t and len(t) == 5 else t


def parse_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` date; raises ValueError otherwise."""
    if not DATE_PATTERN.fullmatch(value):
        raise ValueError(f"Expected YYYY-MM-DD, got {value!r}")
    return datetime.strptime(value, DATE_FORMAT).date()


def normalize_slot(date_str: str, time_str: str) -> datetime:
    """Combine a ``YYYY-MM-DD`` date and ``HH:MM`` time into a naive datetime.

    Raises ValueError on malformed input.
    """
    return datetime.fromisoformat(f"{date_str}T{to_db_time(time_str)}")


def format_slot(slot: datetime) -> str:
    return slot.isoformat(timespec="seconds")


def split_slot(slot: datetime) -> Tuple[str, str]:
    """Recover the ``(YYYY-MM-DD, HH:MM)`` pair a slot was built from."""
    return slot.strftime(DATE_FORMAT), slot.strftime(TIME_FORMAT)


def generate_time_slots(first_hour: int = 8, last_hour: int = 17, step_minutes: int = 30) -> List[str]:
    times: List[str] = []
    for hour in range(first_hour, last_hour + 1):
        for minute in range(0, 60, step_minutes):
            times.append(f"{hour:02d}:{minute:02d}")
    return times
