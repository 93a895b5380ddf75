"""Parsing and formatting of user-supplied dates. Pure functions - no I/O."""

import re
from datetime import date, datetime, time, timedelta, tzinfo

DISPLAY_FORMAT = "%Y-%m-%d %H:%M"
# Format exchanged with the natural-language service.
NATURAL_FORMAT = "%d/%m/%Y %H:%M"

_ABSOLUTE_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%Y-%m-%d",
    "%d/%m/%Y",
)
_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_RELATIVE = re.compile(r"in\s+(\d+)\s+(minute|min|hour|day|week)s?")
_CLOCK = re.compile(r"(?:at\s+)?(\d{1,2})(?::(\d{2}))?\s*(am|pm)?")
_UNITS = {
    "minute": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
}


def parse_clock(text: str) -> time:
    """Parse `10:00`, `10am`, `3:30pm` or `at 9`. Raises ValueError."""
    match = _CLOCK.fullmatch(text.strip().lower())
    if not match:
        raise ValueError(f"can't understand time {text!r}")
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = match.group(3)
    if meridiem:
        if not 1 <= hour <= 12:
            raise ValueError(f"can't understand time {text!r}")
        hour = hour % 12 + (12 if meridiem == "pm" else 0)
    if hour > 23 or minute > 59:
        raise ValueError(f"can't understand time {text!r}")
    return time(hour, minute)


def _relative_day(word: str, today: date) -> date | None:
    match word:
        case "today":
            return today
        case "tomorrow":
            return today + timedelta(days=1)
        case "yesterday":
            return today - timedelta(days=1)
        case _ if word in _WEEKDAYS:
            ahead = (_WEEKDAYS.index(word) - today.weekday()) % 7
            return today + timedelta(days=ahead)
    return None


def parse_when(text: str, now: datetime) -> datetime:
    """
    Parse a user-supplied date relative to `now`.

    Accepts absolute forms (`2025-01-10 10:00`, ISO 8601, `10/01/2025 10:00`,
    bare dates) and a few relative ones (`now`, `in 2 hours`, `tomorrow 9am`,
    `friday 14:00`). The result carries `now`'s timezone.

    Raises:
        ValueError: if the text matches none of the forms.
    """
    tz = now.tzinfo
    raw = text.strip()
    cleaned = " ".join(raw.lower().split())
    if not cleaned:
        raise ValueError("date is empty")

    if cleaned == "now":
        return now.replace(second=0, microsecond=0)

    relative = _RELATIVE.fullmatch(cleaned)
    if relative:
        return now.replace(second=0, microsecond=0) + int(relative.group(1)) * _UNITS[relative.group(2)]

    word, _, rest = cleaned.partition(" ")
    day = _relative_day(word, now.date())
    if day is not None:
        clock = parse_clock(rest) if rest else time(0, 0)
        return datetime.combine(day, clock, tzinfo=tz)

    for fmt in _ABSOLUTE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).replace(tzinfo=tz)
        except ValueError:
            continue

    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValueError(f"can't understand date {text!r}") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz) if tz else parsed


def parse_natural(text: str, tz: tzinfo | None) -> datetime:
    """Parse a `DD/MM/YYYY HH:MM` value from the natural-language service."""
    return datetime.strptime(text.strip(), NATURAL_FORMAT).replace(tzinfo=tz)


def format_natural(dt: datetime) -> str:
    return dt.strftime(NATURAL_FORMAT)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def format_when(dt: datetime, tz: tzinfo | None = None) -> str:
    if tz is not None:
        dt = dt.astimezone(tz)
    return dt.strftime(DISPLAY_FORMAT)


def describe_range(start: datetime, end: datetime, now: datetime) -> str:
    """Short label for a listing range: `today` or `2025-01-10 00:00 - 2025-01-11 00:00`."""
    today = start_of_day(now)
    if start == today and end == today + timedelta(days=1):
        return "today"
    return f"{format_when(start)} - {format_when(end)}"
