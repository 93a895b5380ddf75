"""Pure calendar domain logic - no I/O dependencies."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, tzinfo
from urllib.parse import urlparse

from .dates import format_when, start_of_day
from .errors import ValidationError
from .messages import Embed

DEFAULT_DURATION = timedelta(hours=1)


@dataclass
class Event:
    """A calendar event stored for a channel."""

    id: str
    summary: str
    start: datetime
    end: datetime
    channel_id: str
    calendar_id: str
    description: str = ""
    location: str = ""
    url: str = ""
    organizer: str = ""
    whole_day: bool = False
    attendees: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    sequence: int = 0

    @property
    def is_external(self) -> bool:
        """Events of imported calendars are read-only."""
        return self.calendar_id != self.channel_id


@dataclass
class Calendar:
    """An external calendar imported into a channel."""

    id: str
    name: str
    channel_id: str
    url: str = ""
    description: str = ""
    hash: str = ""


@dataclass
class ImportedCalendar:
    """A fetched and parsed calendar feed, not yet stored."""

    name: str
    url: str
    events: list[Event]
    description: str = ""
    hash: str = ""

    @property
    def event_count(self) -> int:
        return len(self.events)


def new_id() -> str:
    return str(uuid.uuid4())


def clean_text(value: str) -> str:
    """Trim surrounding space and a trailing period."""
    value = value.strip()
    if value.endswith("."):
        value = value[:-1].rstrip()
    return value


def split_attendees(raw: str) -> list[str]:
    return [a.strip() for a in raw.split(",") if a.strip()]


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def truncate_whole_day(event: Event, tz: tzinfo | None) -> Event:
    """Snap both ends of a whole-day event to midnight in `tz`."""
    if not event.whole_day:
        return event
    start = event.start.astimezone(tz) if tz else event.start
    end = event.end.astimezone(tz) if tz else event.end
    start = start_of_day(start)
    end = max(start_of_day(end), start + timedelta(days=1))
    return replace(event, start=start, end=end)


def validate_event(event: Event, action: str = "create") -> None:
    """
    Check an event before it is shown for confirmation.

    Raises:
        ValidationError: with a message naming the first broken rule.
    """
    if not event.id.strip():
        raise ValidationError("Event ID is empty.")
    if not event.summary.strip():
        raise ValidationError(f"Can't {action} event, title is empty.")
    if event.end < event.start:
        raise ValidationError(f"Can't {action} event, start date must be before end date.")
    if event.url and not is_valid_url(event.url):
        raise ValidationError(f"Can't {action} event, invalid URL: {event.url}")


def apply_changes(event: Event, changes: dict) -> Event:
    """Return a copy of `event` with `changes` applied; unchanged fields are kept."""
    fields = {k: v for k, v in changes.items() if v is not None}
    return replace(event, **fields)


def diff_fields(old: Event, new: Event) -> list[str]:
    """Names of user-editable fields that differ."""
    names = ("summary", "description", "location", "url", "start", "end", "whole_day", "attendees")
    return [name for name in names if getattr(old, name) != getattr(new, name)]


def event_embed(event: Event, tz: tzinfo | None = None) -> Embed:
    """Card shown in confirmations and listings."""
    embed = Embed(title=event.summary, description=event.description, url=event.url, footer=f"ID: {event.id}")
    if event.whole_day:
        embed = embed.with_field("Date", format_when(event.start, tz)[:10], True)
    else:
        embed = embed.with_field("Start Date", format_when(event.start, tz), True)
        embed = embed.with_field("End Date", format_when(event.end, tz), True)
    embed = embed.with_field("Location", event.location)
    embed = embed.with_field("Attendees", ", ".join(event.attendees))
    embed = embed.with_field("Organizer", event.organizer, True)
    if event.is_external:
        embed = embed.with_field("Calendar", event.calendar_id, True)
    return embed


def default_end(start: datetime, end: datetime | None) -> datetime:
    return end if end is not None else start + DEFAULT_DURATION
