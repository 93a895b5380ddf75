"""HTTP iCalendar feed adapter - implements the CalendarFeed port."""

import hashlib
import logging
import uuid
from datetime import date, datetime, time, timezone, tzinfo

import requests
from icalendar import Calendar as ICalendar

from towd.core.calendar import Event, ImportedCalendar, default_end
from towd.core.errors import UpstreamError

logger = logging.getLogger(__name__)


def _to_datetime(value: date | datetime, tz: tzinfo | None) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=tz or timezone.utc)
    return datetime.combine(value, time(0, 0), tzinfo=tz or timezone.utc)


def _text(component, key: str) -> str:
    value = component.get(key)
    return str(value).strip() if value is not None else ""


def _attendees(component) -> list[str]:
    raw = component.get("ATTENDEE")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raw = [raw]
    attendees = []
    for attendee in raw:
        name = attendee.params.get("CN") if hasattr(attendee, "params") else None
        attendees.append(str(name or attendee).removeprefix("mailto:").removeprefix("MAILTO:"))
    return attendees


def parse_calendar(
    content: bytes, url: str, channel_id: str, calendar_id: str, tz: tzinfo | None = None
) -> ImportedCalendar:
    """
    Parse raw iCalendar bytes into master events.

    Occurrence overrides (VEVENTs carrying RECURRENCE-ID) are skipped; recurrence
    rules are not expanded.
    """
    try:
        ical = ICalendar.from_ical(content)
    except ValueError as e:
        raise UpstreamError(f"can't parse calendar: {e}", user_message=f"Can't parse calendar\n```\n{e}\n```") from e

    events = []
    for component in ical.walk("VEVENT"):
        if component.get("RECURRENCE-ID") is not None:
            continue
        dtstart = component.get("DTSTART")
        if dtstart is None:
            logger.debug(f"Skipping VEVENT without DTSTART in {url}")
            continue
        whole_day = not isinstance(dtstart.dt, datetime)
        start = _to_datetime(dtstart.dt, tz)
        dtend = component.get("DTEND")
        end = default_end(start, _to_datetime(dtend.dt, tz) if dtend is not None else None)
        uid = _text(component, "UID") or str(uuid.uuid4())
        organizer = component.get("ORGANIZER")
        events.append(
            Event(
                id=str(uuid.uuid5(uuid.NAMESPACE_URL, f"{calendar_id}/{uid}")),
                summary=_text(component, "SUMMARY") or "Untitled",
                description=_text(component, "DESCRIPTION"),
                location=_text(component, "LOCATION"),
                url=_text(component, "URL"),
                organizer=str(organizer).removeprefix("mailto:") if organizer is not None else "",
                start=start,
                end=end,
                whole_day=whole_day,
                sequence=int(component.get("SEQUENCE", 0)),
                calendar_id=calendar_id,
                channel_id=channel_id,
                attendees=_attendees(component),
            )
        )

    return ImportedCalendar(
        name=_text(ical, "X-WR-CALNAME") or _text(ical, "NAME"),
        description=_text(ical, "X-WR-CALDESC") or _text(ical, "DESCRIPTION"),
        url=url,
        hash=hashlib.sha256(content).hexdigest(),
        events=events,
    )


class HTTPCalendarFeed:
    """Downloads calendars over HTTP(S)."""

    def __init__(self, session: requests.Session | None = None, timeout: float = 60.0, tz: tzinfo | None = None):
        self._session = session or requests.Session()
        self.timeout = timeout
        self.tz = tz

    def fetch(self, url: str, channel_id: str, calendar_id: str) -> ImportedCalendar:
        try:
            resp = self._session.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning(f"Calendar fetch failed for {url}: {e}")
            raise UpstreamError(
                f"can't fetch calendar {url}: {e}", user_message=f"Can't fetch calendar\n```\n{e}\n```"
            ) from e
        return parse_calendar(resp.content, url, channel_id, calendar_id, self.tz)
