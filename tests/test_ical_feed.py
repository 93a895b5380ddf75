"""Tests for the iCalendar feed adapter."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from towd.adapters.ical_feed import HTTPCalendarFeed, parse_calendar
from towd.core.errors import UpstreamError

ICS = b"""BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Towd//Test//EN
X-WR-CALNAME:Team Holidays
X-WR-CALDESC:Days off
BEGIN:VEVENT
UID:one@test
DTSTAMP:20250101T000000Z
DTSTART:20250110T100000Z
DTEND:20250110T110000Z
SUMMARY:Planning
LOCATION:Room 1
ORGANIZER:mailto:boss@test
ATTENDEE;CN=Ada:mailto:ada@test
ATTENDEE:mailto:bob@test
SEQUENCE:2
END:VEVENT
BEGIN:VEVENT
UID:two@test
DTSTAMP:20250101T000000Z
DTSTART;VALUE=DATE:20251225
DTEND;VALUE=DATE:20251226
SUMMARY:Christmas
END:VEVENT
BEGIN:VEVENT
UID:one@test
DTSTAMP:20250101T000000Z
RECURRENCE-ID:20250117T100000Z
DTSTART:20250117T120000Z
DTEND:20250117T130000Z
SUMMARY:Planning (moved)
END:VEVENT
END:VCALENDAR
"""


class TestParseCalendar:
    def test_calendar_metadata(self):
        imported = parse_calendar(ICS, "https://x.test/h.ics", "c1", "cal-1")
        assert imported.name == "Team Holidays"
        assert imported.description == "Days off"
        assert imported.url == "https://x.test/h.ics"
        assert len(imported.hash) == 64

    def test_skips_occurrence_overrides(self):
        imported = parse_calendar(ICS, "https://x.test/h.ics", "c1", "cal-1")
        assert [e.summary for e in imported.events] == ["Planning", "Christmas"]
        assert imported.event_count == 2

    def test_timed_event(self):
        planning = parse_calendar(ICS, "u", "c1", "cal-1").events[0]
        assert planning.start == datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)
        assert planning.end == datetime(2025, 1, 10, 11, 0, tzinfo=timezone.utc)
        assert planning.location == "Room 1"
        assert planning.organizer == "boss@test"
        assert planning.attendees == ["Ada", "bob@test"]
        assert planning.sequence == 2
        assert not planning.whole_day
        assert planning.calendar_id == "cal-1"
        assert planning.channel_id == "c1"
        assert planning.is_external

    def test_whole_day_event(self):
        christmas = parse_calendar(ICS, "u", "c1", "cal-1").events[1]
        assert christmas.whole_day
        assert christmas.start == datetime(2025, 12, 25, tzinfo=timezone.utc)

    def test_ids_are_stable_per_calendar(self):
        first = parse_calendar(ICS, "u", "c1", "cal-1").events[0].id
        again = parse_calendar(ICS, "u", "c1", "cal-1").events[0].id
        other = parse_calendar(ICS, "u", "c1", "cal-2").events[0].id
        assert first == again
        assert first != other


class TestHTTPCalendarFeed:
    def test_fetch(self):
        session = MagicMock()
        session.get.return_value.content = ICS
        feed = HTTPCalendarFeed(session=session, timeout=5)

        imported = feed.fetch("https://x.test/h.ics", "c1", "cal-1")

        session.get.assert_called_once_with("https://x.test/h.ics", timeout=5)
        assert imported.name == "Team Holidays"

    def test_http_error(self):
        session = MagicMock()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
        with pytest.raises(UpstreamError) as excinfo:
            HTTPCalendarFeed(session=session).fetch("https://x.test/h.ics", "c1", "cal-1")
        assert "404 Not Found" in excinfo.value.user_message
