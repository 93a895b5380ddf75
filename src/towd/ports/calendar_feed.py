"""Calendar feed interface."""

from typing import Protocol

from towd.core.calendar import ImportedCalendar


class CalendarFeed(Protocol):
    """Fetches and parses an iCalendar feed."""

    def fetch(self, url: str, channel_id: str, calendar_id: str) -> ImportedCalendar:
        """Download `url` and return its master events bound to `calendar_id`. Raises UpstreamError."""
        ...
