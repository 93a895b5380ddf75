"""Natural-language service interface."""

from datetime import datetime
from typing import Protocol

from towd.core.calendar import Event
from towd.core.natural import NaturalOutput


class NaturalService(Protocol):
    """Turns a free-text request into a tagged event action."""

    def request(self, text: str, now: datetime, context: Event | None = None) -> NaturalOutput:
        """Blocking call. Raises UpstreamError on any service failure."""
        ...
