"""Persistence interfaces used by handlers."""

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from towd.core.auth import SessionToken, User
from towd.core.calendar import Calendar, Event
from towd.core.kanban import KanbanGroup, KanbanItem


class EventRepository(Protocol):
    """Events and the calendars they belong to."""

    def get_event(self, event_id: str, channel_id: str) -> Event | None:
        ...

    def list_events(self, channel_id: str, start: datetime, end: datetime) -> list[Event]:
        """Events of the channel starting in [start, end]."""
        ...

    def insert_event(self, event: Event) -> None:
        ...

    def update_event(self, event: Event) -> None:
        """Overwrite an event and its attendees, bumping its sequence."""
        ...

    def delete_event(self, event_id: str, channel_id: str) -> None:
        ...

    def ensure_channel_calendar(self, channel_id: str, name: str) -> None:
        """Create the channel's own calendar on first use."""
        ...

    def get_calendar(self, calendar_id: str, channel_id: str) -> Calendar | None:
        ...

    def calendar_url_exists(self, url: str, channel_id: str) -> bool:
        ...

    def insert_calendar(self, calendar: Calendar, events: list[Event]) -> None:
        ...

    def delete_calendar(self, calendar_id: str, channel_id: str) -> int:
        """Delete an external calendar with its events. Returns the number of events removed."""
        ...


class KanbanRepository(Protocol):
    def list_groups(self, channel_id: str) -> list[KanbanGroup]:
        ...

    def get_group(self, name: str, channel_id: str) -> KanbanGroup | None:
        ...

    def insert_group(self, group: KanbanGroup) -> None:
        ...

    def list_items(self, channel_id: str) -> list[KanbanItem]:
        ...

    def get_item(self, item_id: int, channel_id: str) -> KanbanItem | None:
        ...

    def insert_item(self, content: str, group_name: str, channel_id: str) -> KanbanItem:
        ...

    def move_item(self, item_id: int, group_name: str, channel_id: str) -> None:
        ...

    def delete_item(self, item_id: int, channel_id: str) -> None:
        ...


class AuthRepository(Protocol):
    def get_user(self, user_id: str) -> User | None:
        ...

    def set_totp_secret(self, user_id: str, secret: str) -> None:
        """Create the user if needed and store the secret."""
        ...

    def list_sessions(self, user_id: str) -> list[SessionToken]:
        ...

    def delete_session(self, secret: str) -> None:
        ...


class Store(EventRepository, KanbanRepository, AuthRepository, Protocol):
    """
    The whole database.

    `transaction()` groups writes: everything inside commits together or not
    at all. Failures raise PersistenceError after rollback.
    """

    def transaction(self) -> AbstractContextManager[None]:
        ...

    def close(self) -> None:
        ...
