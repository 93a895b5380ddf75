"""Ports - interfaces/protocols for external dependencies."""

from .responder import Responder
from .store import Store, EventRepository, KanbanRepository, AuthRepository
from .calendar_feed import CalendarFeed
from .natural_service import NaturalService

__all__ = [
    "Responder",
    "Store",
    "EventRepository",
    "KanbanRepository",
    "AuthRepository",
    "CalendarFeed",
    "NaturalService",
]
