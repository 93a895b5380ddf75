"""Application state: the one object that ties config, storage and dispatch together."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo

from .config import Config
from .core.commands import Command, CommandGroup
from .core.flow import Flow
from .core.interaction import ReplyToken
from .core.registry import DispatchTable
from .core.router import Router
from .ports import CalendarFeed, NaturalService, Store

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """
    Built once at startup and closed on shutdown.

    Everything here is read-only after startup except the dispatch table,
    which does its own locking.
    """

    config: Config
    store: Store
    table: DispatchTable = field(default_factory=DispatchTable)
    natural: NaturalService | None = None
    feed: CalendarFeed | None = None
    commands: list[Command | CommandGroup] = field(default_factory=list)

    def __post_init__(self):
        self.router = Router(self.table)

    @property
    def tz(self) -> tzinfo | None:
        return self.config.location

    def now(self) -> datetime:
        tz = self.tz
        return datetime.now(tz) if tz else datetime.now().astimezone()

    def add_command(self, command: Command | CommandGroup) -> None:
        """Register a persistent handler under its top-level name."""
        self.commands.append(command)
        self.table.commands.add(command.name, command)

    def flow(self, responder, token: ReplyToken, **kwargs) -> Flow:
        kwargs.setdefault("timeout", self.config.flow_timeout)
        return Flow(self.table, responder, token, **kwargs)

    def describe_commands(self) -> list[tuple[str, str, str]]:
        return [line for command in self.commands for line in command.describe()]

    def close(self) -> None:
        logger.info("Closing application state")
        self.store.close()


def build_state(config: Config) -> AppState:
    """Wire adapters and handlers for a running bot."""
    from .adapters.groq_natural import GroqNaturalService
    from .adapters.ical_feed import HTTPCalendarFeed
    from .adapters.sqlite_store import SQLiteStore
    from .handlers import register_handlers

    store = SQLiteStore(config.database_path)
    store.init_schema()

    natural = None
    if config.natural_enabled:
        natural = GroqNaturalService(config.groq_api_key, model=config.natural_model)
    else:
        logger.info("Natural-language requests disabled (no Groq API key)")

    state = AppState(config=config, store=store, natural=natural, feed=HTTPCalendarFeed(tz=config.location))
    register_handlers(state)
    logger.info(f"Registered {len(state.commands)} commands, database at {config.database_path}")
    return state
