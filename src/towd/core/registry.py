"""Process-wide handler registry."""

import threading
from collections.abc import Awaitable, Callable, Iterator
from typing import TYPE_CHECKING, Any

from .interaction import Interaction, InteractionKind

if TYPE_CHECKING:
    from ..ports.responder import Responder

Handler = Callable[["Responder", Interaction], Awaitable[Any]]


class Registry:
    """
    Mapping of identifier to handler, safe to share between threads.

    Writers copy the table under a lock and publish the new dict in a single
    assignment. Readers grab whatever dict is published and never block, so
    lookups run concurrently with each other and iteration always walks a
    consistent snapshot.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._entries: dict[str, Handler] = {}
        self._write_lock = threading.Lock()

    def add(self, identifier: str, handler: Handler) -> None:
        """Register `handler`. An existing entry is overwritten."""
        with self._write_lock:
            entries = dict(self._entries)
            entries[identifier] = handler
            self._entries = entries

    def get(self, identifier: str) -> Handler | None:
        return self._entries.get(identifier)

    def remove(self, identifier: str) -> None:
        """Drop `identifier`. Missing ids are ignored."""
        with self._write_lock:
            if identifier not in self._entries:
                return
            entries = dict(self._entries)
            del entries[identifier]
            self._entries = entries

    def iterate(self, fn: Callable[[str, Handler], None]) -> None:
        """Call `fn(identifier, handler)` for every entry of a snapshot."""
        for identifier, handler in self._entries.items():
            fn(identifier, handler)

    def snapshot(self) -> dict[str, Handler]:
        return dict(self._entries)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


class DispatchTable:
    """One registry per interaction kind: command names, component ids, modal ids."""

    def __init__(self):
        self.commands = Registry("commands")
        self.components = Registry("components")
        self.modals = Registry("modals")

    def for_kind(self, kind: InteractionKind) -> Registry:
        match kind:
            case InteractionKind.COMMAND:
                return self.commands
            case InteractionKind.COMPONENT:
                return self.components
            case InteractionKind.MODAL:
                return self.modals
        raise ValueError(f"Unknown interaction kind: {kind}")

    def ids_with_suffix(self, suffix: str) -> list[str]:
        """Transient ids carrying `suffix` across component and modal registries."""
        return [
            identifier
            for registry in (self.components, self.modals)
            for identifier in registry
            if identifier.endswith(suffix)
        ]
