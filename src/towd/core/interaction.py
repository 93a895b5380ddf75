"""Inbound interactions and the reply tokens that answer them."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from .errors import DoubleReplyError, ProgrammerError

logger = logging.getLogger(__name__)

_EMPTY: Mapping[str, Any] = MappingProxyType({})


class InteractionKind(Enum):
    COMMAND = "command"
    COMPONENT = "component"
    MODAL = "modal"


class ReplyToken:
    """
    Capability to answer one interaction.

    Admits exactly one initial response (a reply or a deferred acknowledgement),
    after which only edits are allowed. Adapters hold `lock` around every call
    made with the token, so edits land in the order they were issued.
    """

    def __init__(self, interaction_id: str, ref: Any = None):
        self.interaction_id = interaction_id
        # Transport-owned: whatever the adapter needs to find the message again.
        self.ref = ref
        self.message_ref: Any = None
        self.ephemeral = False
        self.lock = asyncio.Lock()
        self._claimed = False

    @property
    def replied(self) -> bool:
        return self._claimed

    def claim_initial(self) -> None:
        """Mark the initial response as sent. A second claim is a programmer error."""
        if self._claimed:
            logger.error(f"Second initial reply attempted on interaction {self.interaction_id}")
            raise DoubleReplyError(f"interaction {self.interaction_id} already has an initial reply")
        self._claimed = True

    def require_initial(self) -> None:
        """Edits need an initial or deferred reply to amend."""
        if not self._claimed:
            raise ProgrammerError(f"interaction {self.interaction_id} has no reply to edit")

    def __repr__(self) -> str:
        return f"ReplyToken({self.interaction_id!r}, replied={self._claimed})"


@dataclass(frozen=True)
class Interaction:
    """One inbound chat event: a slash command, a button click or a modal submission."""

    kind: InteractionKind
    identifier: str
    invoker: str
    channel: str
    token: ReplyToken
    guild: str | None = None
    invoker_name: str = ""
    args: tuple[str, ...] = ()
    options: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    subcommand: str | None = None
    values: Mapping[str, str] = field(default_factory=lambda: _EMPTY)

    def option(self, name: str, default: Any = None) -> Any:
        return self.options.get(name, default)

    def value(self, field_id: str, default: str = "") -> str:
        return self.values.get(field_id, default)

    @property
    def path(self) -> str:
        """Command path for logs, e.g. `event create-manual`."""
        if self.subcommand:
            return f"{self.identifier} {self.subcommand}"
        return self.identifier
