"""Functional core - dispatch, flows and pure domain logic with no I/O."""

from .errors import (
    TowdError,
    ValidationError,
    NotFoundError,
    PreconditionError,
    UpstreamError,
    PersistenceError,
    TransportError,
    ProgrammerError,
    DoubleReplyError,
    ConfigError,
)
from .interaction import Interaction, InteractionKind, ReplyToken
from .messages import Button, ButtonStyle, Embed, EmbedField, ModalField, ModalSpec, Payload
from .registry import DispatchTable, Registry
from .router import Router
from .flow import Flow, FlowOutcome, FlowResult
from .commands import Command, CommandGroup, Option, OptionType

__all__ = [
    # Errors
    "TowdError",
    "ValidationError",
    "NotFoundError",
    "PreconditionError",
    "UpstreamError",
    "PersistenceError",
    "TransportError",
    "ProgrammerError",
    "DoubleReplyError",
    "ConfigError",
    # Interactions
    "Interaction",
    "InteractionKind",
    "ReplyToken",
    # Payloads
    "Button",
    "ButtonStyle",
    "Embed",
    "EmbedField",
    "ModalField",
    "ModalSpec",
    "Payload",
    # Dispatch
    "DispatchTable",
    "Registry",
    "Router",
    "Flow",
    "FlowOutcome",
    "FlowResult",
    "Command",
    "CommandGroup",
    "Option",
    "OptionType",
]
