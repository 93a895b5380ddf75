"""Static command schema and the per-command subcommand dispatcher."""

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .errors import ValidationError
from .interaction import Interaction
from .messages import Payload
from .registry import Handler

logger = logging.getLogger(__name__)

_OPTION_NAME = re.compile(r"[a-z][a-z0-9-]*")
_TRUE = {"true", "yes", "y", "1", "on"}
_FALSE = {"false", "no", "n", "0", "off"}


class OptionType(Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class Option:
    """A typed command parameter."""

    name: str
    description: str
    type: OptionType = OptionType.STRING
    required: bool = False

    def coerce(self, raw: Any) -> Any:
        match self.type:
            case OptionType.STRING:
                return raw if isinstance(raw, str) else str(raw)
            case OptionType.INTEGER:
                if isinstance(raw, bool):
                    raise ValidationError(f"`{self.name}` must be a number.")
                try:
                    return int(raw)
                except (TypeError, ValueError):
                    raise ValidationError(f"`{self.name}` must be a number.") from None
            case OptionType.BOOLEAN:
                if isinstance(raw, bool):
                    return raw
                text = str(raw).strip().lower()
                if text in _TRUE:
                    return True
                if text in _FALSE:
                    return False
                raise ValidationError(f"`{self.name}` must be true or false.")

    @property
    def usage(self) -> str:
        return self.name if self.required else f"[{self.name}]"


def parse_args(options: Sequence[Option], args: Sequence[str], given: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """
    Turn raw command words into coerced option values.

    Words of the form `name=value` set the named option; other words fill the
    remaining options in declaration order. Values in `given` are already
    parsed by the transport and are taken as-is before coercion.
    """
    known = {o.name: o for o in options}
    raw: dict[str, Any] = {}

    for name, value in (given or {}).items():
        if name not in known:
            raise ValidationError(f"Unknown option `{name}`.")
        raw[name] = value

    positionals: list[str] = []
    for word in args:
        name, sep, value = word.partition("=")
        if sep and _OPTION_NAME.fullmatch(name):
            if name not in known:
                raise ValidationError(f"Unknown option `{name}`.")
            raw[name] = value
        else:
            positionals.append(word)

    free = [o.name for o in options if o.name not in raw]
    if len(positionals) > len(free):
        raise ValidationError("Too many arguments. Quote values that contain spaces.")
    for name, value in zip(free, positionals):
        raw[name] = value

    parsed: dict[str, Any] = {}
    for option in options:
        if option.name in raw:
            parsed[option.name] = option.coerce(raw[option.name])
        elif option.required:
            raise ValidationError(f"Missing required option `{option.name}`.")
    return parsed


class Command:
    """A persistent handler with a declared schema. Parses options, then runs `handler`."""

    def __init__(self, name: str, description: str, handler: Handler, options: Iterable[Option] = ()):
        self.name = name
        self.description = description
        self.handler = handler
        self.options = tuple(options)

    async def __call__(self, session, interaction: Interaction) -> None:
        try:
            options = parse_args(self.options, interaction.args, interaction.options)
        except ValidationError as e:
            logger.info(f"Bad options for {interaction.path}: {e}")
            await session.reply_initial(interaction.token, Payload.text(e.user_message), ephemeral=True)
            return
        await self.handler(session, replace(interaction, args=(), options=options))

    def usage(self, prefix: str = "") -> str:
        words = [f"/{prefix}{self.name}"] + [o.usage for o in self.options]
        return " ".join(words)

    def describe(self) -> list[tuple[str, str, str]]:
        return [(self.name, self.description, self.usage())]


class CommandGroup:
    """Top-level command whose first word picks a subcommand."""

    def __init__(self, name: str, description: str, subcommands: Iterable[Command]):
        self.name = name
        self.description = description
        self.subcommands = {c.name: c for c in subcommands}

    async def __call__(self, session, interaction: Interaction) -> None:
        name = interaction.subcommand
        args = interaction.args
        if name is None and args:
            name, args = args[0], args[1:]

        subcommand = self.subcommands.get(name) if name else None
        if subcommand is None:
            logger.info(f"Unknown subcommand {name!r} for /{self.name} from {interaction.invoker}")
            choices = ", ".join(self.subcommands)
            message = f"Unknown subcommand `{name}`. Try: {choices}." if name else f"Pick one of: {choices}."
            await session.reply_initial(interaction.token, Payload.text(message), ephemeral=True)
            return

        await subcommand(session, replace(interaction, subcommand=name, args=tuple(args)))

    def describe(self) -> list[tuple[str, str, str]]:
        return [
            (f"{self.name} {sub.name}", sub.description, sub.usage(prefix=f"{self.name} "))
            for sub in self.subcommands.values()
        ]
