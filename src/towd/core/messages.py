"""Transport-neutral message payloads: text, embeds, buttons and modal forms."""

from dataclasses import dataclass, field, replace
from enum import Enum


class ButtonStyle(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUCCESS = "success"
    DANGER = "danger"


@dataclass(frozen=True)
class Button:
    """A clickable button. Clicks arrive as component interactions keyed by `custom_id`."""

    label: str
    custom_id: str
    style: ButtonStyle = ButtonStyle.PRIMARY


@dataclass(frozen=True)
class EmbedField:
    name: str
    value: str
    inline: bool = False


@dataclass(frozen=True)
class Embed:
    """A titled card attached to a message."""

    title: str = ""
    description: str = ""
    url: str = ""
    fields: tuple[EmbedField, ...] = ()
    footer: str = ""

    def with_field(self, name: str, value: str, inline: bool = False) -> "Embed":
        if not value:
            return self
        return replace(self, fields=self.fields + (EmbedField(name, value, inline),))


@dataclass(frozen=True)
class Payload:
    """Content of a reply, edit or channel message."""

    content: str = ""
    embeds: tuple[Embed, ...] = ()
    buttons: tuple[Button, ...] = ()

    @classmethod
    def text(cls, content: str) -> "Payload":
        return cls(content=content)

    def with_buttons(self, *buttons: Button) -> "Payload":
        return replace(self, buttons=self.buttons + tuple(buttons))

    @property
    def is_plain(self) -> bool:
        """True when the payload is text only."""
        return not self.embeds and not self.buttons


@dataclass(frozen=True)
class ModalField:
    id: str
    label: str
    required: bool = True
    placeholder: str = ""
    value: str = ""
    max_length: int = 4000


@dataclass(frozen=True)
class ModalSpec:
    """A form shown to the user. The submission arrives as a modal interaction."""

    custom_id: str
    title: str
    fields: tuple[ModalField, ...] = field(default_factory=tuple)

    def with_id(self, custom_id: str) -> "ModalSpec":
        return replace(self, custom_id=custom_id)


def button_rows(buttons: tuple[Button, ...] | list[Button], width: int = 5) -> list[list[Button]]:
    """Lay buttons out in rows of at most `width`."""
    return [list(buttons[i : i + width]) for i in range(0, len(buttons), width)]
