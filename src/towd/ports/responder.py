"""Response adapter interface over the chat transport."""

from typing import Protocol

from towd.core.interaction import ReplyToken
from towd.core.messages import ModalSpec, Payload


class Responder(Protocol):
    """
    Operations a handler may perform against the chat.

    Every call raises TransportError when the transport refuses it.
    """

    async def reply_initial(self, token: ReplyToken, payload: Payload, *, ephemeral: bool = False) -> None:
        """Send the one allowed initial reply for `token`."""
        ...

    async def reply_deferred(self, token: ReplyToken, *, ephemeral: bool = False) -> None:
        """Acknowledge without content. Later `edit` calls fill the reply in."""
        ...

    async def edit(self, token: ReplyToken, payload: Payload) -> None:
        """Replace the content of the reply tied to `token`. Last write wins."""
        ...

    async def open_modal(self, token: ReplyToken, modal: ModalSpec) -> None:
        """Show a form. Its submission arrives as a separate modal interaction."""
        ...

    async def send_channel(self, channel: str, payload: Payload) -> None:
        """Post a message not tied to any interaction."""
        ...
