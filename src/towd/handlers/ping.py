"""`/ping` - round trip check."""

import time

from towd.core.commands import Command
from towd.core.interaction import Interaction
from towd.core.messages import Payload


async def ping_handler(session, interaction: Interaction) -> None:
    started = time.monotonic()
    await session.reply_deferred(interaction.token)
    elapsed_ms = (time.monotonic() - started) * 1000
    await session.edit(interaction.token, Payload.text(f"Pong! `{elapsed_ms:.0f} ms`"))


def ping_command(state) -> Command:
    return Command("ping", "Check that the bot is alive.", ping_handler)
