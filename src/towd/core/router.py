"""Interaction router: look up a handler, run it, never let it take the transport down."""

import logging

from .errors import ProgrammerError, TowdError, TransportError
from .interaction import Interaction, InteractionKind
from .messages import Payload
from .registry import DispatchTable

logger = logging.getLogger(__name__)

UNKNOWN_COMMAND = "Unknown command."
ACTION_EXPIRED = "Action expired."


class Router:
    """Routes interactions through a DispatchTable by kind and exact identifier."""

    def __init__(self, table: DispatchTable):
        self.table = table

    async def route(self, session, interaction: Interaction) -> None:
        handler = self.table.for_kind(interaction.kind).get(interaction.identifier)
        if handler is None:
            await self._fallback(session, interaction)
            return

        try:
            await handler(session, interaction)
        except ProgrammerError as e:
            logger.error(f"Programmer error in {interaction.path}: {e}")
        except TransportError as e:
            logger.warning(f"Transport failure in {interaction.path}: {e}")
        except TowdError as e:
            if e.recoverable:
                logger.info(f"{interaction.path} by {interaction.invoker}: {e}")
            else:
                logger.error(f"{interaction.path} by {interaction.invoker} failed: {e}")
            await self._surface(session, interaction, e)
        except Exception:
            logger.exception(f"Unhandled error in {interaction.path}")

    async def _fallback(self, session, interaction: Interaction) -> None:
        if interaction.kind is InteractionKind.COMMAND:
            logger.info(f"Unknown command {interaction.identifier!r} from {interaction.invoker}")
            message = UNKNOWN_COMMAND
        else:
            logger.debug(f"No handler for {interaction.kind.value} {interaction.identifier!r}")
            message = ACTION_EXPIRED

        try:
            await session.reply_initial(interaction.token, Payload.text(message), ephemeral=True)
        except TowdError as e:
            logger.warning(f"Can't send fallback reply for {interaction.identifier!r}: {e}")

    async def _surface(self, session, interaction: Interaction, error: TowdError) -> None:
        """Show an escaped error to the user on whichever reply the token still allows."""
        payload = Payload.text(error.user_message)
        try:
            if interaction.token.replied:
                await session.edit(interaction.token, payload)
            else:
                await session.reply_initial(interaction.token, payload, ephemeral=True)
        except TowdError as e:
            logger.warning(f"Can't report error for {interaction.path}: {e}")
