"""
Shared handler template.

Every command follows the same steps: acknowledge with a deferred reply,
read options, check preconditions, prompt for confirmation, wait, commit in a
transaction, and let the flow clean up after itself. `deferred` covers the
first three and turns recoverable errors into an edit of the pending reply.
`confirm_and_commit` covers the rest.
"""

import functools
import logging
from collections.abc import Callable

from towd.core.errors import PersistenceError, TowdError, TransportError
from towd.core.flow import FlowOutcome, FlowResult
from towd.core.interaction import Interaction, ReplyToken
from towd.core.messages import Payload

logger = logging.getLogger(__name__)

TIMED_OUT = "Timed out waiting for confirmation."
PROMPT_FAILED = "Something went wrong while waiting for your answer. Please try again."


def deferred(ephemeral: bool = False):
    """Acknowledge first, then run the handler; show recoverable errors in the reply."""

    def decorate(fn):
        @functools.wraps(fn)
        async def wrapper(session, interaction: Interaction) -> None:
            await session.reply_deferred(interaction.token, ephemeral=ephemeral)
            try:
                await fn(session, interaction)
            except PersistenceError as e:
                logger.error(f"{interaction.path}: {e.message}: {e.cause}")
                await session.edit(interaction.token, Payload.text(e.user_message))
            except TowdError as e:
                if not e.recoverable:
                    raise
                logger.info(f"{interaction.path} by {interaction.invoker}: {e.message}")
                await session.edit(interaction.token, Payload.text(e.user_message))

        return wrapper

    return decorate


async def notify_channel(session, channel: str, text: str) -> None:
    """Channel-level message for when no reply token is usable."""
    try:
        await session.send_channel(channel, Payload.text(text))
    except TransportError as e:
        logger.warning(f"Can't notify channel {channel}: {e}")


async def reply_click(session, interaction: Interaction, result: FlowResult, text: str, ephemeral: bool = False) -> None:
    """Answer the click that ended a flow, falling back to the channel."""
    payload = Payload.text(text)
    try:
        await session.reply_initial(result.token, payload, ephemeral=ephemeral)
    except TransportError as e:
        logger.warning(f"{interaction.path}: can't answer button: {e}")
        if not ephemeral:
            await notify_channel(session, interaction.channel, text)


async def retire_prompt(session, token: ReplyToken, prompt: Payload) -> None:
    """Show the prompt again without its buttons."""
    try:
        await session.edit(token, Payload(content=prompt.content, embeds=prompt.embeds))
    except TransportError as e:
        logger.debug(f"Can't retire prompt: {e}")


async def settle(
    state,
    session,
    interaction: Interaction,
    result: FlowResult,
    commit: Callable[[], str | None],
    *,
    done: str,
    canceled: str,
    ephemeral: bool = False,
) -> bool:
    """
    Act on a finished flow.

    Timeout goes to the channel, cancel and commit results go to the click.
    `commit` runs inside one transaction and may return a message replacing
    `done`. Returns True when the change was committed.
    """
    match result.outcome:
        case FlowOutcome.TIMEOUT:
            logger.info(f"{interaction.path} by {interaction.invoker}: timed out")
            await notify_channel(session, interaction.channel, TIMED_OUT)
            return False
        case FlowOutcome.ERROR:
            logger.warning(f"{interaction.path}: prompt failed: {result.error}")
            await notify_channel(session, interaction.channel, PROMPT_FAILED)
            return False
        case FlowOutcome.CANCEL:
            await reply_click(session, interaction, result, canceled, ephemeral)
            return False

    try:
        with state.store.transaction():
            message = commit()
    except PersistenceError as e:
        logger.error(f"{interaction.path}: commit failed: {e.cause}")
        await reply_click(session, interaction, result, e.user_message, ephemeral)
        return False

    await reply_click(session, interaction, result, message or done, ephemeral)
    return True


async def confirm_and_commit(
    state,
    session,
    interaction: Interaction,
    prompt: Payload,
    commit: Callable[[], str | None],
    *,
    done: str,
    canceled: str,
    yes_label: str = "Yes",
    ephemeral: bool = False,
) -> bool:
    """Yes/Cancel prompt on the interaction's reply, then `settle`."""
    async with state.flow(session, interaction.token) as flow:
        result = await flow.confirm(prompt, yes_label=yes_label)
    if result.outcome is not FlowOutcome.ERROR:
        await retire_prompt(session, interaction.token, prompt)
    return await settle(
        state, session, interaction, result, commit, done=done, canceled=canceled, ephemeral=ephemeral
    )
