"""External calendar commands: import from a URL, delete."""

import asyncio
import logging

from towd.core.calendar import Calendar, clean_text, is_valid_url, new_id
from towd.core.commands import Command, CommandGroup, Option
from towd.core.errors import NotFoundError, PreconditionError, UpstreamError, ValidationError
from towd.core.flow import FlowOutcome
from towd.core.interaction import Interaction
from towd.core.messages import ButtonStyle, ModalField, ModalSpec, Payload

from .common import PROMPT_FAILED, confirm_and_commit, deferred, notify_channel, reply_click, retire_prompt

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 300.0
NAME_TIMEOUT = 300.0

NAME_FORM = ModalSpec(
    custom_id="calendar-name",
    title="Enter a name for the calendar",
    fields=(ModalField("name", "Calendar name (max 300 characters)", max_length=300),),
)


async def _ask_for_name(state, session, interaction: Interaction):
    """
    Offer a form for a missing calendar name.

    Returns `(name, submission)` or None when the user canceled or never answered.
    """
    prompt = Payload.text("Seems like the calendar is missing a name.")
    timeout = max(state.config.flow_timeout, NAME_TIMEOUT)
    async with state.flow(session, interaction.token, timeout=timeout) as flow:
        flow.modal_button("add-name", "Give it one", NAME_FORM)
        flow.cancel_button("Cancel import", ButtonStyle.SECONDARY)
        result = await flow.prompt(prompt)

    if result.outcome is not FlowOutcome.ERROR:
        await retire_prompt(session, interaction.token, prompt)
    match result.outcome:
        case FlowOutcome.TIMEOUT:
            await notify_channel(session, interaction.channel, "Timed out waiting for entering calendar name.")
            return None
        case FlowOutcome.CANCEL:
            await reply_click(session, interaction, result, "Calendar import canceled.", ephemeral=True)
            return None
        case FlowOutcome.ERROR:
            logger.warning(f"{interaction.path}: can't ask for the calendar name: {result.error}")
            await notify_channel(session, interaction.channel, PROMPT_FAILED)
            return None

    name = clean_text(result.values.get("name", ""))
    if not name:
        await reply_click(session, interaction, result, "Calendar name cannot be empty.", ephemeral=True)
        return None
    return name, result.interaction


def import_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        url = (interaction.option("url") or "").strip()
        if not is_valid_url(url):
            raise ValidationError("Invalid URL.")
        if state.store.calendar_url_exists(url, interaction.channel):
            raise PreconditionError("Calendar already exists in the database.")
        if state.feed is None:
            raise PreconditionError("Calendar import is not available.")

        calendar_id = new_id()
        try:
            imported = await asyncio.wait_for(
                asyncio.to_thread(state.feed.fetch, url, interaction.channel, calendar_id), FETCH_TIMEOUT
            )
        except asyncio.TimeoutError:
            raise UpstreamError("Fetching and parsing the calendar took too long.") from None

        name = clean_text(interaction.option("name") or "") or imported.name
        confirming = interaction
        if not name:
            answer = await _ask_for_name(state, session, interaction)
            if answer is None:
                return
            name, confirming = answer
            await session.reply_deferred(confirming.token)

        calendar = Calendar(
            id=calendar_id,
            name=name,
            channel_id=interaction.channel,
            url=url,
            description=imported.description,
            hash=imported.hash,
        )
        events = imported.events

        def commit() -> str:
            state.store.insert_calendar(calendar, events)
            logger.info(f"Imported calendar {calendar.id} ({len(events)} events) into {interaction.channel}")
            return f"Calendar `{name}` imported with `{len(events)}` events. Its ID is `{calendar.id}`."

        await confirm_and_commit(
            state,
            session,
            confirming,
            Payload.text(f"Found `{imported.event_count}` events in `{name}`. Continue?"),
            commit,
            done="Calendar imported.",
            canceled="Calendar import canceled.",
            yes_label="Import",
        )

    return handler


def delete_handler(state):
    @deferred(ephemeral=True)
    async def handler(session, interaction: Interaction) -> None:
        calendar_id = (interaction.option("calendar-id") or "").strip()
        if not calendar_id:
            raise ValidationError("Calendar ID is empty.")
        calendar = state.store.get_calendar(calendar_id, interaction.channel)
        if calendar is None:
            raise NotFoundError(
                f"calendar {calendar_id} not in {interaction.channel}", user_message="Calendar not found."
            )

        def commit() -> str:
            removed = state.store.delete_calendar(calendar.id, interaction.channel)
            return f"Calendar [{calendar.name}]({calendar.url}) deleted with `{removed}` events."

        await confirm_and_commit(
            state,
            session,
            interaction,
            Payload.text(f"Delete calendar [{calendar.name}]({calendar.url}) and all of its events?"),
            commit,
            done="Calendar deleted.",
            canceled="Calendar deletion canceled.",
            ephemeral=True,
        )

    return handler


def calendar_command(state) -> CommandGroup:
    return CommandGroup(
        "calendar",
        "Import and remove external calendars.",
        [
            Command(
                "import",
                "Import an external calendar.",
                import_handler(state),
                (
                    Option("url", "The URL of the external calendar.", required=True),
                    Option("name", "Override the calendar name."),
                ),
            ),
            Command(
                "delete",
                "Delete an external calendar.",
                delete_handler(state),
                (Option("calendar-id", "The ID of the calendar to delete.", required=True),),
            ),
        ],
    )
