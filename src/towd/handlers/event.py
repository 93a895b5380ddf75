"""Event commands: create, create-manual, delete, list, modify."""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from towd.core.calendar import (
    Event,
    apply_changes,
    clean_text,
    default_end,
    diff_fields,
    event_embed,
    new_id,
    split_attendees,
    truncate_whole_day,
    validate_event,
)
from towd.core.commands import Command, CommandGroup, Option, OptionType
from towd.core.dates import describe_range, parse_when, start_of_day
from towd.core.errors import NotFoundError, PreconditionError, ValidationError
from towd.core.flow import FlowOutcome
from towd.core.interaction import Interaction
from towd.core.messages import ModalField, ModalSpec, Payload

from .common import PROMPT_FAILED, confirm_and_commit, deferred, notify_channel

logger = logging.getLogger(__name__)

MAX_LISTED = 10

EVENT_FIELDS = (
    Option("title", "Title of the event."),
    Option("start", "Start date, e.g. `2025-01-10 10:00` or `tomorrow 9am`."),
    Option("description", "Describe the event."),
    Option("end", "End date. Defaults to one hour after the start."),
    Option("whole-day", "Whether the event lasts the whole day.", OptionType.BOOLEAN),
    Option("location", "Where the event takes place."),
    Option("url", "A link for the event."),
    Option("invitees", "Comma separated list of attendees."),
)

EVENT_FORM = ModalSpec(
    custom_id="event-form",
    title="New event",
    fields=(
        ModalField("title", "Title", placeholder="Team sync"),
        ModalField("start", "Start", placeholder="2025-01-10 10:00"),
        ModalField("end", "End", required=False, placeholder="2025-01-10 11:00"),
        ModalField("description", "Description", required=False),
        ModalField("location", "Location", required=False),
    ),
)


def _parse_date(raw: str, name: str, now: datetime) -> datetime:
    try:
        return parse_when(raw, now)
    except ValueError as e:
        raise ValidationError(f"Can't parse {name} date: {e}") from None


def event_changes(options: Mapping[str, Any], now: datetime) -> dict[str, Any]:
    """Event fields named by `options`. Absent options are left out."""
    changes: dict[str, Any] = {}
    for option, attr in (("title", "summary"), ("description", "description"), ("location", "location")):
        if options.get(option) is not None:
            changes[attr] = clean_text(options[option])
    if options.get("url") is not None:
        changes["url"] = options["url"].strip()
    if options.get("start"):
        changes["start"] = _parse_date(options["start"], "start", now)
    if options.get("end"):
        changes["end"] = _parse_date(options["end"], "end", now)
    if options.get("whole-day") is not None:
        changes["whole_day"] = options["whole-day"]
    if options.get("invitees") is not None:
        changes["attendees"] = split_attendees(options["invitees"])
    return changes


def build_event(state, interaction: Interaction, options: Mapping[str, Any]) -> Event:
    """New channel event from command options or form values."""
    now = state.now()
    changes = event_changes(options, now)
    if "start" not in changes:
        raise ValidationError("Can't create event, start date is empty.")
    start = changes.pop("start")
    event = Event(
        id=new_id(),
        summary=changes.pop("summary", ""),
        start=start,
        end=default_end(start, changes.pop("end", None)),
        channel_id=interaction.channel,
        calendar_id=interaction.channel,
        organizer=interaction.invoker_name,
        created_at=now,
    )
    event = truncate_whole_day(apply_changes(event, changes), state.tz)
    validate_event(event, "create")
    return event


def insert_event(state, event: Event) -> None:
    """Commit step for a new event. Call inside a transaction."""
    state.store.ensure_channel_calendar(event.channel_id, f"#{event.channel_id}")
    state.store.insert_event(event)


def lookup_event(state, interaction: Interaction, event_id: str | None) -> Event:
    event_id = (event_id or "").strip()
    if not event_id:
        raise ValidationError("Event ID is empty.")
    event = state.store.get_event(event_id, interaction.channel)
    if event is None:
        raise NotFoundError(f"event {event_id} not in channel {interaction.channel}", user_message="Event not found.")
    return event


async def confirm_create(state, session, interaction: Interaction, event: Event, question: str = "Is this correct?"):
    prompt = Payload(content=question, embeds=(event_embed(event, state.tz),))
    return await confirm_and_commit(
        state,
        session,
        interaction,
        prompt,
        lambda: insert_event(state, event),
        done="Event created.",
        canceled="Event creation canceled.",
    )


def create_handler(state):
    """`/event create` - fill a form, then confirm."""

    async def handler(session, interaction: Interaction) -> None:
        async with state.flow(session, interaction.token) as form:
            result = await form.prompt_modal(EVENT_FORM)

        match result.outcome:
            case FlowOutcome.TIMEOUT:
                await notify_channel(session, interaction.channel, "Timed out waiting for the event form.")
                return
            case FlowOutcome.ERROR:
                logger.warning(f"{interaction.path}: can't open the event form: {result.error}")
                await notify_channel(session, interaction.channel, PROMPT_FAILED)
                return

        submission = result.interaction
        await _create_from_form(session, submission)

    @deferred()
    async def _create_from_form(session, submission: Interaction) -> None:
        event = build_event(state, submission, submission.values)
        await confirm_create(state, session, submission, event)

    return handler


def create_manual_handler(state):
    """`/event create-manual` - all fields as options."""

    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        event = build_event(state, interaction, interaction.options)
        await confirm_create(state, session, interaction, event)

    return handler


def delete_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        event = lookup_event(state, interaction, interaction.option("event-id"))
        if event.is_external:
            raise PreconditionError("You cannot delete events in external calendars.")

        prompt = Payload(content="Is this the event you want to delete?", embeds=(event_embed(event, state.tz),))
        await confirm_and_commit(
            state,
            session,
            interaction,
            prompt,
            lambda: state.store.delete_event(event.id, event.channel_id),
            done="Event deleted.",
            canceled="Event deletion canceled.",
        )

    return handler


def list_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        now = state.now()
        start = start_of_day(now)
        if interaction.option("start"):
            start = _parse_date(interaction.option("start"), "start", now)
        end = start + timedelta(days=1)
        if interaction.option("end"):
            end = _parse_date(interaction.option("end"), "end", now)
        if end < start:
            raise ValidationError("Can't list events, start date must be before end date.")

        events = state.store.list_events(interaction.channel, start, end)
        label = describe_range(start, end, now)
        if not events:
            await session.edit(interaction.token, Payload.text(f"No event for {label}"))
            return

        content = f"There are {len(events)} event(s) for {label}"
        if len(events) > MAX_LISTED:
            content += f"\nShowing the first {MAX_LISTED}."
        embeds = tuple(event_embed(event, state.tz) for event in events[:MAX_LISTED])
        await session.edit(interaction.token, Payload(content=content, embeds=embeds))

    return handler


def modify_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        old = lookup_event(state, interaction, interaction.option("event-id"))
        if old.is_external:
            raise PreconditionError("You cannot update events in external calendars.")

        changes = event_changes(interaction.options, state.now())
        if "start" in changes and "end" not in changes:
            changes["end"] = changes["start"] + (old.end - old.start)
        new = truncate_whole_day(apply_changes(old, changes), state.tz)
        validate_event(new, "update")
        if not diff_fields(old, new):
            await session.edit(interaction.token, Payload.text("Event not modified."))
            return

        prompt = Payload(content="Is this correct?", embeds=(event_embed(new, state.tz),))
        await confirm_and_commit(
            state,
            session,
            interaction,
            prompt,
            lambda: state.store.update_event(new),
            done="Event updated.",
            canceled="Event update canceled.",
        )

    return handler


def event_command(state) -> CommandGroup:
    from .natural import natural_handler

    required_title = (Option("title", "Title of the event.", required=True),)
    required_start = (Option("start", EVENT_FIELDS[1].description, required=True),)
    event_id = (Option("event-id", "ID of the event.", required=True),)
    return CommandGroup(
        "event",
        "Manage channel events.",
        [
            Command("create", "Create an event with a form.", create_handler(state)),
            Command(
                "create-manual",
                "Create an event from options.",
                create_manual_handler(state),
                required_title + required_start + EVENT_FIELDS[2:],
            ),
            Command("delete", "Delete an event.", delete_handler(state), event_id),
            Command(
                "list",
                "List events. Defaults to today.",
                list_handler(state),
                (Option("start", "Start of the range."), Option("end", "End of the range.")),
            ),
            Command("modify", "Modify an event.", modify_handler(state), event_id + EVENT_FIELDS),
            Command(
                "natural",
                "Create, find, update or delete events in plain words.",
                natural_handler(state),
                (
                    Option("content", "What you want to do.", required=True),
                    Option("event-context-id", "ID of the event to update or delete."),
                ),
            ),
        ],
    )
