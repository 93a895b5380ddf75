"""`/event natural` - let the language model decide what to do with an event."""

import asyncio
import logging
from datetime import datetime

from towd.core.calendar import Event, apply_changes, default_end, diff_fields, event_embed, new_id, validate_event
from towd.core.dates import parse_natural
from towd.core.errors import PreconditionError, UpstreamError, ValidationError
from towd.core.interaction import Interaction
from towd.core.messages import Payload
from towd.core.natural import NaturalAction, NaturalOutput

from .common import confirm_and_commit, deferred
from .event import confirm_create, lookup_event

logger = logging.getLogger(__name__)


def _with_description(output: NaturalOutput, text: str) -> str:
    if output.description:
        return f"{output.description}\n\n{text}"
    return text


def _natural_date(raw: str, name: str, action: str, tz) -> datetime:
    try:
        return parse_natural(raw, tz)
    except ValueError as e:
        raise ValidationError(f"Can't {action} event, invalid {name} date: {e}") from None


def _body_fields(output: NaturalOutput, action: str, tz) -> dict:
    body = output.body
    fields = {
        "summary": body.title,
        "description": body.description,
        "location": body.location,
        "url": body.url,
        "attendees": body.attendees,
    }
    if body.start:
        fields["start"] = _natural_date(body.start, "start", action, tz)
    if body.end:
        fields["end"] = _natural_date(body.end, "end", action, tz)
    return fields


async def _create(state, session, interaction: Interaction, output: NaturalOutput) -> None:
    fields = _body_fields(output, "create", state.tz)
    if "start" not in fields:
        raise ValidationError("Can't create event, invalid start date: start date is empty")
    start = fields.pop("start")
    event = Event(
        id=new_id(),
        summary="",
        start=start,
        end=default_end(start, fields.pop("end", None)),
        channel_id=interaction.channel,
        calendar_id=interaction.channel,
        organizer=interaction.invoker_name,
        created_at=state.now(),
    )
    event = apply_changes(event, fields)
    validate_event(event, "create")
    await confirm_create(
        state, session, interaction, event, _with_description(output, "You're creating a new event. Is this correct?")
    )


async def _read(state, session, interaction: Interaction, output: NaturalOutput) -> None:
    start = _natural_date(output.body.start_date_to_query, "start", "read", state.tz)
    end = _natural_date(output.body.end_date_to_query, "end", "read", state.tz)
    events = state.store.list_events(interaction.channel, start, end)
    if not events:
        await session.edit(interaction.token, Payload.text(_with_description(output, "No events found.")))
        return
    embeds = tuple(event_embed(event, state.tz) for event in events[:10])
    await session.edit(interaction.token, Payload(content=output.description, embeds=embeds))


async def _update(state, session, interaction: Interaction, output: NaturalOutput, old: Event | None) -> None:
    if old is None:
        raise PreconditionError("You must provide event context ID to update an event.")
    if old.is_external:
        raise PreconditionError("You cannot update events in external calendars.")

    fields = {k: v for k, v in _body_fields(output, "update", state.tz).items() if v}
    new = apply_changes(old, fields)
    validate_event(new, "update")
    if not diff_fields(old, new):
        await session.edit(interaction.token, Payload.text("Event not modified."))
        return

    prompt = Payload(
        content=_with_description(output, "You're updating this event. Is this correct?"),
        embeds=(event_embed(new, state.tz),),
    )
    await confirm_and_commit(
        state,
        session,
        interaction,
        prompt,
        lambda: state.store.update_event(new),
        done="Event updated.",
        canceled="Event update canceled.",
    )


async def _delete(state, session, interaction: Interaction, output: NaturalOutput, old: Event | None) -> None:
    if old is None:
        raise PreconditionError("You must provide event context ID to delete an event.")
    if old.is_external:
        raise PreconditionError("You cannot delete events in external calendars.")

    prompt = Payload(
        content=_with_description(output, "Is this the event you want to delete?"),
        embeds=(event_embed(old, state.tz),),
    )
    await confirm_and_commit(
        state,
        session,
        interaction,
        prompt,
        lambda: state.store.delete_event(old.id, old.channel_id),
        done="Event deleted.",
        canceled="Event deletion canceled.",
    )


def natural_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        content = (interaction.option("content") or "").strip()
        if not content:
            raise ValidationError("Event content is empty.")
        if state.natural is None:
            raise PreconditionError("Natural-language requests are not configured.")

        context = None
        if (interaction.option("event-context-id") or "").strip():
            context = lookup_event(state, interaction, interaction.option("event-context-id"))

        output = await asyncio.to_thread(state.natural.request, content, state.now(), context)
        logger.info(f"Natural request from {interaction.invoker}: action={output.action} success={output.success}")
        if not output.success:
            raise UpstreamError(
                f"natural-language service declined: {output.description}",
                user_message=output.description or "Sorry, I couldn't handle that request.",
            )

        match output.action:
            case NaturalAction.CREATE:
                await _create(state, session, interaction, output)
            case NaturalAction.READ:
                await _read(state, session, interaction, output)
            case NaturalAction.UPDATE:
                await _update(state, session, interaction, output, context)
            case NaturalAction.DELETE:
                await _delete(state, session, interaction, output, context)
            case _:
                raise UpstreamError(f"Can't handle action `{output.action}` from the natural-language service.")

    return handler
