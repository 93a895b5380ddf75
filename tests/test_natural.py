"""Tests for natural-language event requests."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from towd.adapters.groq_natural import GROQ_API, GroqNaturalService
from towd.core.calendar import Event
from towd.core.errors import UpstreamError
from towd.core.natural import NaturalEventBody, NaturalOutput, build_natural_input, parse_natural_output

from conftest import CHANNEL, button, click, command

NOW = datetime(2025, 1, 8, 15, 30, tzinfo=timezone.utc)


def seed(store, event_id="ev-1", calendar=None):
    start = datetime(2025, 1, 10, 10, 0, tzinfo=timezone.utc)
    event = Event(
        id=event_id,
        summary="Dentist",
        start=start,
        end=start + timedelta(hours=1),
        channel_id=CHANNEL,
        calendar_id=calendar or CHANNEL,
    )
    store.insert_event(event)
    return event


@pytest.fixture
def natural(state):
    state.natural = MagicMock()
    return state.natural


def answer(action, success=True, description="", **body):
    return NaturalOutput(action=action, success=success, description=description, body=NaturalEventBody(**body))


class TestNaturalHandler:
    @pytest.mark.asyncio
    async def test_create(self, store, natural, responder, route):
        natural.request.return_value = answer("create", description="Booked it.", title="Dentist", start="10/01/2025 10:00")
        task = asyncio.create_task(route(command("event", "natural", content="dentist friday at 10")))
        buttons = await responder.wait_for_buttons()
        await route(click(button(buttons, "yes").custom_id))
        await task

        text, _, context = natural.request.call_args.args
        assert text == "dentist friday at 10"
        assert context is None
        prompt = next(c for c in responder.calls if c.payload is not None and c.payload.buttons)
        assert prompt.text == "Booked it.\n\nYou're creating a new event. Is this correct?"

        event = store.list_events(CHANNEL, datetime(2025, 1, 10, tzinfo=timezone.utc), datetime(2025, 1, 11, tzinfo=timezone.utc))[0]
        assert event.summary == "Dentist"
        assert event.end - event.start == timedelta(hours=1)
        assert responder.last.text == "Event created."

    @pytest.mark.asyncio
    async def test_create_with_bad_date(self, natural, responder, route):
        natural.request.return_value = answer("create", title="Dentist", start="next friday")
        await route(command("event", "natural", content="dentist"))
        assert responder.last.text.startswith("Can't create event, invalid start date:")

    @pytest.mark.asyncio
    async def test_read(self, store, natural, responder, route):
        seed(store)
        natural.request.return_value = answer(
            "read", description="Here you go.", start_date_to_query="10/01/2025 00:00", end_date_to_query="11/01/2025 00:00"
        )
        await route(command("event", "natural", content="what's on friday?"))

        assert responder.last.text == "Here you go."
        assert [e.title for e in responder.last.payload.embeds] == ["Dentist"]

    @pytest.mark.asyncio
    async def test_read_nothing(self, natural, responder, route):
        natural.request.return_value = answer(
            "read", description="Friday looks free.", start_date_to_query="10/01/2025 00:00", end_date_to_query="11/01/2025 00:00"
        )
        await route(command("event", "natural", content="what's on friday?"))
        assert responder.last.text == "Friday looks free.\n\nNo events found."

    @pytest.mark.asyncio
    async def test_update_needs_context(self, natural, responder, route):
        natural.request.return_value = answer("update", title="Dentist", start="10/01/2025 11:00")
        await route(command("event", "natural", content="move it to 11"))
        assert responder.last.text == "You must provide event context ID to update an event."

    @pytest.mark.asyncio
    async def test_update_with_context(self, store, natural, responder, route):
        seed(store)
        natural.request.return_value = answer("update", title="Dentist", start="10/01/2025 11:00", end="10/01/2025 12:00")
        task = asyncio.create_task(route(command("event", "natural", content="move it to 11", event_context_id="ev-1")))
        buttons = await responder.wait_for_buttons()
        await route(click(button(buttons, "yes").custom_id))
        await task

        assert natural.request.call_args.args[2].id == "ev-1"
        assert store.get_event("ev-1", CHANNEL).start == datetime(2025, 1, 10, 11, 0, tzinfo=timezone.utc)
        assert responder.last.text == "Event updated."

    @pytest.mark.asyncio
    async def test_delete_with_context(self, store, natural, responder, route):
        seed(store)
        natural.request.return_value = answer("delete")
        task = asyncio.create_task(route(command("event", "natural", content="drop it", event_context_id="ev-1")))
        buttons = await responder.wait_for_buttons()
        await route(click(button(buttons, "yes").custom_id))
        await task

        assert store.get_event("ev-1", CHANNEL) is None
        assert responder.last.text == "Event deleted."

    @pytest.mark.asyncio
    async def test_delete_external(self, store, natural, responder, route):
        seed(store, calendar="imported")
        natural.request.return_value = answer("delete")
        await route(command("event", "natural", content="drop it", event_context_id="ev-1"))
        assert responder.last.text == "You cannot delete events in external calendars."

    @pytest.mark.asyncio
    async def test_unknown_context(self, natural, responder, route):
        await route(command("event", "natural", content="drop it", event_context_id="nope"))
        assert responder.last.text == "Event not found."
        natural.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_declined(self, natural, responder, route):
        natural.request.return_value = answer("delete", success=False, description="I need to know which event.")
        await route(command("event", "natural", content="delete something"))
        assert responder.last.text == "I need to know which event."

    @pytest.mark.asyncio
    async def test_unknown_action(self, natural, responder, route):
        natural.request.return_value = answer("dance")
        await route(command("event", "natural", content="dance"))
        assert responder.last.text == "Can't handle action `dance` from the natural-language service."

    @pytest.mark.asyncio
    async def test_not_configured(self, responder, route):
        await route(command("event", "natural", content="dentist friday"))
        assert responder.last.text == "Natural-language requests are not configured."


def groq_response(content, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.text = "server says no"
    resp.json.return_value = {"choices": [{"message": {"content": content}}]}
    return resp


class TestGroqNaturalService:
    def test_request(self):
        session = MagicMock()
        session.post.return_value = groq_response(json.dumps({"success": True, "action": "Create", "body": {"title": "Gym"}}))
        service = GroqNaturalService("gsk_test", model="test-model", session=session)

        output = service.request("gym tomorrow", NOW)

        assert output.action == "create"
        assert output.body.title == "Gym"
        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == GROQ_API
        assert kwargs["headers"] == {"Authorization": "Bearer gsk_test"}
        assert kwargs["json"]["model"] == "test-model"
        assert kwargs["json"]["response_format"] == {"type": "json_object"}
        user = json.loads(kwargs["json"]["messages"][1]["content"])
        assert user == {"currentTime": "08/01/2025 00:00", "userRequest": "gym tomorrow"}

    def test_http_error(self):
        session = MagicMock()
        session.post.return_value = groq_response("", status=500)
        with pytest.raises(UpstreamError) as excinfo:
            GroqNaturalService("gsk_test", session=session).request("gym", NOW)
        assert "[500]" in excinfo.value.user_message

    def test_connection_error(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("no route")
        with pytest.raises(UpstreamError, match="no route"):
            GroqNaturalService("gsk_test", session=session).request("gym", NOW)

    def test_no_choices(self):
        session = MagicMock()
        resp = groq_response("")
        resp.json.return_value = {"choices": []}
        session.post.return_value = resp
        with pytest.raises(UpstreamError, match="no choices"):
            GroqNaturalService("gsk_test", session=session).request("gym", NOW)

    def test_blank_key(self):
        with pytest.raises(ValueError):
            GroqNaturalService("")


class TestNaturalRecord:
    def test_input_with_context(self):
        event = Event(
            id="e", summary="Dentist", start=datetime(2025, 1, 10, 10, 0), end=datetime(2025, 1, 10, 11, 0),
            channel_id="c", calendar_id="c", attendees=["ada"],
        )
        data = json.loads(build_natural_input("move it", NOW, event))
        assert data["eventContext"]["start"] == "10/01/2025 10:00"
        assert data["eventContext"]["attendees"] == ["ada"]

    def test_parse_output(self):
        output = parse_natural_output(
            json.dumps(
                {
                    "success": True,
                    "action": "READ",
                    "description": " Here. ",
                    "body": {"startDateToQuery": "10/01/2025 00:00", "endDateToQuery": "11/01/2025 00:00",
                             "attendees": ["ada", " ", 3]},
                }
            )
        )
        assert output.action == "read"
        assert output.description == "Here."
        assert output.body.start_date_to_query == "10/01/2025 00:00"
        assert output.body.attendees == ["ada", "3"]

    def test_missing_body(self):
        output = parse_natural_output('{"success": false, "action": "delete"}')
        assert output.success is False
        assert output.body == NaturalEventBody()

    @pytest.mark.parametrize("content", ["not json", "[1, 2]"])
    def test_unreadable(self, content):
        with pytest.raises(UpstreamError):
            parse_natural_output(content)
