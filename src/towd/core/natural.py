"""Natural-language event requests: the record exchanged with the language model."""

import json
from dataclasses import dataclass, field
from datetime import datetime

from .calendar import Event
from .dates import format_natural, start_of_day
from .errors import UpstreamError

SYSTEM_PROMPT = """You manage calendar events. Input and output are JSON.
```input
{"currentTime":string,"userRequest":string,"eventContext":{"title":string,"description":string,"start":string,"end":string,"location":string,"url":string,"attendees":list of strings}}
```
```output
{"success":bool,"action":"create" | "read" | "delete" | "update","description":string,"body":object}
```
```body
action == "create" or "update": {"title":string,"description":string,"start":string,"end":string,"location":string,"url":string,"attendees":list of strings}
action == "read": {"startDateToQuery":string,"endDateToQuery":string}
action == "delete": {}
```
```rules
- Datetime fields must be in DD/MM/YYYY HH:MM format.
- Create: must include title and start date. If no end date, assume 1 hour duration.
- Read: require both startDateToQuery and endDateToQuery. For questions like "Do I have a math exam tomorrow?", answer with the events for that day and success: true.
- Update: require eventContext. If empty, set success to false with the reason. Copy unchanged fields from the old event instead of leaving them blank.
- Delete: only the event in eventContext may be deleted. Otherwise set success to false.
- Use natural, conversational language for errors.
- Do not include questions or success messages in descriptions.
```"""


class NaturalAction:
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class NaturalEventBody:
    title: str = ""
    description: str = ""
    start: str = ""
    end: str = ""
    location: str = ""
    url: str = ""
    attendees: list[str] = field(default_factory=list)
    start_date_to_query: str = ""
    end_date_to_query: str = ""


@dataclass
class NaturalOutput:
    """Tagged record returned by the model. `action` is not checked here."""

    action: str
    success: bool
    description: str = ""
    body: NaturalEventBody = field(default_factory=NaturalEventBody)


def event_context(event: Event) -> dict:
    return {
        "title": event.summary,
        "description": event.description,
        "start": format_natural(event.start),
        "end": format_natural(event.end),
        "location": event.location,
        "url": event.url,
        "attendees": list(event.attendees),
    }


def build_natural_input(text: str, now: datetime, context: Event | None = None) -> str:
    """JSON user message for the model."""
    payload = {
        "currentTime": format_natural(start_of_day(now)),
        "userRequest": text,
    }
    if context is not None:
        payload["eventContext"] = event_context(context)
    return json.dumps(payload)


def _text(data: dict, key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def parse_natural_output(content: str) -> NaturalOutput:
    """
    Decode the model's JSON answer.

    Raises:
        UpstreamError: if the content is not a JSON object.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise UpstreamError(
            f"natural-language output is not JSON: {e}",
            user_message="The natural-language service returned an unreadable answer.",
        ) from e
    if not isinstance(data, dict):
        raise UpstreamError(
            "natural-language output is not an object",
            user_message="The natural-language service returned an unreadable answer.",
        )

    body = data.get("body") if isinstance(data.get("body"), dict) else {}
    attendees = body.get("attendees") or []
    return NaturalOutput(
        action=_text(data, "action").lower(),
        success=bool(data.get("success")),
        description=_text(data, "description"),
        body=NaturalEventBody(
            title=_text(body, "title"),
            description=_text(body, "description"),
            start=_text(body, "start"),
            end=_text(body, "end"),
            location=_text(body, "location"),
            url=_text(body, "url"),
            attendees=[str(a).strip() for a in attendees if str(a).strip()] if isinstance(attendees, list) else [],
            start_date_to_query=_text(body, "startDateToQuery"),
            end_date_to_query=_text(body, "endDateToQuery"),
        ),
    )
