"""Shared fixtures: a recording responder, an in-file store and interaction builders."""

import asyncio
from dataclasses import dataclass
from types import MappingProxyType

import pytest

from towd.adapters.sqlite_store import SQLiteStore
from towd.app_state import AppState
from towd.config import Config
from towd.core.errors import TransportError
from towd.core.interaction import Interaction, InteractionKind, ReplyToken
from towd.core.messages import Button, Payload
from towd.handlers import register_handlers

CHANNEL = "100"
USER = "42"


@dataclass
class Call:
    method: str
    token: ReplyToken | None = None
    payload: Payload | None = None
    ephemeral: bool = False
    modal: object = None
    channel: str | None = None

    @property
    def text(self) -> str:
        return self.payload.content if self.payload else ""


class FakeResponder:
    """Records every call. Token discipline is enforced by ReplyToken itself."""

    def __init__(self):
        self.calls: list[Call] = []
        self.failing: set[str] = set()

    def _check(self, method: str) -> None:
        if method in self.failing:
            raise TransportError(f"{method} refused")

    async def reply_initial(self, token, payload, *, ephemeral=False):
        self._check("reply_initial")
        token.claim_initial()
        token.ephemeral = ephemeral
        self.calls.append(Call("reply_initial", token, payload, ephemeral))

    async def reply_deferred(self, token, *, ephemeral=False):
        self._check("reply_deferred")
        token.claim_initial()
        token.ephemeral = ephemeral
        self.calls.append(Call("reply_deferred", token, ephemeral=ephemeral))

    async def edit(self, token, payload):
        self._check("edit")
        token.require_initial()
        self.calls.append(Call("edit", token, payload))

    async def open_modal(self, token, modal):
        self._check("open_modal")
        token.claim_initial()
        self.calls.append(Call("open_modal", token, modal=modal))

    async def send_channel(self, channel, payload):
        self._check("send_channel")
        self.calls.append(Call("send_channel", payload=payload, channel=channel))

    def of(self, method: str) -> list[Call]:
        return [c for c in self.calls if c.method == method]

    @property
    def texts(self) -> list[str]:
        return [c.text for c in self.calls if c.payload is not None]

    @property
    def last(self) -> Call:
        return self.calls[-1]

    def buttons(self) -> list[Button]:
        """Buttons of the latest message that had any."""
        for call in reversed(self.calls):
            if call.payload is not None and call.payload.buttons:
                return list(call.payload.buttons)
        return []

    async def wait_for(self, predicate, timeout: float = 2.0):
        """Let other tasks run until `predicate()` is truthy."""
        async def poll():
            while not (value := predicate()):
                await asyncio.sleep(0.001)
            return value

        return await asyncio.wait_for(poll(), timeout)

    async def wait_for_buttons(self, seen: int = 0, timeout: float = 2.0) -> list[Button]:
        """Wait for a message with buttons among calls made after the first `seen`."""

        def fresh():
            for call in reversed(self.calls[seen:]):
                if call.payload is not None and call.payload.buttons:
                    return list(call.payload.buttons)
            return None

        return await self.wait_for(fresh, timeout)


def command(command_name: str, /, *args: str, channel: str = CHANNEL, invoker: str = USER, **options) -> Interaction:
    """`/name args...`. Keyword options are passed as already-parsed values (dashes as underscores)."""
    return Interaction(
        kind=InteractionKind.COMMAND,
        identifier=command_name,
        invoker=invoker,
        invoker_name="Ada",
        channel=channel,
        guild="guild",
        token=ReplyToken(f"cmd-{command_name}"),
        args=tuple(args),
        options=MappingProxyType({k.replace("_", "-"): v for k, v in options.items()}),
    )


def click(custom_id: str, channel: str = CHANNEL, invoker: str = USER) -> Interaction:
    return Interaction(
        kind=InteractionKind.COMPONENT,
        identifier=custom_id,
        invoker=invoker,
        channel=channel,
        guild="guild",
        token=ReplyToken(f"click-{custom_id}"),
    )


def submit(custom_id: str, values: dict, channel: str = CHANNEL, invoker: str = USER) -> Interaction:
    return Interaction(
        kind=InteractionKind.MODAL,
        identifier=custom_id,
        invoker=invoker,
        invoker_name="Ada",
        channel=channel,
        guild="guild",
        token=ReplyToken(f"modal-{custom_id}"),
        values=MappingProxyType(values),
    )


def button(buttons: list[Button], prefix: str) -> Button:
    """The button whose id starts with `prefix`."""
    return next(b for b in buttons if b.custom_id.startswith(f"{prefix}-"))


@pytest.fixture
def responder():
    return FakeResponder()


@pytest.fixture
def config(tmp_path):
    return Config(
        bot_token="123:abc",
        guild_id="-1001",
        data_dir=str(tmp_path),
        timezone="UTC",
        flow_timeout=0.5,
        hostname="https://towd.example.com",
        jwt_secret="s3cret",
    )


@pytest.fixture
def store(config):
    store = SQLiteStore(config.database_path)
    store.init_schema()
    yield store
    store.close()


@pytest.fixture
def state(config, store):
    state = AppState(config=config, store=store)
    register_handlers(state)
    return state


@pytest.fixture
def route(state, responder):
    """Route an interaction through the application's router."""

    async def go(interaction: Interaction) -> None:
        await state.router.route(responder, interaction)

    return go

