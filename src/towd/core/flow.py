"""
Flow coordinator: prompt, wait for a click or a form, report one outcome, clean up.

A Flow registers transient handlers under ids that end in its flow-id, shows a
prompt, and waits until the first of: a click, a modal submission, the
deadline. Use it as an async context manager; leaving the block removes every
transient handler the flow registered, whatever happened inside.

    async with Flow(table, responder, token) as flow:
        result = await flow.confirm(Payload.text("Is this correct?"))
    if result.outcome is FlowOutcome.CONFIRM:
        ...
"""

import asyncio
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from .errors import ProgrammerError, TowdError
from .interaction import Interaction, ReplyToken
from .messages import Button, ButtonStyle, ModalSpec, Payload
from .registry import DispatchTable, Handler, Registry
from .router import ACTION_EXPIRED

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0


class FlowOutcome(Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    SELECTION = "selection"
    SUBMITTED = "submitted"
    TIMEOUT = "timeout"
    ERROR = "error"


class FlowState(Enum):
    CREATED = "created"
    PROMPTED = "prompted"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class FlowResult:
    """How a flow ended. `interaction` is the click or submission that ended it, if any."""

    outcome: FlowOutcome
    interaction: Interaction | None = None
    index: int | None = None
    values: Mapping[str, str] = field(default_factory=dict)
    error: Exception | None = None

    @property
    def token(self) -> ReplyToken | None:
        """Fresh reply token of the ending click. None on timeout and error."""
        return self.interaction.token if self.interaction else None


def _deliver(loop: asyncio.AbstractEventLoop, outcome: asyncio.Future, result: FlowResult) -> bool:
    """
    Settle `outcome` with `result` unless something got there first.

    Returns False when the result was dropped. Delivery from another loop is
    scheduled and counts as accepted.
    """

    def settle() -> bool:
        if outcome.done():
            logger.debug(f"Dropping late {result.outcome.value} outcome")
            return False
        outcome.set_result(result)
        return True

    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        return settle()
    loop.call_soon_threadsafe(settle)
    return True


async def _answer_late(session, interaction: Interaction) -> None:
    """A click that lost the race still gets an answer so the button stops spinning."""
    try:
        await session.reply_initial(interaction.token, Payload.text(ACTION_EXPIRED), ephemeral=True)
    except TowdError as e:
        logger.debug(f"Can't answer late click {interaction.identifier!r}: {e}")


def _click_handler(loop, outcome: asyncio.Future, kind: FlowOutcome, index: int | None = None) -> Handler:
    async def on_click(session, interaction: Interaction) -> None:
        if not _deliver(loop, outcome, FlowResult(kind, interaction=interaction, index=index)):
            await _answer_late(session, interaction)

    return on_click


def _submit_handler(loop, outcome: asyncio.Future) -> Handler:
    async def on_submit(session, interaction: Interaction) -> None:
        result = FlowResult(FlowOutcome.SUBMITTED, interaction=interaction, values=dict(interaction.values))
        if not _deliver(loop, outcome, result):
            await _answer_late(session, interaction)

    return on_submit


def _open_modal_handler(modal: ModalSpec) -> Handler:
    async def on_click(session, interaction: Interaction) -> None:
        await session.open_modal(interaction.token, modal)

    return on_click


class Flow:
    """One prompt-and-await conversation owned by a single handler invocation."""

    def __init__(
        self,
        table: DispatchTable,
        responder,
        token: ReplyToken,
        *,
        flow_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.table = table
        self.responder = responder
        self.token = token
        self.flow_id = flow_id or str(uuid.uuid4())
        self.timeout = timeout
        self.state = FlowState.CREATED
        self._loop = asyncio.get_running_loop()
        self._outcome: asyncio.Future = self._loop.create_future()
        self._buttons: list[Button] = []
        self._registered: list[tuple[Registry, str]] = []

    async def __aenter__(self) -> "Flow":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    @property
    def registered_ids(self) -> list[str]:
        return [identifier for _, identifier in self._registered]

    def custom_id(self, prefix: str) -> str:
        """Identifier unique to this flow."""
        return f"{prefix}-{self.flow_id}"

    def _register(self, registry: Registry, identifier: str, handler: Handler) -> None:
        if self.state is FlowState.TERMINATED:
            raise ProgrammerError(f"flow {self.flow_id} is closed")
        registry.add(identifier, handler)
        self._registered.append((registry, identifier))

    def _add_button(self, custom_id: str, label: str, style: ButtonStyle, handler: Handler) -> Button:
        self._register(self.table.components, custom_id, handler)
        button = Button(label, custom_id, style)
        self._buttons.append(button)
        return button

    def confirm_button(self, label: str = "Yes", style: ButtonStyle = ButtonStyle.SUCCESS) -> Button:
        handler = _click_handler(self._loop, self._outcome, FlowOutcome.CONFIRM)
        return self._add_button(self.custom_id("yes"), label, style, handler)

    def cancel_button(self, label: str = "Cancel", style: ButtonStyle = ButtonStyle.SECONDARY) -> Button:
        handler = _click_handler(self._loop, self._outcome, FlowOutcome.CANCEL)
        return self._add_button(self.custom_id("cancel"), label, style, handler)

    def select_button(
        self, prefix: str, index: int, label: str, style: ButtonStyle = ButtonStyle.DANGER
    ) -> Button:
        handler = _click_handler(self._loop, self._outcome, FlowOutcome.SELECTION, index=index)
        return self._add_button(self.custom_id(f"{prefix}-{index}"), label, style, handler)

    def modal_button(
        self, prefix: str, label: str, modal: ModalSpec, style: ButtonStyle = ButtonStyle.PRIMARY
    ) -> Button:
        """A button that opens `modal`; the submission ends the flow as SUBMITTED."""
        bound = self._bind_modal(modal)
        return self._add_button(self.custom_id(prefix), label, style, _open_modal_handler(bound))

    def _bind_modal(self, modal: ModalSpec) -> ModalSpec:
        bound = modal.with_id(self.custom_id(modal.custom_id))
        self._register(self.table.modals, bound.custom_id, _submit_handler(self._loop, self._outcome))
        return bound

    def _begin(self) -> None:
        if self.state is not FlowState.CREATED:
            raise ProgrammerError(f"flow {self.flow_id} already prompted")
        self.state = FlowState.PROMPTED

    async def prompt(self, payload: Payload) -> FlowResult:
        """Show `payload` with the registered buttons and wait for the outcome."""
        self._begin()
        payload = payload.with_buttons(*self._buttons)
        try:
            if self.token.replied:
                await self.responder.edit(self.token, payload)
            else:
                await self.responder.reply_initial(self.token, payload)
        except TowdError as e:
            logger.warning(f"Flow {self.flow_id}: can't deliver prompt: {e}")
            _deliver(self._loop, self._outcome, FlowResult(FlowOutcome.ERROR, error=e))
        return await self._wait()

    async def confirm(self, payload: Payload, yes_label: str = "Yes", cancel_label: str = "Cancel") -> FlowResult:
        """Yes/Cancel prompt."""
        self.confirm_button(yes_label)
        self.cancel_button(cancel_label)
        return await self.prompt(payload)

    async def prompt_modal(self, modal: ModalSpec) -> FlowResult:
        """Open `modal` as the initial response and wait for its submission."""
        bound = self._bind_modal(modal)
        self._begin()
        try:
            await self.responder.open_modal(self.token, bound)
        except TowdError as e:
            logger.warning(f"Flow {self.flow_id}: can't open modal: {e}")
            _deliver(self._loop, self._outcome, FlowResult(FlowOutcome.ERROR, error=e))
        return await self._wait()

    async def _wait(self) -> FlowResult:
        done, _ = await asyncio.wait({self._outcome}, timeout=self.timeout)
        if not done and not self._outcome.done():
            logger.debug(f"Flow {self.flow_id} timed out after {self.timeout}s")
            self._outcome.set_result(FlowResult(FlowOutcome.TIMEOUT))
        return self._outcome.result()

    def close(self) -> None:
        """Remove every transient handler and close the outcome. Safe to call twice."""
        for registry, identifier in self._registered:
            registry.remove(identifier)
        self._registered.clear()
        if not self._outcome.done():
            self._outcome.cancel()
        self.state = FlowState.TERMINATED
