"""Responder and interaction mapping for the Telegram Bot API."""

import logging
import shlex
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from types import MappingProxyType

from telegram import Bot, ForceReply, Message, ReplyParameters, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

from towd.core.errors import TransportError
from towd.core.interaction import Interaction, InteractionKind, ReplyToken
from towd.core.messages import ModalSpec, Payload
from towd.metrics import TRANSPORT_CALL
from towd.telegram_format import (
    MESSAGE_LIMIT,
    keyboard,
    modal_prompt,
    parse_modal_reply,
    payload_markdown,
    split_message,
    to_telegram,
)

logger = logging.getLogger(__name__)

WORKING = "Working…"
ALERT_LIMIT = 200
MAX_PENDING_FORMS = 256


@dataclass
class TelegramRef:
    """Where an interaction came from, kept on its reply token."""

    chat_id: int
    user_id: int
    thread_id: int | None = None
    message_id: int | None = None
    query_id: str | None = None
    answered: bool = False


@dataclass
class PendingForm:
    modal: ModalSpec
    user_id: int


def channel_id(chat_id: int, thread_id: int | None = None) -> str:
    return f"{chat_id}:{thread_id}" if thread_id else str(chat_id)


def parse_channel(channel: str) -> tuple[int, int | None]:
    chat, _, thread = channel.partition(":")
    try:
        return int(chat), int(thread) if thread else None
    except ValueError:
        raise TransportError(f"Invalid channel id {channel!r}")


def split_args(text: str) -> list[str]:
    """Shell-style split so quoted values stay whole. Unbalanced quotes fall back to whitespace."""
    try:
        return shlex.split(text)
    except ValueError:
        return text.split()


def _thread(message: Message) -> int | None:
    return message.message_thread_id if message.is_topic_message else None


def _token(ref: TelegramRef) -> ReplyToken:
    return ReplyToken(uuid.uuid4().hex, ref)


def command_interaction(update: Update, guild: str | None = None) -> Interaction | None:
    """Map `/name [sub] [args]` to a command interaction."""
    message = update.effective_message
    user = update.effective_user
    if message is None or user is None or not message.text or not message.text.startswith("/"):
        return None

    head, _, rest = message.text.partition(" ")
    name = head[1:].split("@", 1)[0].lower()
    if not name:
        return None

    ref = TelegramRef(message.chat_id, user.id, _thread(message), message.message_id)
    return Interaction(
        kind=InteractionKind.COMMAND,
        identifier=name,
        invoker=str(user.id),
        invoker_name=user.full_name,
        channel=channel_id(message.chat_id, ref.thread_id),
        guild=guild,
        token=_token(ref),
        args=tuple(split_args(rest)),
    )


def component_interaction(update: Update, guild: str | None = None) -> Interaction | None:
    """Map a button press to a component interaction keyed by its callback data."""
    query = update.callback_query
    if query is None or not query.data or not isinstance(query.message, Message):
        return None

    message = query.message
    ref = TelegramRef(message.chat_id, query.from_user.id, _thread(message), message.message_id, query.id)
    return Interaction(
        kind=InteractionKind.COMPONENT,
        identifier=query.data,
        invoker=str(query.from_user.id),
        invoker_name=query.from_user.full_name,
        channel=channel_id(message.chat_id, ref.thread_id),
        guild=guild,
        token=_token(ref),
    )


def modal_interaction(update: Update, modal: ModalSpec, guild: str | None = None) -> Interaction:
    """Map a reply to a form prompt to a modal submission."""
    message = update.effective_message
    user = update.effective_user
    ref = TelegramRef(message.chat_id, user.id, _thread(message), message.message_id)
    return Interaction(
        kind=InteractionKind.MODAL,
        identifier=modal.custom_id,
        invoker=str(user.id),
        invoker_name=user.full_name,
        channel=channel_id(message.chat_id, ref.thread_id),
        guild=guild,
        token=_token(ref),
        values=MappingProxyType(parse_modal_reply(modal, message.text or "")),
    )


class TelegramResponder:
    """
    Responder over a telegram Bot.

    Ephemeral replies go to the invoker's private chat, except plain text
    answers to button presses, which become an alert on the press itself.
    Forms are emulated with a ForceReply prompt; the reply to that prompt
    is the submission.
    """

    def __init__(self, bot: Bot):
        self.bot = bot
        self._forms: OrderedDict[tuple[int, int], PendingForm] = OrderedDict()

    async def reply_initial(self, token: ReplyToken, payload: Payload, *, ephemeral: bool = False) -> None:
        ref: TelegramRef = token.ref
        async with token.lock:
            token.claim_initial()
            token.ephemeral = ephemeral
            if ephemeral and ref.query_id and payload.is_plain and len(payload.content) <= ALERT_LIMIT:
                ref.answered = True
                alert = self.bot.answer_callback_query(ref.query_id, text=payload.content, show_alert=True)
                await self._call("answer_callback_query", alert)
                return
            await self._answer_query(ref)
            message = await self._send_to_ref(ref, payload, ephemeral)
            token.message_ref = (message.chat_id, message.message_id)

    async def reply_deferred(self, token: ReplyToken, *, ephemeral: bool = False) -> None:
        ref: TelegramRef = token.ref
        async with token.lock:
            token.claim_initial()
            token.ephemeral = ephemeral
            await self._answer_query(ref)
            message = await self._send_to_ref(ref, Payload.text(WORKING), ephemeral)
            token.message_ref = (message.chat_id, message.message_id)

    async def edit(self, token: ReplyToken, payload: Payload) -> None:
        token.require_initial()
        async with token.lock:
            if token.message_ref is None:
                # Answered with an alert or a form; there is no message to amend.
                message = await self._send_to_ref(token.ref, payload, token.ephemeral)
                token.message_ref = (message.chat_id, message.message_id)
                return

            chat, message_id = token.message_ref
            text = to_telegram(payload_markdown(payload) or " ")
            chunks = split_message(text) if len(text) > MESSAGE_LIMIT else [text]
            try:
                with TRANSPORT_CALL.labels(method="edit_message_text").time():
                    await self.bot.edit_message_text(
                        chunks[0],
                        chat_id=chat,
                        message_id=message_id,
                        parse_mode=ParseMode.MARKDOWN_V2,
                        reply_markup=keyboard(payload) if len(chunks) == 1 else None,
                    )
            except BadRequest as e:
                if "not modified" not in str(e).lower():
                    raise TransportError(f"Can't edit message {message_id} in {chat}: {e}") from e
            except TelegramError as e:
                raise TransportError(f"Can't edit message {message_id} in {chat}: {e}") from e

            if len(chunks) > 1:
                logger.debug(f"Reply {message_id} in {chat} continues in {len(chunks) - 1} more message(s)")
                thread = None if token.ephemeral else token.ref.thread_id
                for i, chunk in enumerate(chunks[1:], start=2):
                    await self._call(
                        "send_message",
                        self.bot.send_message(
                            chat,
                            chunk,
                            parse_mode=ParseMode.MARKDOWN_V2,
                            message_thread_id=thread,
                            reply_markup=keyboard(payload) if i == len(chunks) else None,
                        )
                    )

    async def open_modal(self, token: ReplyToken, modal: ModalSpec) -> None:
        ref: TelegramRef = token.ref
        async with token.lock:
            token.claim_initial()
            await self._answer_query(ref)
            placeholder = modal.fields[0].placeholder if len(modal.fields) == 1 else ""
            message = await self._call(
                "send_message",
                self.bot.send_message(
                    ref.chat_id,
                    to_telegram(modal_prompt(modal)),
                    parse_mode=ParseMode.MARKDOWN_V2,
                    message_thread_id=ref.thread_id,
                    reply_markup=ForceReply(selective=True, input_field_placeholder=placeholder[:64] or None),
                    reply_parameters=self._reply_to(ref),
                )
            )
        self._remember_form(message.chat_id, message.message_id, PendingForm(modal, ref.user_id))

    async def send_channel(self, channel: str, payload: Payload) -> None:
        chat, thread = parse_channel(channel)
        await self._send(chat, payload, thread_id=thread)

    def take_form(self, message: Message) -> ModalSpec | None:
        """The form a message answers, if it is the awaited reply to one of our prompts."""
        prompt = message.reply_to_message
        if prompt is None or message.from_user is None:
            return None
        key = (prompt.chat_id, prompt.message_id)
        pending = self._forms.get(key)
        if pending is None or pending.user_id != message.from_user.id:
            return None
        del self._forms[key]
        return pending.modal

    def _remember_form(self, chat: int, message_id: int, pending: PendingForm) -> None:
        self._forms[(chat, message_id)] = pending
        while len(self._forms) > MAX_PENDING_FORMS:
            self._forms.popitem(last=False)

    async def _answer_query(self, ref: TelegramRef) -> None:
        if ref.query_id and not ref.answered:
            ref.answered = True
            await self._call("answer_callback_query", self.bot.answer_callback_query(ref.query_id))

    @staticmethod
    def _reply_to(ref: TelegramRef) -> ReplyParameters | None:
        if ref.message_id is None or ref.query_id:
            return None
        return ReplyParameters(message_id=ref.message_id, allow_sending_without_reply=True)

    async def _send_to_ref(self, ref: TelegramRef, payload: Payload, ephemeral: bool) -> Message:
        if ephemeral:
            return await self._send(ref.user_id, payload)
        return await self._send(ref.chat_id, payload, thread_id=ref.thread_id, reply_to=self._reply_to(ref))

    async def _send(
        self,
        chat: int,
        payload: Payload,
        *,
        thread_id: int | None = None,
        reply_to: ReplyParameters | None = None,
    ) -> Message:
        """Send a payload, split across messages if needed. Buttons go on the last one."""
        chunks = split_message(to_telegram(payload_markdown(payload) or " "))
        message = None
        for i, chunk in enumerate(chunks):
            last = i == len(chunks) - 1
            message = await self._call(
                "send_message",
                self.bot.send_message(
                    chat,
                    chunk,
                    parse_mode=ParseMode.MARKDOWN_V2,
                    message_thread_id=thread_id,
                    reply_markup=keyboard(payload) if last else None,
                    reply_parameters=reply_to if i == 0 else None,
                )
            )
        return message

    @staticmethod
    async def _call(method: str, request):
        try:
            with TRANSPORT_CALL.labels(method=method).time():
                return await request
        except TelegramError as e:
            raise TransportError(f"Telegram request failed: {e}") from e
