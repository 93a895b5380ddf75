"""Telegram message formatting utilities."""

import telegramify_markdown
from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from .core.messages import Embed, ModalSpec, Payload, button_rows

MESSAGE_LIMIT = 4096
CHUNK_SIZE = 4000


def embed_markdown(embed: Embed) -> str:
    lines = []
    if embed.title:
        lines.append(f"[**{embed.title}**]({embed.url})" if embed.url else f"**{embed.title}**")
    if embed.description:
        lines.append(embed.description)
    for field in embed.fields:
        lines.append(f"**{field.name}:** {field.value}")
    if embed.footer:
        lines.append(f"_{embed.footer}_")
    return "\n".join(lines)


def payload_markdown(payload: Payload) -> str:
    """Plain markdown for a payload: content first, then one block per embed."""
    blocks = [payload.content] if payload.content else []
    blocks.extend(embed_markdown(embed) for embed in payload.embeds)
    return "\n\n".join(blocks)


def to_telegram(text: str) -> str:
    """Convert markdown to Telegram MarkdownV2."""
    return telegramify_markdown.markdownify(text)


def split_message(text: str, size: int = CHUNK_SIZE) -> list[str]:
    """Chunks small enough for one Telegram message. Prefers breaking on newlines."""
    chunks = []
    while len(text) > size:
        cut = text.rfind("\n", 0, size)
        if cut <= 0:
            cut = size
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n")
    if text or not chunks:
        chunks.append(text)
    return chunks


def keyboard(payload: Payload) -> InlineKeyboardMarkup | None:
    if not payload.buttons:
        return None
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(button.label, callback_data=button.custom_id) for button in row]
            for row in button_rows(payload.buttons)
        ]
    )


def modal_prompt(modal: ModalSpec) -> str:
    """Instructions shown in place of a form."""
    if len(modal.fields) == 1:
        field = modal.fields[0]
        return f"**{modal.title}**\nReply to this message with the {field.label.lower()}."
    lines = [f"**{modal.title}**", "Reply to this message, one field per line:"]
    for field in modal.fields:
        hint = field.placeholder or ("required" if field.required else "optional")
        lines.append(f"`{field.label}: {hint}`")
    return "\n".join(lines)


def parse_modal_reply(modal: ModalSpec, text: str) -> dict[str, str]:
    """
    Read form values from a reply.

    A single-field form takes the whole text. Otherwise each `label: value`
    line sets a field (matched on label or id, case-insensitive); lines without
    a recognised label continue the previous field.
    """
    if len(modal.fields) == 1:
        return {modal.fields[0].id: text.strip()}

    keys = {}
    for field in modal.fields:
        keys[field.label.lower()] = field.id
        keys[field.id.lower()] = field.id

    values = {field.id: "" for field in modal.fields}
    current = None
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        field_id = keys.get(key.strip().lower()) if sep else None
        if field_id:
            values[field_id] = value.strip()
            current = field_id
        elif current:
            values[current] = f"{values[current]}\n{line}".strip()
        elif line.strip():
            current = modal.fields[0].id
            values[current] = line.strip()
    return values
