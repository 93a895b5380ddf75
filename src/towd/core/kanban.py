"""Kanban board domain logic."""

from dataclasses import dataclass

from .errors import ValidationError
from .messages import Embed


@dataclass
class KanbanGroup:
    name: str
    channel_id: str


@dataclass
class KanbanItem:
    id: int
    content: str
    group_name: str
    channel_id: str


def parse_item_id(raw: str | int) -> int:
    """Item ids are positive integers."""
    try:
        item_id = int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"Can't parse item ID `{raw}`.") from None
    if item_id <= 0:
        raise ValidationError(f"Can't parse item ID `{raw}`.")
    return item_id


def board_embeds(groups: list[KanbanGroup], items: list[KanbanItem]) -> list[Embed]:
    """One card per group listing its items as `#id content`."""
    by_group: dict[str, list[KanbanItem]] = {g.name: [] for g in groups}
    for item in items:
        by_group.setdefault(item.group_name, []).append(item)

    embeds = []
    for name, group_items in by_group.items():
        lines = [f"`#{item.id}` {item.content}" for item in sorted(group_items, key=lambda i: i.id)]
        embeds.append(Embed(title=name, description="\n".join(lines) or "_empty_"))
    return embeds
