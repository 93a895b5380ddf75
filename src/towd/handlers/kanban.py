"""Kanban commands. Each one commits directly; none needs a confirmation."""

import logging

from towd.core.calendar import clean_text
from towd.core.commands import Command, CommandGroup, Option
from towd.core.errors import NotFoundError, PreconditionError, ValidationError
from towd.core.interaction import Interaction
from towd.core.kanban import KanbanGroup, board_embeds, parse_item_id
from towd.core.messages import Payload

from .common import deferred

logger = logging.getLogger(__name__)


def _group(state, interaction: Interaction, name: str) -> KanbanGroup:
    group = state.store.get_group(name, interaction.channel)
    if group is None:
        raise NotFoundError(f"Group `{name}` not found.")
    return group


def _item(state, interaction: Interaction, raw_id):
    item_id = parse_item_id(raw_id)
    item = state.store.get_item(item_id, interaction.channel)
    if item is None:
        raise NotFoundError(f"Item `{item_id}` not found.")
    return item


def list_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        groups = state.store.list_groups(interaction.channel)
        if not groups:
            await session.edit(interaction.token, Payload.text("This channel doesn't have any kanban group yet."))
            return
        items = state.store.list_items(interaction.channel)
        await session.edit(interaction.token, Payload(embeds=tuple(board_embeds(groups, items))))

    return handler


def create_group_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        name = clean_text(interaction.option("name") or "")
        if not name:
            raise ValidationError("Group name cannot be empty.")

        with state.store.transaction():
            if state.store.get_group(name, interaction.channel) is not None:
                raise PreconditionError("Group already exists.")
            state.store.insert_group(KanbanGroup(name=name, channel_id=interaction.channel))

        await session.edit(interaction.token, Payload.text(f"Group `{name}` created."))

    return handler


def create_item_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        content = clean_text(interaction.option("content") or "")
        group_name = (interaction.option("group-name") or "").strip()
        if not content or not group_name:
            raise ValidationError("Content and group cannot be empty.")

        with state.store.transaction():
            group = _group(state, interaction, group_name)
            item = state.store.insert_item(content, group.name, interaction.channel)

        await session.edit(interaction.token, Payload.text(f"Item `{item.id}` created in group `{group.name}`."))

    return handler


def move_item_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        group_name = (interaction.option("group-name") or "").strip()
        if not group_name:
            raise ValidationError("Group name cannot be empty.")

        with state.store.transaction():
            item = _item(state, interaction, interaction.option("item-id"))
            group = _group(state, interaction, group_name)
            if item.group_name == group.name:
                raise PreconditionError(f"Item `{item.id}` is already in group `{group.name}`.")
            state.store.move_item(item.id, group.name, interaction.channel)

        logger.info(f"Moved kanban item {item.id} to {group.name!r} in {interaction.channel}")
        await session.edit(interaction.token, Payload.text("Item moved."))

    return handler


def delete_item_handler(state):
    @deferred()
    async def handler(session, interaction: Interaction) -> None:
        with state.store.transaction():
            item = _item(state, interaction, interaction.option("item-id"))
            state.store.delete_item(item.id, interaction.channel)

        await session.edit(interaction.token, Payload.text(f"Item `{item.id}` deleted."))

    return handler


def kanban_command(state) -> CommandGroup:
    item_id = Option("item-id", "ID of the item.", required=True)
    return CommandGroup(
        "kanban",
        "Manage the channel's kanban board.",
        [
            Command("list", "List kanban groups and their items.", list_handler(state)),
            Command(
                "create-group",
                "Create a kanban group.",
                create_group_handler(state),
                (Option("name", "Name of the group.", required=True),),
            ),
            Command(
                "create-item",
                "Create a kanban item.",
                create_item_handler(state),
                (
                    Option("content", "What needs doing.", required=True),
                    Option("group-name", "The group to add the item to.", required=True),
                ),
            ),
            Command(
                "move-item",
                "Move an item to another group.",
                move_item_handler(state),
                (item_id, Option("group-name", "The group to move the item to.", required=True)),
            ),
            Command("delete-item", "Delete an item.", delete_item_handler(state), (item_id,)),
        ],
    )
