"""Handler library - the persistent commands registered at startup."""

from .auth import auth_command
from .calendar import calendar_command
from .event import event_command
from .kanban import kanban_command
from .ping import ping_command


def build_commands(state) -> list:
    return [
        ping_command(state),
        event_command(state),
        kanban_command(state),
        auth_command(state),
        calendar_command(state),
    ]


def register_handlers(state) -> None:
    """Register every persistent command on `state`."""
    for command in build_commands(state):
        state.add_command(command)


__all__ = ["build_commands", "register_handlers"]
