"""Towd - team calendar and kanban assistant for group chats."""

__version__ = "0.1.0"
