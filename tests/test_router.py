"""Tests for interaction routing and error isolation."""

import logging

import pytest

from towd.core.errors import DoubleReplyError, NotFoundError, PersistenceError, TransportError
from towd.core.interaction import Interaction, InteractionKind, ReplyToken
from towd.core.messages import Payload
from towd.core.registry import DispatchTable
from towd.core.router import Router

from conftest import click, command, submit


@pytest.fixture
def table():
    return DispatchTable()


@pytest.fixture
def router(table):
    return Router(table)


class TestLookup:
    @pytest.mark.asyncio
    async def test_routes_by_kind_and_identifier(self, table, router, responder):
        seen = []

        async def on_command(session, interaction):
            seen.append(("command", interaction.identifier))

        async def on_click(session, interaction):
            seen.append(("click", interaction.identifier))

        table.commands.add("ping", on_command)
        table.components.add("ping", on_click)

        await router.route(responder, command("ping"))
        await router.route(responder, click("ping"))

        assert seen == [("command", "ping"), ("click", "ping")]

    @pytest.mark.asyncio
    async def test_unknown_component_is_expired(self, router, responder, caplog):
        caplog.set_level(logging.DEBUG)

        await router.route(responder, click("yes-nonexistent"))

        assert responder.last.method == "reply_initial"
        assert responder.last.text == "Action expired."
        assert responder.last.ephemeral
        assert not [r for r in caplog.records if r.levelno > logging.INFO]

    @pytest.mark.asyncio
    async def test_unknown_modal_is_expired(self, router, responder):
        await router.route(responder, submit("event-form-gone", {"title": "x"}))
        assert responder.last.text == "Action expired."

    @pytest.mark.asyncio
    async def test_unknown_command(self, router, responder):
        await router.route(responder, command("nope"))
        assert responder.last.text == "Unknown command."
        assert responder.last.ephemeral

    @pytest.mark.asyncio
    async def test_fallback_send_failure_is_swallowed(self, router, responder, caplog):
        responder.failing.add("reply_initial")
        await router.route(responder, click("yes-gone"))
        assert "Can't send fallback reply" in caplog.text


class TestErrorIsolation:
    @pytest.mark.asyncio
    async def test_unexpected_exception_is_logged(self, table, router, responder, caplog):
        async def broken(session, interaction):
            raise RuntimeError("boom")

        table.commands.add("broken", broken)
        await router.route(responder, command("broken"))

        assert "Unhandled error in broken" in caplog.text
        assert responder.calls == []

    @pytest.mark.asyncio
    async def test_recoverable_error_is_shown(self, table, router, responder):
        async def missing(session, interaction):
            raise NotFoundError("no row", user_message="Event not found.")

        table.commands.add("missing", missing)
        await router.route(responder, command("missing"))

        assert responder.last.method == "reply_initial"
        assert responder.last.text == "Event not found."
        assert responder.last.ephemeral

    @pytest.mark.asyncio
    async def test_error_after_reply_edits(self, table, router, responder, caplog):
        async def fails_late(session, interaction):
            await session.reply_deferred(interaction.token)
            raise PersistenceError("Can't save", cause=ValueError("disk full"))

        table.commands.add("late", fails_late)
        with caplog.at_level(logging.INFO):
            await router.route(responder, command("late"))

        assert responder.last.method == "edit"
        assert "disk full" in responder.last.text
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    @pytest.mark.asyncio
    async def test_transport_error_is_not_reported_to_user(self, table, router, responder, caplog):
        async def offline(session, interaction):
            raise TransportError("connection reset")

        table.components.add("x", offline)
        await router.route(responder, click("x"))

        assert responder.calls == []
        assert "Transport failure" in caplog.text

    @pytest.mark.asyncio
    async def test_double_reply_is_logged(self, table, router, responder, caplog):
        async def twice(session, interaction):
            await session.reply_initial(interaction.token, Payload.text("one"))
            await session.reply_initial(interaction.token, Payload.text("two"))

        table.commands.add("twice", twice)
        await router.route(responder, command("twice"))

        assert responder.texts == ["one"]
        assert "Second initial reply" in caplog.text
        assert "Programmer error in twice" in caplog.text

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_next(self, table, router, responder):
        async def broken(session, interaction):
            raise RuntimeError("boom")

        async def fine(session, interaction):
            await session.reply_initial(interaction.token, Payload.text("ok"))

        table.commands.add("broken", broken)
        table.commands.add("fine", fine)
        await router.route(responder, command("broken"))
        await router.route(responder, command("fine"))

        assert responder.texts == ["ok"]


class TestReplyToken:
    def test_second_claim_rejected(self, caplog):
        interaction = command("ping")
        interaction.token.claim_initial()
        with pytest.raises(DoubleReplyError):
            interaction.token.claim_initial()
        assert "Second initial reply" in caplog.text

    def test_edit_needs_initial(self):
        from towd.core.errors import ProgrammerError

        with pytest.raises(ProgrammerError):
            command("ping").token.require_initial()

    def test_interaction_path(self):
        interaction = command("event")
        assert interaction.kind is InteractionKind.COMMAND
        assert interaction.path == "event"

    def test_options_and_values_default_to_empty(self):
        first = Interaction(InteractionKind.COMPONENT, "yes-f1", "42", "100", ReplyToken("a"))
        second = Interaction(InteractionKind.COMPONENT, "yes-f2", "42", "100", ReplyToken("b"))
        assert first.option("title") is None
        assert first.value("title") == ""
        assert dict(first.options) == dict(second.values) == {}
        with pytest.raises(TypeError):
            first.options["title"] = "x"
