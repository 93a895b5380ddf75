"""Dashboard login, TOTP and session commands. Replies are ephemeral."""

import logging

from towd.core.auth import encode_login_token, login_url, new_totp_secret, totp_provisioning_uri, verify_totp
from towd.core.commands import Command, CommandGroup, Option
from towd.core.dates import format_when
from towd.core.errors import PreconditionError, ValidationError
from towd.core.flow import FlowOutcome
from towd.core.interaction import Interaction
from towd.core.messages import Embed, Payload

from .common import confirm_and_commit, deferred, retire_prompt, settle

logger = logging.getLogger(__name__)


def login_handler(state):
    @deferred(ephemeral=True)
    async def handler(session, interaction: Interaction) -> None:
        config = state.config
        if not config.jwt_secret or not config.hostname:
            raise PreconditionError("Dashboard login is not configured.")

        token = encode_login_token(interaction.invoker, interaction.invoker_name, config.jwt_secret, state.now())
        embed = Embed(title="Login into Dashboard", url=login_url(config.hostname, token))
        await session.edit(interaction.token, Payload(embeds=(embed,)))

    return handler


def _provisioning_message(interaction: Interaction, secret: str) -> str:
    uri = totp_provisioning_uri(secret, interaction.invoker_name or interaction.invoker)
    return f"Add this to your authenticator app:\n`{uri}`"


def totp_create_handler(state):
    @deferred(ephemeral=True)
    async def handler(session, interaction: Interaction) -> None:
        user = state.store.get_user(interaction.invoker)
        secret = new_totp_secret()

        def commit() -> str:
            state.store.set_totp_secret(interaction.invoker, secret)
            logger.info(f"TOTP secret created for {interaction.invoker}")
            return _provisioning_message(interaction, secret)

        if user is None or not user.totp_secret:
            with state.store.transaction():
                message = commit()
            await session.edit(interaction.token, Payload.text(message))
            return

        await confirm_and_commit(
            state,
            session,
            interaction,
            Payload.text("This will overwrite your current TOTP secret. Are you sure?"),
            commit,
            done="",
            canceled="Canceled.",
            ephemeral=True,
        )

    return handler


def totp_check_handler(state):
    @deferred(ephemeral=True)
    async def handler(session, interaction: Interaction) -> None:
        code = (interaction.option("code") or "").strip()
        if not code:
            raise ValidationError("TOTP code is empty.")
        user = state.store.get_user(interaction.invoker)
        if user is None or not user.totp_secret:
            raise PreconditionError("You haven't created a TOTP secret yet.")

        if verify_totp(user.totp_secret, code):
            await session.edit(interaction.token, Payload.text("✅  TOTP code is valid."))
        else:
            await session.edit(interaction.token, Payload.text("❌  TOTP code is invalid."))

    return handler


def revoke_session_handler(state):
    @deferred(ephemeral=True)
    async def handler(session, interaction: Interaction) -> None:
        sessions = state.store.list_sessions(interaction.invoker)
        if not sessions:
            await session.edit(interaction.token, Payload.text("You don't have any active session."))
            return

        embeds = tuple(
            Embed(title=f"Session {index}")
            .with_field("Created At", format_when(token.created_at, state.tz), True)
            .with_field("IP Address", token.ip_address, True)
            .with_field("User Agent", token.user_agent)
            for index, token in enumerate(sessions)
        )
        prompt = Payload(content=f"Available sessions: {len(sessions)}", embeds=embeds)

        async with state.flow(session, interaction.token) as flow:
            for index in range(len(sessions)):
                flow.select_button("revoke-session", index, str(index))
            flow.cancel_button()
            result = await flow.prompt(prompt)

        if result.outcome is not FlowOutcome.ERROR:
            await retire_prompt(session, interaction.token, prompt)
        if result.outcome is FlowOutcome.SELECTION and not 0 <= result.index < len(sessions):
            raise ValidationError(f"Invalid session index: {result.index}")
        chosen = sessions[result.index] if result.outcome is FlowOutcome.SELECTION else None

        await settle(
            state,
            session,
            interaction,
            result,
            lambda: state.store.delete_session(chosen.secret),
            done="Session revoked.",
            canceled="Canceled.",
            ephemeral=True,
        )

    return handler


def auth_command(state) -> CommandGroup:
    return CommandGroup(
        "auth",
        "Dashboard access and two-factor codes.",
        [
            Command("login", "Get a login link for the dashboard.", login_handler(state)),
            Command("totp-create", "Create a TOTP secret.", totp_create_handler(state)),
            Command(
                "totp-check",
                "Check a TOTP code.",
                totp_check_handler(state),
                (Option("code", "Code from your authenticator app.", required=True),),
            ),
            Command("revoke-session", "Revoke one of your dashboard sessions.", revoke_session_handler(state)),
        ],
    )
