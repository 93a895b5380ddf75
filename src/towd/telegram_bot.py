"""Towd Telegram Bot."""

import logging

from telegram import BotCommand, BotCommandScopeChat, Update
from telegram.ext import Application, CallbackQueryHandler, ContextTypes, MessageHandler, filters

from .adapters.telegram_responder import (
    TelegramResponder,
    command_interaction,
    component_interaction,
    modal_interaction,
)
from .app_state import AppState, build_state
from .config import Config, load_config
from .metrics import start_metrics_server

logger = logging.getLogger(__name__)


class GuildFilter(filters.BaseFilter):
    """Filter to only allow updates from the configured chat."""

    def __init__(self, guild_id: str):
        super().__init__()
        self.guild_id = guild_id

    def check_update(self, update: Update) -> bool:
        chat = update.effective_chat
        if chat is None:
            return False
        return str(chat.id) == self.guild_id


def bot_commands(state: AppState) -> list[BotCommand]:
    """Top-level commands for the chat's command menu."""
    return [BotCommand(command.name, command.description[:256]) for command in state.commands]


def create_application(state: AppState) -> Application:
    """Create and configure the Telegram bot application."""
    config = state.config
    guild = config.guild_id

    app = Application.builder().token(config.bot_token).concurrent_updates(True).build()
    responder = TelegramResponder(app.bot)
    in_guild = GuildFilter(guild)

    async def on_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
        interaction = command_interaction(update, guild)
        if interaction is None:
            return
        logger.debug(f"/{interaction.identifier} from {interaction.invoker} in {interaction.channel}")
        await state.router.route(responder, interaction)

    async def on_button(update: Update, context: ContextTypes.DEFAULT_TYPE):
        # Ephemeral prompts live in the invoker's private chat, so clicks there count too.
        query = update.callback_query
        chat = update.effective_chat
        if not in_guild.check_update(update) and (chat is None or chat.id != query.from_user.id):
            logger.warning(f"Ignoring button press from chat {chat.id if chat else None}")
            await query.answer()
            return
        interaction = component_interaction(update, guild)
        if interaction is None:
            await query.answer()
            return
        await state.router.route(responder, interaction)

    async def on_reply(update: Update, context: ContextTypes.DEFAULT_TYPE):
        modal = responder.take_form(update.effective_message)
        if modal is None:
            return
        await state.router.route(responder, modal_interaction(update, modal, guild))

    app.add_handler(MessageHandler(filters.COMMAND & in_guild, on_command))
    app.add_handler(CallbackQueryHandler(on_button))
    app.add_handler(MessageHandler(filters.REPLY & filters.TEXT & ~filters.COMMAND & in_guild, on_reply))

    async def post_init(application: Application) -> None:
        await application.bot.set_my_commands(bot_commands(state), scope=BotCommandScopeChat(int(guild)))
        logger.info(f"Published {len(state.commands)} commands to chat {guild}")

    async def post_shutdown(application: Application) -> None:
        state.close()

    app.post_init = post_init
    app.post_shutdown = post_shutdown
    return app


def run_bot(config: Config | None = None):
    """Run the Telegram bot."""
    if config is None:
        config = load_config()

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, config.log_level, logging.INFO),
    )
    # Every poll is logged at INFO otherwise
    logging.getLogger("httpx").setLevel(logging.WARNING)

    config.validate()
    state = build_state(config)
    app = create_application(state)

    if config.http_enabled:
        logger.info(f"Dashboard expected at {config.hostname or config.http_host}:{config.http_port}")
    if config.metrics_enabled:
        start_metrics_server(config.metrics_port)

    logger.info("Starting Towd Telegram bot...")
    app.run_polling(allowed_updates=Update.ALL_TYPES)
