"""Towd CLI - Team Calendar and Kanban Assistant."""

import json
import sys
from dataclasses import asdict

import click

from .adapters.sqlite_store import SQLiteStore
from .app_state import AppState
from .config import CONFIG_FILE, load_config
from .core.errors import ConfigError, PersistenceError
from .handlers import register_handlers

SECRET_KEYS = {"bot_token", "groq_api_key", "jwt_secret"}


def mask(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}…{value[-2:]}"


@click.group()
@click.version_option(package_name="towd")
def main():
    """Towd - Team calendar and kanban assistant for Telegram."""
    pass


@main.command()
def run():
    """Start the Telegram bot."""
    from .telegram_bot import run_bot

    config = load_config()
    try:
        config.validate()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        click.echo(f"Set them in {CONFIG_FILE} or as environment variables.", err=True)
        sys.exit(1)
    run_bot(config)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def commands(as_json: bool):
    """List the chat commands the bot registers."""
    # Describing commands never touches the database.
    state = AppState(config=load_config(), store=SQLiteStore(":memory:"))
    register_handlers(state)
    lines = state.describe_commands()
    state.close()

    if as_json:
        click.echo(
            json.dumps(
                [{"command": path, "description": description, "usage": usage} for path, description, usage in lines],
                indent=2,
            )
        )
        return

    width = max(len(path) for path, _, _ in lines)
    for path, description, usage in lines:
        click.echo(f"/{path:<{width}}  {description}")
        click.echo(f" {'':<{width}}  usage: {usage}")


@main.command("init-db")
def init_db():
    """Create the database schema."""
    config = load_config()
    try:
        store = SQLiteStore(config.database_path)
        store.init_schema()
        store.close()
    except PersistenceError as e:
        click.echo(f"Error: {e.user_message}", err=True)
        sys.exit(1)
    click.echo(f"Database ready at {config.database_path}")


@main.command("config")
def show_config():
    """Show the resolved configuration (secrets masked)."""
    config = load_config()
    click.echo(f"# {CONFIG_FILE}{'' if CONFIG_FILE.exists() else ' (not found)'}")
    for key, value in asdict(config).items():
        if key in SECRET_KEYS:
            value = mask(value)
        click.echo(f"{key} = {value}")

    try:
        config.validate()
    except ConfigError as e:
        click.echo(f"# {e}")


if __name__ == "__main__":
    main()
