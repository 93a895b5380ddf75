"""Configuration management for Towd."""

import logging
import os
from dataclasses import dataclass
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .core.errors import ConfigError

logger = logging.getLogger(__name__)

TOWD_HOME = Path(os.environ.get("TOWD_HOME", Path.home() / ".towd"))
CONFIG_FILE = TOWD_HOME / "towd.conf"
ENV_PREFIX = "TOWD_"

_INT_KEYS = {"http_port", "calendar_refresh_interval", "metrics_port"}


@dataclass
class Config:
    """Towd configuration."""

    bot_token: str = ""
    # Chat the bot serves; plays the role of a guild.
    guild_id: str = ""
    data_dir: str = "./data"
    timezone: str = ""
    groq_api_key: str = ""
    natural_model: str = "llama3-8b-8192"
    # Companion dashboard
    http_host: str = ""
    http_port: int = 0
    hostname: str = ""
    jwt_secret: str = ""
    calendar_refresh_interval: int = 300
    flow_timeout: float = 120.0
    # Prometheus exporter, off when 0
    metrics_port: int = 0
    log_level: str = "INFO"

    @property
    def natural_enabled(self) -> bool:
        return bool(self.groq_api_key)

    @property
    def http_enabled(self) -> bool:
        return self.http_port > 0

    @property
    def metrics_enabled(self) -> bool:
        return self.metrics_port > 0

    @property
    def database_path(self) -> Path:
        return Path(self.data_dir).expanduser() / "towd.db"

    @property
    def location(self) -> tzinfo | None:
        """Configured zone, or None for system local time."""
        if not self.timezone:
            return None
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {self.timezone!r}, using local time")
            return None

    def validate(self) -> None:
        """Raise ConfigError listing every missing required value."""
        missing = []
        if not self.bot_token:
            missing.append("TOWD_BOT_TOKEN")
        if not self.guild_id:
            missing.append("TOWD_GUILD_ID")
        if self.http_enabled and not self.jwt_secret:
            missing.append("TOWD_JWT_SECRET")
        if missing:
            raise ConfigError(f"Missing required configuration: {', '.join(missing)}")


def _unquote(value: str) -> str:
    """Handle quoted values with inline comments: "value" # comment"""
    for quote in ('"', "'"):
        if value.startswith(quote):
            end_quote = value.find(quote, 1)
            return value[1:end_quote] if end_quote != -1 else value[1:]
    # Unquoted: strip inline comments
    if "#" in value:
        value = value.split("#")[0].strip()
    return value


def _apply(config: Config, key: str, value: str) -> None:
    if key in _INT_KEYS:
        try:
            int(value)
        except ValueError:
            logger.warning(f"Ignoring {key}: {value!r} is not a number")
            return

    match key:
        case "bot_token":
            config.bot_token = value
        case "guild_id":
            config.guild_id = value
        case "data_dir":
            config.data_dir = value
        case "timezone":
            config.timezone = value
        case "groq_api_key":
            config.groq_api_key = value
        case "natural_model":
            config.natural_model = value
        case "http_host":
            config.http_host = value
        case "http_port":
            config.http_port = int(value)
        case "hostname":
            config.hostname = value
        case "jwt_secret":
            config.jwt_secret = value
        case "calendar_refresh_interval":
            config.calendar_refresh_interval = int(value)
        case "flow_timeout":
            try:
                config.flow_timeout = float(value)
            except ValueError:
                logger.warning(f"Ignoring flow_timeout: {value!r} is not a number")
        case "metrics_port":
            config.metrics_port = int(value)
        case "log_level":
            config.log_level = value.upper()
        case _:
            logger.debug(f"Unknown config key {key!r}")


def load_config(path: Path | None = None, env: dict[str, str] | None = None) -> Config:
    """
    Load configuration.

    Values come from the conf file first (`key = value` lines), then from
    `TOWD_*` environment variables, which win.
    """
    config = Config()
    path = path or CONFIG_FILE
    env = os.environ if env is None else env

    if path.exists():
        for line in path.read_text().splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            _apply(config, key.strip().lower(), _unquote(value.strip()))

    for name, value in env.items():
        if name.startswith(ENV_PREFIX) and name != "TOWD_HOME":
            _apply(config, name[len(ENV_PREFIX) :].lower(), value.strip())

    return config
