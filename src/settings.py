"""Configuration loading for newsreel.

All user-editable settings (libraries, channels, logging) live in a single
JSON file for quick edits without touching Python. Secrets stay in the
environment (optionally a .env file) and config entries only name the
variable to read.

Nothing here is global: ``load_settings`` returns an ``AppSettings`` value
that the entry point passes explicitly to whatever needs it.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from core.config import ChannelFilter

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Default config location, overridable from the CLI.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

# Where to store the SQLite database when the config does not say.
DEFAULT_DB_PATH = os.path.join(PROJECT_ROOT, "newsreel.db")

POSTER_TYPES = ("url", "attachment")
TELEGRAM_METHODS = ("bot", "client")


@dataclass(frozen=True)
class EmailChannelConfig:
    name: str
    channel_filter: ChannelFilter
    smtp_server: str
    smtp_port: int
    smtp_user: str
    password_env: str
    from_addr: str
    to_addrs: Tuple[str, ...]
    visible_to_addr: str = ""
    subject: str = "Jellyfin Newsletter"
    size_mb: int = 15
    body_template_path: Optional[str] = None
    entry_template_path: Optional[str] = None
    # Implicit TLS (usually port 465) instead of STARTTLS.
    smtp_ssl: bool = False
    smtp_starttls: bool = True


@dataclass(frozen=True)
class DiscordChannelConfig:
    name: str
    channel_filter: ChannelFilter
    webhook_url: str
    webhook_name: str = "Jellyfin Newsletter"
    description_enabled: bool = True
    thumbnail_enabled: bool = True
    rating_enabled: bool = True
    pg_rating_enabled: bool = True
    duration_enabled: bool = True
    episodes_enabled: bool = True
    colors: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TelegramChannelConfig:
    name: str
    channel_filter: ChannelFilter
    chat_ids: Tuple[str, ...]
    method: str = "bot"
    bot_token_env: str = "TELEGRAM_BOT_TOKEN"
    description_enabled: bool = True
    thumbnail_enabled: bool = True
    rating_enabled: bool = True
    pg_rating_enabled: bool = True
    duration_enabled: bool = True
    episodes_enabled: bool = True


@dataclass(frozen=True)
class AppSettings:
    hostname: str
    server_id: str
    db_path: str
    newsletter_dir: str
    poster_type: str
    rating_decimals: int
    libraries: Dict[str, str]
    emails: List[EmailChannelConfig]
    discords: List[DiscordChannelConfig]
    telegrams: List[TelegramChannelConfig]
    # Logging configuration (optional), consumed by the entry point.
    logging: Dict[str, Any]


def _load_json_config(path: str) -> dict:
    """Load the JSON config with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


def parse_channel_filter(raw: dict) -> ChannelFilter:
    """Build a ChannelFilter from a channel entry.

    Defaults mirror a fresh install: adds and deletes on, updates off.
    """

    return ChannelFilter(
        on_add=bool(raw.get("on_add", True)),
        on_update=bool(raw.get("on_update", False)),
        on_delete=bool(raw.get("on_delete", True)),
        movie_libraries=frozenset(str(item) for item in raw.get("movie_libraries", [])),
        series_libraries=frozenset(str(item) for item in raw.get("series_libraries", [])),
    )


def _split_ids(raw: Any) -> Tuple[str, ...]:
    # Chat ids and recipients may be a list or a comma separated string.
    if isinstance(raw, str):
        items = raw.split(",")
    else:
        items = [str(item) for item in raw or []]
    return tuple(item.strip() for item in items if item.strip())


def _parse_email(raw: dict) -> EmailChannelConfig:
    name = raw.get("name", "Email")
    size_mb = int(raw.get("size_mb", 15))
    if size_mb < 1:
        raise ValueError(f"email[{name}].size_mb must be at least 1")
    to_addrs = _split_ids(raw.get("to", []))
    if not to_addrs:
        raise ValueError(f"email[{name}].to needs at least one recipient")
    smtp_port = int(raw.get("smtp_port", 587))
    return EmailChannelConfig(
        name=name,
        channel_filter=parse_channel_filter(raw),
        smtp_server=raw.get("smtp_server", "smtp.gmail.com"),
        smtp_port=smtp_port,
        smtp_user=raw.get("smtp_user", ""),
        password_env=raw.get("password_env", "SMTP_PASSWORD"),
        from_addr=raw.get("from", "JellyfinNewsletter@donotreply.com"),
        to_addrs=to_addrs,
        visible_to_addr=raw.get("visible_to", ""),
        subject=raw.get("subject", "Jellyfin Newsletter"),
        size_mb=size_mb,
        body_template_path=raw.get("body_template"),
        entry_template_path=raw.get("entry_template"),
        smtp_ssl=bool(raw.get("smtp_ssl", smtp_port == 465)),
        smtp_starttls=bool(raw.get("smtp_starttls", True)),
    )


def _parse_discord(raw: dict) -> DiscordChannelConfig:
    name = raw.get("name", "Discord")
    webhook_url = raw.get("webhook_url", "")
    if not webhook_url:
        raise ValueError(f"discord[{name}].webhook_url is required")
    return DiscordChannelConfig(
        name=name,
        channel_filter=parse_channel_filter(raw),
        webhook_url=webhook_url,
        webhook_name=raw.get("webhook_name", "Jellyfin Newsletter"),
        description_enabled=bool(raw.get("description", True)),
        thumbnail_enabled=bool(raw.get("thumbnail", True)),
        rating_enabled=bool(raw.get("rating", True)),
        pg_rating_enabled=bool(raw.get("pg_rating", True)),
        duration_enabled=bool(raw.get("duration", True)),
        episodes_enabled=bool(raw.get("episodes", True)),
        colors=dict(raw.get("colors", {})),
    )


def _parse_telegram(raw: dict) -> TelegramChannelConfig:
    name = raw.get("name", "Telegram")
    method = raw.get("method", "bot")
    if method not in TELEGRAM_METHODS:
        raise ValueError(f"telegram[{name}].method must be one of {', '.join(TELEGRAM_METHODS)}")
    chat_ids = _split_ids(raw.get("chat_ids", []))
    if not chat_ids:
        raise ValueError(f"telegram[{name}].chat_ids needs at least one chat id")
    return TelegramChannelConfig(
        name=name,
        channel_filter=parse_channel_filter(raw),
        chat_ids=chat_ids,
        method=method,
        bot_token_env=raw.get("bot_token_env", "TELEGRAM_BOT_TOKEN"),
        description_enabled=bool(raw.get("description", True)),
        thumbnail_enabled=bool(raw.get("thumbnail", True)),
        rating_enabled=bool(raw.get("rating", True)),
        pg_rating_enabled=bool(raw.get("pg_rating", True)),
        duration_enabled=bool(raw.get("duration", True)),
        episodes_enabled=bool(raw.get("episodes", True)),
    )


def parse_settings(config: dict) -> AppSettings:
    """Validate a raw config dict and convert it to ``AppSettings``."""

    poster_type = config.get("poster_type", "url")
    if poster_type not in POSTER_TYPES:
        raise ValueError(f"poster_type must be one of {', '.join(POSTER_TYPES)}")

    # Disabled entries are kept in the file for quick toggling but never built.
    def enabled(entries: list) -> list:
        return [entry for entry in entries if entry.get("enabled", True)]

    return AppSettings(
        hostname=config.get("hostname", ""),
        server_id=config.get("server_id", ""),
        db_path=_resolve_path(config.get("db_path", DEFAULT_DB_PATH)),
        newsletter_dir=_resolve_path(config.get("newsletter_dir", "newsletters")),
        poster_type=poster_type,
        rating_decimals=int(config.get("rating_decimals", 1)),
        libraries={str(key): str(value) for key, value in config.get("libraries", {}).items()},
        emails=[_parse_email(entry) for entry in enabled(config.get("email", []))],
        discords=[_parse_discord(entry) for entry in enabled(config.get("discord", []))],
        telegrams=[_parse_telegram(entry) for entry in enabled(config.get("telegram", []))],
        logging=config.get("logging", {}),
    )


def load_settings(path: Optional[str] = None) -> AppSettings:
    """Load .env secrets into the environment, then read and parse the config."""

    load_dotenv()
    return parse_settings(_load_json_config(path or CONFIG_PATH))


def require_secret(env_name: str, purpose: str) -> str:
    """Return a secret from the environment or fail fast at startup."""

    value = os.getenv(env_name)
    if not value:
        raise RuntimeError(f"{env_name} is required for {purpose}")
    return value
