"""Application entry point for newsreel."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Awaitable, Callable, Iterable, List, Optional, Set, Tuple

from art import tprint

import settings
from adapters.discord_webhook import DiscordWebhookSender, EmbedRenderer
from adapters.email_renderer import DEFAULT_BODY_TEMPLATE, DEFAULT_ENTRY_TEMPLATE, HtmlEntryRenderer
from adapters.posters import read_poster
from adapters.smtp_sender import SmtpSender
from adapters.sqlite_storage import SQLiteStorage
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_client_notifier import TelegramClientNotifier
from adapters.telegram_messages import TelegramMessageRenderer
from client import build_client
from core.config import direct_message_budget, email_budget, embed_budget
from core.newsletter import NewsletterBuilder
from get_session import login
from pipeline import Channel, CycleReport, build_all, run_cycle, send_test
from settings import (
    AppSettings,
    DiscordChannelConfig,
    EmailChannelConfig,
    TelegramChannelConfig,
    require_secret,
)

NAME = "NEWSREEL"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Formatter that replaces known secret values with ``***``."""

    def __init__(self, secrets: Iterable[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        # Longest first so a secret containing another is masked whole.
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        for secret in self._secrets:
            text = text.replace(secret, "***")
        return text


def _secret_env_names(app_settings: AppSettings) -> Set[str]:
    """Env variables holding credentials for the configured channels."""

    names = {"API_HASH", "TELEGRAM_2FA"}
    names.update(config.password_env for config in app_settings.emails if config.smtp_user)
    names.update(config.bot_token_env for config in app_settings.telegrams if config.method == "bot")
    names.update(app_settings.logging.get("redact", {}).get("patterns", []))
    return names


def _secret_values(app_settings: AppSettings) -> List[str]:
    if not app_settings.logging.get("redact", {}).get("enabled", True):
        return []
    values = [os.getenv(name, "") for name in _secret_env_names(app_settings)]
    # Webhook urls embed their token.
    values += [config.webhook_url for config in app_settings.discords]
    return values


def _log_file_handler(file_cfg: dict) -> RotatingFileHandler:
    path = file_cfg.get("path") or os.path.join("logs", "newsreel.log")
    if not os.path.isabs(path):
        path = os.path.join(settings.PROJECT_ROOT, path)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )


def _configure_logging(app_settings: AppSettings) -> None:
    log_cfg = app_settings.logging
    if not log_cfg.get("enabled", True):
        return

    level = getattr(logging, str(log_cfg.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter(
        _secret_values(app_settings),
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: List[logging.Handler] = []
    if log_cfg.get("console", True):
        handlers.append(logging.StreamHandler())
    if log_cfg.get("file", {}).get("enabled", False):
        handlers.append(_log_file_handler(log_cfg["file"]))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    if handlers:
        logging.basicConfig(level=level, handlers=handlers)


def _read_template(path: Optional[str], default: str) -> str:
    if not path:
        return default
    with open(path, "r", encoding="utf-8") as handle:
        return handle.read()


def _image_loader(app_settings: AppSettings):
    # Attachment mode uploads the poster file; url mode links the hosted image.
    return read_poster if app_settings.poster_type == "attachment" else None


def _email_builder(app_settings: AppSettings, config: EmailChannelConfig) -> NewsletterBuilder:
    renderer = HtmlEntryRenderer(
        hostname=app_settings.hostname,
        server_id=app_settings.server_id,
        entry_template=_read_template(config.entry_template_path, DEFAULT_ENTRY_TEMPLATE),
        image_loader=_image_loader(app_settings),
        rating_decimals=app_settings.rating_decimals,
    )
    return NewsletterBuilder(renderer, config.channel_filter, email_budget(config.size_mb), app_settings.libraries)


def _discord_builder(app_settings: AppSettings, config: DiscordChannelConfig) -> NewsletterBuilder:
    renderer = EmbedRenderer(
        config,
        hostname=app_settings.hostname,
        server_id=app_settings.server_id,
        image_loader=_image_loader(app_settings),
        rating_decimals=app_settings.rating_decimals,
    )
    return NewsletterBuilder(renderer, config.channel_filter, embed_budget(), app_settings.libraries)


def _telegram_builder(app_settings: AppSettings, config: TelegramChannelConfig) -> NewsletterBuilder:
    renderer = TelegramMessageRenderer(
        config,
        hostname=app_settings.hostname,
        server_id=app_settings.server_id,
        # Telethon has no MarkdownV2 parser, so the client method renders HTML.
        mode="html" if config.method == "client" else "markdown_v2",
        image_loader=_image_loader(app_settings),
        rating_decimals=app_settings.rating_decimals,
    )
    return NewsletterBuilder(renderer, config.channel_filter, direct_message_budget(), app_settings.libraries)


def build_previews(app_settings: AppSettings) -> List[Tuple[str, NewsletterBuilder]]:
    """Builders for every channel, without transports or secrets."""

    previews = [(f"email:{c.name}", _email_builder(app_settings, c)) for c in app_settings.emails]
    previews += [(f"discord:{c.name}", _discord_builder(app_settings, c)) for c in app_settings.discords]
    previews += [(f"telegram:{c.name}", _telegram_builder(app_settings, c)) for c in app_settings.telegrams]
    return previews


def build_channels(app_settings: AppSettings, client=None) -> List[Channel]:
    """Wire every configured channel to its transport.

    Secrets are resolved here so a missing one fails before anything is sent.
    """

    channels: List[Channel] = []

    for config in app_settings.emails:
        password = ""
        if config.smtp_user:
            password = require_secret(config.password_env, f"email channel '{config.name}'")
        sender = SmtpSender(
            config,
            password,
            body_template=_read_template(config.body_template_path, DEFAULT_BODY_TEMPLATE),
            newsletter_dir=app_settings.newsletter_dir,
        )
        channels.append(Channel(sender.name, _email_builder(app_settings, config), sender))

    for config in app_settings.discords:
        sender = DiscordWebhookSender(config)
        channels.append(Channel(sender.name, _discord_builder(app_settings, config), sender))

    for config in app_settings.telegrams:
        name = f"telegram:{config.name}"
        if config.method == "client":
            if client is None:
                raise RuntimeError(f"{name} uses method=client but no Telegram client is connected")
            sender = TelegramClientNotifier(name, client, config.chat_ids)
        else:
            token = require_secret(config.bot_token_env, f"telegram channel '{config.name}'")
            sender = TelegramBotNotifier(name, token, config.chat_ids)
        channels.append(Channel(name, _telegram_builder(app_settings, config), sender))

    return channels


async def _with_channels(
    app_settings: AppSettings,
    action: Callable[[List[Channel]], Awaitable[CycleReport]],
) -> CycleReport:
    """Build the channels, connecting the Telethon client first when one needs it."""

    client = None
    if any(config.method == "client" for config in app_settings.telegrams):
        client = build_client()
        await client.connect()
        if not await client.is_user_authorized():
            await client.disconnect()
            raise RuntimeError("Telegram session is not authorized; run `newsreel login` first")

    try:
        return await action(build_channels(app_settings, client))
    finally:
        if client is not None:
            await client.disconnect()


def _run_send(app_settings: AppSettings) -> None:
    storage = SQLiteStorage(app_settings.db_path)
    storage.init_db()
    report = asyncio.run(_with_channels(app_settings, lambda channels: run_cycle(storage, channels)))
    LOGGER.info(
        "Cycle finished: %s delivered, %s skipped, %s failed, %s archived",
        len(report.delivered),
        len(report.skipped),
        len(report.failed),
        report.archived,
    )


def _run_test(app_settings: AppSettings) -> None:
    report = asyncio.run(_with_channels(app_settings, send_test))
    for name in report.delivered:
        LOGGER.info("[%s] Test newsletter delivered", name)
    if report.failed:
        raise SystemExit(f"Test newsletter failed for: {', '.join(report.failed)}")


def _run_preview(app_settings: AppSettings) -> None:
    storage = SQLiteStorage(app_settings.db_path)
    storage.init_db()

    for name, result in build_all(storage, build_previews(app_settings)):
        print("")
        print(f"{name}: {result.entry_count} entries in {len(result.chunks)} chunks")
        for index, chunk in enumerate(result.chunks, start=1):
            titles = ", ".join(entry.title for entry in chunk.entries)
            print(f"  [{index}] {chunk.entry_count} entries, {chunk.byte_total} bytes: {titles}")
        for diagnostic in result.diagnostics:
            print(f"  ! {diagnostic.kind.value}: {diagnostic.message}")


def _run_login() -> None:
    asyncio.run(login(build_client()))


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="newsreel")
    parser.add_argument("--config", default=None, help="Path to config.json")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("send", help="Send the newsletter to every channel and archive it")
    subparsers.add_parser("preview", help="Show how the newsletter would be split, without sending")
    subparsers.add_parser("test", help="Send a sample newsletter through every channel to check its settings")
    subparsers.add_parser("login", help="Log in the Telethon session for method=client")

    args = parser.parse_args(argv)
    _print_banner()
    app_settings = settings.load_settings(args.config)
    _configure_logging(app_settings)

    if args.command == "login":
        _run_login()
        return
    if args.command == "preview":
        _run_preview(app_settings)
        return
    if args.command == "test":
        _run_test(app_settings)
        return
    _run_send(app_settings)


if __name__ == "__main__":
    main()
