"""Telethon user-client factory for the ``client`` Telegram method."""

from __future__ import annotations

import logging
import os
from typing import Tuple

from telethon import TelegramClient

import settings

LOGGER = logging.getLogger(__name__)

DEFAULT_SESSION = "newsreel"


def _session_path() -> str:
    # Relative names resolve against the project root, not the working directory.
    session = os.getenv("SESSION_NAME") or DEFAULT_SESSION
    if os.path.isabs(session):
        return session
    return os.path.join(settings.PROJECT_ROOT, session)


def _api_credentials() -> Tuple[int, str]:
    missing = [name for name in ("API_ID", "API_HASH") if not os.getenv(name)]
    if missing:
        raise RuntimeError(f"Telegram client needs {' and '.join(missing)} in the environment or .env")
    raw_id = os.environ["API_ID"].strip()
    if not raw_id.isdigit():
        raise RuntimeError(f"API_ID must be numeric, got {raw_id!r}")
    return int(raw_id), os.environ["API_HASH"].strip()


def build_client() -> TelegramClient:
    """Create an unconnected client; the caller connects and disconnects it."""

    api_id, api_hash = _api_credentials()
    session = _session_path()
    LOGGER.info("Using Telegram session %s.session", session)
    return TelegramClient(session, api_id, api_hash)
