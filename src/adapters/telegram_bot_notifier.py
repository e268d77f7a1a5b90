"""Telegram Bot API delivery adapter.

Text and URL photos go out as JSON posts. Attached posters need a multipart
upload, which goes through requests.
"""

from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Sequence

import requests

from adapters.telegram_messages import OutgoingMessage, TelegramDelivery

API_BASE = "https://api.telegram.org"


class TelegramBotNotifier(TelegramDelivery):
    """ChannelSender that posts MarkdownV2 messages through a bot."""

    def __init__(self, name: str, bot_token: str, chat_ids: Sequence[str]) -> None:
        super().__init__(name, chat_ids)
        self._bot_token = bot_token

    def _endpoint(self, method: str) -> str:
        return f"{API_BASE}/bot{self._bot_token}/{method}"

    def _post_json(self, method: str, payload: dict) -> None:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        # Blocking HTTP is acceptable here; sends are sequential and rate limited anyway.
        try:
            with urllib.request.urlopen(request, timeout=10):
                pass
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise RuntimeError(f"Bot API {method} error {e.code}: {body}") from e
        except urllib.error.URLError as e:
            raise RuntimeError(f"Bot API {method} unreachable: {e.reason}") from e

    def _post_photo_file(self, chat_id: str, message: OutgoingMessage) -> None:
        photo = message.photo
        # The multipart field must be called "photo" for sendPhoto.
        files = {"photo": (photo.name, photo.data, photo.content_type)}
        data = {"chat_id": chat_id}
        if message.text:
            data.update(caption=message.text, parse_mode="MarkdownV2")
        try:
            response = requests.post(self._endpoint("sendPhoto"), data=data, files=files, timeout=30)
        except requests.RequestException as e:
            raise RuntimeError(f"Bot API sendPhoto unreachable: {e}") from e
        if response.status_code >= 400:
            raise RuntimeError(f"Bot API sendPhoto error {response.status_code}: {response.text}")

    async def _send_message(self, chat_id: str, message: OutgoingMessage) -> None:
        if message.photo is not None:
            self._post_photo_file(chat_id, message)
        elif message.photo_url:
            self._post_json(
                "sendPhoto",
                {
                    "chat_id": chat_id,
                    "photo": message.photo_url,
                    "caption": message.text,
                    "parse_mode": "MarkdownV2",
                },
            )
        else:
            self._post_json(
                "sendMessage",
                {
                    "chat_id": chat_id,
                    "text": message.text,
                    "parse_mode": "MarkdownV2",
                    "disable_web_page_preview": True,
                },
            )
