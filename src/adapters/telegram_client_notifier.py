"""Telegram delivery through a logged-in Telethon user client.

Useful when no bot is available: posts go out from the user's own account,
either to Saved Messages ("me") or to any chat the account can write to.
"""

from __future__ import annotations

import io
from typing import Sequence

from telethon import errors

from adapters.telegram_messages import OutgoingMessage, TelegramDelivery


def _peer(chat_id: str):
    # Numeric ids must reach Telethon as ints; usernames and "me" stay strings.
    try:
        return int(chat_id)
    except ValueError:
        return chat_id


class TelegramClientNotifier(TelegramDelivery):
    """ChannelSender that posts HTML messages through a Telethon client."""

    def __init__(self, name: str, client, chat_ids: Sequence[str]) -> None:
        super().__init__(name, chat_ids)
        self._client = client

    async def _send_message(self, chat_id: str, message: OutgoingMessage) -> None:
        peer = _peer(chat_id)
        try:
            if message.photo is not None:
                upload = io.BytesIO(message.photo.data)
                upload.name = message.photo.name
                await self._client.send_file(peer, upload, caption=message.text, parse_mode="html")
            elif message.photo_url:
                await self._client.send_file(
                    peer, message.photo_url, caption=message.text, parse_mode="html"
                )
            else:
                await self._client.send_message(
                    peer, message.text, parse_mode="html", link_preview=False
                )
        except (errors.RPCError, ValueError) as exc:
            raise RuntimeError(f"Telegram client send failed: {exc}") from exc
