"""Telegram message rendering and planning.

Telegram has no multi-entry messages, so every entry is rendered as its own
post. Planning turns one post into the concrete messages that respect the
caption and message length limits.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from adapters.formatting import (
    escape_html,
    escape_markdown_v2,
    event_prefix,
    format_rating,
    item_url,
    season_lines,
)
from core.config import MESSAGE_MAX_CHARS
from core.models import (
    ChangeRecord,
    EpisodeRangeEntry,
    GroupKey,
    ImageAttachment,
    RenderedEntry,
    SectionHeader,
)
from core.newsletter import NewsletterResult
from core.text_split import split_caption, split_text
from settings import TelegramChannelConfig

LOGGER = logging.getLogger(__name__)

ImageLoader = Callable[[ChangeRecord], Optional[ImageAttachment]]

MODES = ("markdown_v2", "html")


@dataclass(frozen=True)
class TelegramPost:
    """Rendered text for one entry plus the poster to show with it."""

    text: str
    photo_url: str = ""


@dataclass(frozen=True)
class OutgoingMessage:
    text: str
    photo_url: str = ""
    photo: Optional[ImageAttachment] = None

    @property
    def is_photo(self) -> bool:
        return bool(self.photo_url or self.photo)


def plan_messages(
    text: str,
    photo_url: str = "",
    photo: Optional[ImageAttachment] = None,
) -> List[OutgoingMessage]:
    """Split a post into a photo message with caption plus text follow-ups.

    Without a photo the text is split at the regular message limit.
    """

    if photo_url or photo is not None:
        caption, follow_ups = split_caption(text)
        messages = [OutgoingMessage(text=caption, photo_url=photo_url, photo=photo)]
        messages.extend(OutgoingMessage(text=piece) for piece in follow_ups)
        return messages
    return [OutgoingMessage(text=piece) for piece in split_text(text, MESSAGE_MAX_CHARS)]


class TelegramMessageRenderer:
    """EntryRenderer producing one Telegram post per entry.

    ``mode`` picks the markup: ``markdown_v2`` for the Bot API and ``html``
    for the Telethon client.
    """

    def __init__(
        self,
        config: TelegramChannelConfig,
        hostname: str,
        server_id: str,
        mode: str = "markdown_v2",
        image_loader: Optional[ImageLoader] = None,
        rating_decimals: int = 1,
    ) -> None:
        if mode not in MODES:
            raise ValueError(f"Unsupported Telegram mode: {mode}")
        self._config = config
        self._hostname = hostname
        self._server_id = server_id
        self._mode = mode
        self._image_loader = image_loader
        self._rating_decimals = rating_decimals

    def _escape(self, value: str) -> str:
        if self._mode == "html":
            return escape_html(value)
        return escape_markdown_v2(value)

    def _title_line(self, title: str, url: str) -> str:
        if self._mode == "html":
            if url:
                return f"<b><a href=\"{escape_html(url)}\">{escape_html(title)}</a></b>"
            return f"<b>{escape_html(title)}</b>"
        if url:
            # Inside (...) only ")" and "\" need escaping.
            target = url.replace("\\", "\\\\").replace(")", "\\)")
            return f"*[{escape_markdown_v2(title)}]({target})*"
        return f"*{escape_markdown_v2(title)}*"

    def _bold(self, value: str) -> str:
        if self._mode == "html":
            return f"<b>{escape_html(value)}</b>"
        return f"*{escape_markdown_v2(value)}*"

    def message_text(
        self,
        record: ChangeRecord,
        ranges: Sequence[EpisodeRangeEntry],
        key: GroupKey,
    ) -> str:
        config = self._config
        url = item_url(self._hostname, record.item_id, self._server_id, key.event_type)
        lines = [self._title_line(record.title or "", url), self._escape(event_prefix(key.event_type)), ""]

        if config.description_enabled and record.overview:
            lines.append(self._escape(record.overview))
        lines.append("")

        episodes = season_lines(ranges)
        if config.episodes_enabled and episodes.strip():
            lines.append(self._bold("Episodes:"))
            lines.append(self._escape(episodes))
            lines.append("")

        if config.rating_enabled:
            rating = format_rating(record.community_rating, self._rating_decimals)
            lines.append(f"Rating: {self._escape(rating)}")
        if config.pg_rating_enabled:
            lines.append(f"PG Rating: {self._escape(record.official_rating or 'N/A')}")
        if config.duration_enabled:
            lines.append(f"Duration: {record.runtime_minutes} min")

        return "\n".join(lines).strip()

    def render_header(self, key: GroupKey) -> SectionHeader:
        # Each post names its own event, so sections carry no text.
        return SectionHeader(group_key=key, content=None, size_bytes=0)

    def render_entry(
        self,
        record: ChangeRecord,
        ranges: Sequence[EpisodeRangeEntry],
        key: GroupKey,
    ) -> RenderedEntry:
        text = self.message_text(record, ranges, key)

        image = None
        photo_url = ""
        if self._config.thumbnail_enabled:
            image = self._image_loader(record) if self._image_loader else None
            if image is None:
                photo_url = record.image_url

        post = TelegramPost(text=text, photo_url=photo_url)
        return RenderedEntry(
            group_key=key,
            content=post,
            size_bytes=len(text.encode("utf-8")),
            image_bytes=image.size if image else 0,
            image=image,
            title=record.title or "",
        )


class TelegramDelivery(ABC):
    """Shared send loop for both Telegram transports.

    Every chat gets every post in order. A failure stops that chat only;
    the remaining chats are still attempted.
    """

    # Pause between messages to stay clear of Telegram flood limits.
    message_delay = 0.1

    def __init__(self, name: str, chat_ids: Sequence[str]) -> None:
        self.name = name
        self._chat_ids = tuple(chat_ids)

    @abstractmethod
    async def _send_message(self, chat_id: str, message: OutgoingMessage) -> None:
        """Send one planned message; raise RuntimeError on failure."""

    async def _send_chat(self, chat_id: str, result: NewsletterResult) -> int:
        sent = 0
        for chunk in result.chunks:
            for entry in chunk.entries:
                post = entry.content
                for message in plan_messages(post.text, post.photo_url, entry.image):
                    await self._send_message(chat_id, message)
                    sent += 1
                    await asyncio.sleep(self.message_delay)
        return sent

    async def send(self, result: NewsletterResult) -> bool:
        """Deliver to every chat; True when at least one chat got everything."""

        delivered = False
        for chat_id in self._chat_ids:
            try:
                sent = await self._send_chat(chat_id, result)
            except RuntimeError as exc:
                LOGGER.error("[%s] Delivery to chat %s failed: %s", self.name, chat_id, exc)
                continue
            LOGGER.info("[%s] Sent %s messages to chat %s", self.name, sent, chat_id)
            delivered = True
        return delivered
