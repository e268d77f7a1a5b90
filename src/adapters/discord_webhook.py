"""Discord webhook adapter.

Entries render to embed dicts. Discord caps a webhook message at 10 embeds
and 10 MiB of files, which the embed ``ChunkBudget`` enforces, so each chunk
maps to exactly one webhook call.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from adapters.formatting import format_rating, item_url, season_lines
from core.models import (
    ChangeRecord,
    Chunk,
    EpisodeRangeEntry,
    EventType,
    GroupKey,
    ImageAttachment,
    ItemType,
    RenderedEntry,
    SectionHeader,
)
from core.newsletter import NewsletterResult
from settings import DiscordChannelConfig

LOGGER = logging.getLogger(__name__)

ImageLoader = Callable[[ChangeRecord], Optional[ImageAttachment]]

DEFAULT_COLORS = {
    "movie_add": "#00ff00",
    "movie_update": "#0000ff",
    "movie_delete": "#ff0000",
    "series_add": "#00ff00",
    "series_update": "#0000ff",
    "series_delete": "#ff0000",
}


def embed_color(colors: Dict[str, str], item_type: ItemType, event_type: EventType) -> int:
    """Resolve the configured ``#rrggbb`` colour for a type/event pair."""

    key = f"{'movie' if item_type is ItemType.MOVIE else 'series'}_{event_type.value}"
    raw = colors.get(key) or DEFAULT_COLORS[key]
    return int(raw.lstrip("#"), 16)


def _field(name: str, value: str, inline: bool = True) -> Dict[str, Any]:
    return {"name": name, "value": value, "inline": inline}


class EmbedRenderer:
    """EntryRenderer producing Discord embed dicts."""

    def __init__(
        self,
        config: DiscordChannelConfig,
        hostname: str,
        server_id: str,
        image_loader: Optional[ImageLoader] = None,
        rating_decimals: int = 1,
    ) -> None:
        self._config = config
        self._hostname = hostname
        self._server_id = server_id
        self._image_loader = image_loader
        self._rating_decimals = rating_decimals

    def render_header(self, key: GroupKey) -> SectionHeader:
        # Webhook messages have no section headers; the embed colour carries the event.
        return SectionHeader(group_key=key, content=None, size_bytes=0)

    def _fields(self, record: ChangeRecord, ranges: Sequence[EpisodeRangeEntry]) -> List[Dict[str, Any]]:
        config = self._config
        fields = []
        if config.rating_enabled:
            fields.append(_field("Rating", format_rating(record.community_rating, self._rating_decimals)))
        if config.pg_rating_enabled:
            fields.append(_field("PG rating", record.official_rating or "N/A"))
        if config.duration_enabled:
            fields.append(_field("Duration", f"{record.runtime_minutes} min"))
        episodes = season_lines(ranges)
        if config.episodes_enabled and episodes.strip():
            fields.append(_field("Episodes", episodes, inline=False))
        return fields

    def render_entry(
        self,
        record: ChangeRecord,
        ranges: Sequence[EpisodeRangeEntry],
        key: GroupKey,
    ) -> RenderedEntry:
        config = self._config
        embed: Dict[str, Any] = {
            "title": record.title,
            "color": embed_color(config.colors, key.item_type, key.event_type),
            "fields": self._fields(record, ranges),
        }
        url = item_url(self._hostname, record.item_id, self._server_id, key.event_type)
        if url:
            embed["url"] = url
        if config.description_enabled and record.overview:
            embed["description"] = record.overview

        image = None
        if config.thumbnail_enabled:
            image = self._image_loader(record) if self._image_loader else None
            if image is not None:
                embed["thumbnail"] = {"url": f"attachment://{image.name}"}
            elif record.image_url:
                embed["thumbnail"] = {"url": record.image_url}

        size_bytes = len(json.dumps(embed).encode("utf-8"))
        return RenderedEntry(
            group_key=key,
            content=embed,
            size_bytes=size_bytes,
            image_bytes=image.size if image else 0,
            image=image,
            title=record.title or "",
        )


class DiscordWebhookSender:
    """ChannelSender posting one webhook message per chunk."""

    def __init__(self, config: DiscordChannelConfig, session: Optional[requests.Session] = None) -> None:
        self.name = f"discord:{config.name}"
        self._config = config
        self._session = session or requests.Session()

    def build_payload(self, chunk: Chunk) -> Dict[str, Any]:
        timestamp = datetime.now(timezone.utc).isoformat()
        embeds = [dict(entry.content, timestamp=timestamp) for entry in chunk.entries]
        return {"username": self._config.webhook_name, "embeds": embeds}

    def _post(self, chunk: Chunk) -> None:
        payload = self.build_payload(chunk)
        images = chunk.images
        if images:
            # Field names must match the attachment:// names used in the embeds.
            files = {
                image.name: (image.name, image.data, image.content_type) for image in images
            }
            response = self._session.post(
                self._config.webhook_url,
                data={"payload_json": json.dumps(payload)},
                files=files,
                timeout=30,
            )
        else:
            response = self._session.post(self._config.webhook_url, json=payload, timeout=30)

        if response.status_code >= 400:
            raise RuntimeError(f"Discord webhook error {response.status_code}: {response.text}")

    async def send(self, result: NewsletterResult) -> bool:
        """Post every chunk in order; raises on the first failed call."""

        for index, chunk in enumerate(result.chunks, start=1):
            self._post(chunk)
            LOGGER.info(
                "[%s] Posted message %s of %s (%s embeds)",
                self.name,
                index,
                len(result.chunks),
                chunk.entry_count,
            )
        return bool(result.chunks)
