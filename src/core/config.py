"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely. Each
delivery channel passes its own filter and budget into every call; nothing
here is global.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import FrozenSet

from core.models import EventType, ItemType

# Reserved per email for MIME envelope, headers and the body template.
EMAIL_OVERHEAD_BYTES = 50000

# Discord webhooks reject more than 10 embeds or 10 MiB of files per message.
EMBED_MAX_ENTRIES = 10
EMBED_MAX_IMAGE_BYTES = 10 * 1024 * 1024

# Telegram Bot API limits, in characters.
MESSAGE_MAX_CHARS = 4096
CAPTION_MAX_CHARS = 1024


@dataclass(frozen=True)
class ChannelFilter:
    """Which records a channel wants to see."""

    on_add: bool = True
    on_update: bool = False
    on_delete: bool = True
    movie_libraries: FrozenSet[str] = field(default_factory=frozenset)
    series_libraries: FrozenSet[str] = field(default_factory=frozenset)

    def event_enabled(self, event_type: EventType) -> bool:
        if event_type is EventType.ADD:
            return self.on_add
        if event_type is EventType.UPDATE:
            return self.on_update
        return self.on_delete

    def library_selected(self, item_type: ItemType, library_id: str) -> bool:
        if item_type is ItemType.MOVIE:
            return library_id in self.movie_libraries
        return library_id in self.series_libraries


@dataclass(frozen=True)
class ChunkBudget:
    """Per-chunk limits. A zero limit means unbounded."""

    max_bytes: int = 0
    overhead_bytes: int = 0
    max_entries_per_chunk: int = 0
    max_image_bytes_per_chunk: int = 0

    def __post_init__(self) -> None:
        for name in (
            "max_bytes",
            "overhead_bytes",
            "max_entries_per_chunk",
            "max_image_bytes_per_chunk",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"ChunkBudget.{name} must be a non-negative int, got {value!r}")


def email_budget(size_mb: int) -> ChunkBudget:
    """Budget for one email part of ``size_mb`` megabytes."""

    if size_mb < 1:
        raise ValueError(f"Email size must be at least 1 MB, got {size_mb}")
    return ChunkBudget(
        max_bytes=size_mb * 1024 * 1024,
        overhead_bytes=EMAIL_OVERHEAD_BYTES,
    )


def embed_budget() -> ChunkBudget:
    """Budget for one chat-embed webhook message."""

    return ChunkBudget(
        max_entries_per_chunk=EMBED_MAX_ENTRIES,
        max_image_bytes_per_chunk=EMBED_MAX_IMAGE_BYTES,
    )


def base64_size(raw_bytes: int) -> int:
    """Size of ``raw_bytes`` once base64-encoded for a MIME attachment."""

    return int(math.ceil(raw_bytes * 4.0 / 3.0))


def direct_message_budget() -> ChunkBudget:
    """Per-message channels send entry by entry, so nothing is packed."""

    return ChunkBudget()
