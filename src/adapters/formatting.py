"""Shared newsletter formatting helpers.

Keeping formatting here prevents drift between adapters and keeps sections,
badges and episode lists consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from typing import Iterable, Optional, Tuple

from core.models import EpisodeRangeEntry, EventType

_SECTION_STYLE = {
    EventType.ADD: ("Added to {library}", "🎬", "#4CAF50"),
    EventType.UPDATE: ("Updated in {library}", "🔄", "#2196F3"),
    EventType.DELETE: ("Removed from {library}", "🗑️", "#F44336"),
}

_BADGE_STYLE = {
    EventType.ADD: ("NEW", "🎬", "#4CAF50"),
    EventType.UPDATE: ("UPDATED", "🔄", "#2196F3"),
    EventType.DELETE: ("REMOVED", "🗑️", "#F44336"),
}

_EVENT_PREFIX = {
    EventType.ADD: "🎬 Added to the library",
    EventType.UPDATE: "🔄 Updated in the library",
    EventType.DELETE: "🗑️ Removed from the library",
}

# Characters Telegram MarkdownV2 requires to be escaped outside code blocks.
_MARKDOWN_V2_SPECIAL = "\\_*[]()~`>#+-=|{}.!"


def section_style(event_type: EventType, library_name: str) -> Tuple[str, str, str]:
    """Return ``(title, emoji, color)`` for a section header."""

    title, emoji, color = _SECTION_STYLE[event_type]
    return title.format(library=library_name), emoji, color


def badge_style(event_type: EventType) -> Tuple[str, str, str]:
    """Return ``(label, emoji, color)`` for a per-entry event badge."""

    return _BADGE_STYLE[event_type]


def event_prefix(event_type: EventType) -> str:
    return _EVENT_PREFIX[event_type]


def season_lines(ranges: Iterable[EpisodeRangeEntry]) -> str:
    """One ``Season: n - Eps. range`` line per season, newline separated."""

    return "\n".join(f"Season: {entry.season} - Eps. {entry.range}" for entry in ranges)


def format_rating(value: Optional[float], decimals: int = 1) -> str:
    if value is None:
        return "N/A"
    return f"{value:.{decimals}f}"


def item_url(hostname: str, item_id: str, server_id: str, event_type: EventType) -> str:
    """Link to the item's details page, or empty when no hostname is set."""

    if not hostname or not item_id:
        return ""
    base = hostname.rstrip("/")
    return f"{base}/web/index.html#/details?id={item_id}&serverId={server_id}&event={event_type.value}"


def escape_markdown_v2(value: str) -> str:
    if not value:
        return ""
    return "".join(f"\\{ch}" if ch in _MARKDOWN_V2_SPECIAL else ch for ch in value)


def escape_html(value: str) -> str:
    return html.escape(value or "")
