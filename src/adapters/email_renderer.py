"""HTML rendering for the email channel.

Each entry is rendered once, up front, so its exact UTF-8 size is known
before packing. Attached posters are charged at their base64 size because
that is what they cost inside the MIME message.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, Optional, Sequence

from adapters.formatting import (
    badge_style,
    escape_html,
    format_rating,
    item_url,
    season_lines,
    section_style,
)
from core.config import base64_size
from core.models import (
    ChangeRecord,
    EpisodeRangeEntry,
    GroupKey,
    ImageAttachment,
    RenderedEntry,
    SectionHeader,
)

LOGGER = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

ImageLoader = Callable[[ChangeRecord], Optional[ImageAttachment]]

DEFAULT_BODY_TEMPLATE = """<html>
<body style='background-color: #1e1e1e; color: #ddd; font-family: sans-serif;'>
<table style='width: 100%; max-width: 800px; margin: auto;'>
{EntryData}
</table>
</body>
</html>
"""

DEFAULT_ENTRY_TEMPLATE = """
<tr>
    <td style='width: 160px; padding: 10px; vertical-align: top;'>
        <a href='{ItemURL}'><img src='{ImageURL}' style='width: 150px;' alt='{Title}'></a>
    </td>
    <td style='padding: 10px; vertical-align: top;'>
        <h3 style='margin: 0;'>{Title} ({PremiereYear}) {EventBadge}</h3>
        <p>{SeasonEpsInfo}</p>
        <p>{SeriesOverview}</p>
        <p style='font-size: 0.85em;'>Rating: {CommunityRating} | {OfficialRating} | {RunTime} min</p>
    </td>
</tr>"""


def _header_html(key: GroupKey) -> str:
    title, emoji, color = section_style(key.event_type, key.library_name)
    return f"""
        <tr>
            <td colspan='2' style='padding: 20px 10px 10px 10px;'>
                <h2 style='color: {color}; margin: 0; font-size: 1.8em; border-bottom: 2px solid {color}; padding-bottom: 10px;'>
                   <span style='margin-right: 4px;'>{emoji}</span> {escape_html(title)}
                </h2>
            </td>
        </tr>"""


def _badge_html(key: GroupKey) -> str:
    label, emoji, color = badge_style(key.event_type)
    return (
        f"<span style='display: inline-block; background-color: {color}; color: white; "
        f"padding: 4px 8px; border-radius: 4px; font-size: 0.75em; font-weight: bold; "
        f"margin-left: 8px;'>{emoji} {label}</span>"
    )


def fill_template(template: str, values: Dict[str, str]) -> str:
    """Replace ``{Placeholder}`` tokens in one pass; unknown ones are left alone.

    Substituted values are never scanned again, so a title containing
    ``{Title}`` stays literal.
    """

    return _PLACEHOLDER.sub(lambda match: values.get(match.group(1), match.group(0)), template)


class HtmlEntryRenderer:
    """EntryRenderer producing HTML fragments for one email configuration."""

    def __init__(
        self,
        hostname: str,
        server_id: str,
        entry_template: str = DEFAULT_ENTRY_TEMPLATE,
        image_loader: Optional[ImageLoader] = None,
        rating_decimals: int = 1,
    ) -> None:
        self._hostname = hostname
        self._server_id = server_id
        self._entry_template = entry_template
        self._image_loader = image_loader
        self._rating_decimals = rating_decimals

    def render_header(self, key: GroupKey) -> SectionHeader:
        content = _header_html(key)
        return SectionHeader(group_key=key, content=content, size_bytes=len(content.encode("utf-8")))

    def render_entry(
        self,
        record: ChangeRecord,
        ranges: Sequence[EpisodeRangeEntry],
        key: GroupKey,
    ) -> RenderedEntry:
        image = self._image_loader(record) if self._image_loader else None
        image_src = f"cid:{image.name}" if image else escape_html(record.image_url)

        values = {
            "Title": escape_html(record.title or ""),
            "SeriesOverview": escape_html(record.overview),
            "ImageURL": image_src,
            "ItemID": escape_html(record.item_id),
            "Type": record.item_type.value if record.item_type else "",
            "PremiereYear": escape_html(record.premiere_year),
            "RunTime": str(record.runtime_minutes),
            "OfficialRating": escape_html(record.official_rating or "N/A"),
            "CommunityRating": format_rating(record.community_rating, self._rating_decimals),
            "Season": str(record.season),
            "Episode": str(record.episode),
            "EventBadge": _badge_html(key),
            "SeasonEpsInfo": escape_html(season_lines(ranges)).replace("\n", "<br>"),
            "ItemURL": escape_html(item_url(self._hostname, record.item_id, self._server_id, key.event_type)),
        }
        content = fill_template(self._entry_template, values)

        image_bytes = base64_size(image.size) if image else 0
        size_bytes = len(content.encode("utf-8")) + image_bytes
        LOGGER.debug("Rendered %s (%s): %s bytes", record.title, key.event_type.value, size_bytes)
        return RenderedEntry(
            group_key=key,
            content=content,
            size_bytes=size_bytes,
            image_bytes=image_bytes,
            image=image,
            title=record.title or "",
        )
