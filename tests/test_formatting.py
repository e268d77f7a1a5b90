from __future__ import annotations

from adapters.formatting import (
    badge_style,
    escape_html,
    escape_markdown_v2,
    event_prefix,
    format_rating,
    item_url,
    season_lines,
    section_style,
)
from core.models import EpisodeRangeEntry, EventType


def test_section_titles_name_the_library() -> None:
    assert section_style(EventType.ADD, "Movies")[0] == "Added to Movies"
    assert section_style(EventType.UPDATE, "Shows")[0] == "Updated in Shows"
    assert section_style(EventType.DELETE, "Kids") == ("Removed from Kids", "🗑️", "#F44336")


def test_badges_per_event() -> None:
    assert [badge_style(event)[0] for event in EventType] == ["NEW", "UPDATED", "REMOVED"]


def test_event_prefix_for_messages() -> None:
    assert event_prefix(EventType.ADD) == "🎬 Added to the library"


def test_season_lines_one_per_season() -> None:
    ranges = [EpisodeRangeEntry(1, "1 - 5"), EpisodeRangeEntry(3, "2,4")]

    assert season_lines(ranges) == "Season: 1 - Eps. 1 - 5\nSeason: 3 - Eps. 2,4"
    assert season_lines([]) == ""


def test_rating_formatting() -> None:
    assert format_rating(7.5, 1) == "7.5"
    assert format_rating(8.0, 2) == "8.00"
    assert format_rating(None) == "N/A"


def test_item_url_needs_hostname_and_id() -> None:
    url = item_url("https://media.example.com/", "abc", "srv", EventType.UPDATE)

    assert url == "https://media.example.com/web/index.html#/details?id=abc&serverId=srv&event=update"
    assert item_url("", "abc", "srv", EventType.ADD) == ""
    assert item_url("https://media.example.com", "", "srv", EventType.ADD) == ""


def test_markdown_v2_escapes_every_reserved_character() -> None:
    assert escape_markdown_v2("Mr. Robot (2015) - S1!") == "Mr\\. Robot \\(2015\\) \\- S1\\!"
    assert escape_markdown_v2("a_b*c") == "a\\_b\\*c"
    assert escape_markdown_v2("back\\slash") == "back\\\\slash"
    assert escape_markdown_v2("") == ""


def test_html_escaping() -> None:
    assert escape_html("Tom & Jerry <3") == "Tom &amp; Jerry &lt;3"
    assert escape_html(None) == ""
