from __future__ import annotations

from typing import List

import pytest

from core.config import ChunkBudget, embed_budget
from core.diagnostics import DiagnosticKind
from core.models import ChangeRecord, EpisodeRangeEntry, EventType
from core.newsletter import NewsletterBuilder
from factories import LIBRARY_NAMES, FakeRenderer, all_events_filter, episode, movie


def _titles(result) -> List[str]:
    return [entry.title for chunk in result.chunks for entry in chunk.entries]


def test_full_pass_orders_dedups_and_compacts() -> None:
    renderer = FakeRenderer()
    builder = NewsletterBuilder(renderer, all_events_filter(), embed_budget(), LIBRARY_NAMES)
    records = [
        episode("Show", 1, 2),
        movie("Gone", event=EventType.DELETE),
        episode("Show", 1, 1),
        movie("Alien"),
        episode("Show", 2, 5),
        movie("Alien"),
    ]

    result = builder.build(records)

    assert _titles(result) == ["Alien", "Show", "Gone"]
    assert dict(renderer.ranges)["Show"] == (
        EpisodeRangeEntry(season=1, range="1 - 2"),
        EpisodeRangeEntry(season=2, range="5"),
    )
    assert dict(renderer.ranges)["Alien"] == ()
    assert result.has_content
    assert result.entry_count == 3


def test_episodes_of_other_events_are_not_mixed_in() -> None:
    renderer = FakeRenderer()
    builder = NewsletterBuilder(renderer, all_events_filter(), ChunkBudget())

    builder.build([episode("Show", 1, 1), episode("Show", 1, 9, event=EventType.DELETE)])

    assert renderer.ranges == [
        ("Show", (EpisodeRangeEntry(season=1, range="1"),)),
        ("Show", (EpisodeRangeEntry(season=1, range="9"),)),
    ]


def test_diagnostics_from_every_stage_are_collected() -> None:
    builder = NewsletterBuilder(FakeRenderer(entry_size=5000), all_events_filter(), ChunkBudget(max_bytes=1000))
    records = [
        ChangeRecord(title=None, item_type=None),
        episode("Show", 1, 1),
        episode("Show", 1, 1),
    ]

    result = builder.build(records)

    kinds = sorted(d.kind.value for d in result.diagnostics)
    assert kinds == sorted(
        [
            DiagnosticKind.MALFORMED_RECORD.value,
            DiagnosticKind.RANGE_COMPACTION_ANOMALY.value,
            DiagnosticKind.CHUNK_OVERFLOW.value,
        ]
    )
    assert _titles(result) == ["Show"]


def test_nothing_selected_yields_no_content() -> None:
    builder = NewsletterBuilder(FakeRenderer(), all_events_filter(set(), set()), embed_budget())

    result = builder.build([movie("Alien")])

    assert result.chunks == ()
    assert not result.has_content


def test_same_snapshot_builds_identical_chunks() -> None:
    records = [movie(f"M{i}") for i in range(25)] + [episode("Show", 1, i) for i in range(1, 6)]

    first = NewsletterBuilder(FakeRenderer(), all_events_filter(), embed_budget()).build(records)
    second = NewsletterBuilder(FakeRenderer(), all_events_filter(), embed_budget()).build(records)

    assert first == second


def test_builder_requires_filter_and_budget() -> None:
    with pytest.raises(TypeError):
        NewsletterBuilder(FakeRenderer(), None, embed_budget())
    with pytest.raises(TypeError):
        NewsletterBuilder(FakeRenderer(), all_events_filter(), None)
