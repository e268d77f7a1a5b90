from __future__ import annotations

from typing import List, Sequence

import pytest

from core.chunker import assemble
from core.config import ChunkBudget, email_budget, embed_budget
from core.diagnostics import DiagnosticKind
from core.models import (
    EventType,
    GroupKey,
    ImageAttachment,
    ItemType,
    RenderedEntry,
    RenderedGroup,
    SectionHeader,
)

MOVIES_ADDED = GroupKey(EventType.ADD, ItemType.MOVIE, "Movies")
SHOWS_ADDED = GroupKey(EventType.ADD, ItemType.SERIES, "Shows")


def _entry(title: str, size: int = 100, image_bytes: int = 0, key: GroupKey = MOVIES_ADDED) -> RenderedEntry:
    image = ImageAttachment(name=f"{title}.jpg", data=b"x" * image_bytes) if image_bytes else None
    return RenderedEntry(
        group_key=key,
        content=title,
        size_bytes=size,
        image_bytes=image_bytes,
        image=image,
        title=title,
    )


def _group(entries: Sequence[RenderedEntry], header_size: int = 0, key: GroupKey = MOVIES_ADDED) -> RenderedGroup:
    header = SectionHeader(group_key=key, content=f"== {key.library_name} ==", size_bytes=header_size)
    return RenderedGroup(header=header, entries=tuple(entries))


def _titles(chunk) -> List[str]:
    return [entry.title for entry in chunk.entries]


def test_twelve_entries_with_ten_per_chunk_split_ten_and_two() -> None:
    entries = [_entry(f"Movie {i}") for i in range(12)]

    result = assemble([_group(entries)], ChunkBudget(max_entries_per_chunk=10))

    assert [chunk.entry_count for chunk in result.chunks] == [10, 2]
    assert _titles(result.chunks[0]) + _titles(result.chunks[1]) == [f"Movie {i}" for i in range(12)]
    assert result.diagnostics == ()


def test_section_header_repeats_in_every_chunk_it_spills_into() -> None:
    entries = [_entry(f"E{i}", size=30000) for i in range(1, 4)]

    result = assemble([_group(entries, header_size=5000)], ChunkBudget(max_bytes=50000))

    assert len(result.chunks) == 3
    for index, chunk in enumerate(result.chunks, start=1):
        assert [type(part).__name__ for part in chunk.parts] == ["SectionHeader", "RenderedEntry"]
        assert _titles(chunk) == [f"E{index}"]
        assert chunk.byte_total == 35000


def test_every_entry_appears_once_in_order() -> None:
    groups = [
        _group([_entry(f"M{i}", size=700) for i in range(7)], header_size=200),
        _group([_entry(f"S{i}", size=900, key=SHOWS_ADDED) for i in range(5)], header_size=200, key=SHOWS_ADDED),
    ]
    fed = [entry.title for group in groups for entry in group.entries]

    result = assemble(groups, ChunkBudget(max_bytes=3000, overhead_bytes=500))

    packed = [title for chunk in result.chunks for title in _titles(chunk)]
    assert packed == fed
    assert result.entry_count == len(fed)


def test_chunks_respect_byte_budget_including_overhead() -> None:
    budget = ChunkBudget(max_bytes=3000, overhead_bytes=500)
    groups = [
        _group([_entry(f"M{i}", size=700) for i in range(7)], header_size=200),
        _group([_entry(f"S{i}", size=900, key=SHOWS_ADDED) for i in range(5)], header_size=200, key=SHOWS_ADDED),
    ]

    result = assemble(groups, budget)

    assert len(result.chunks) > 1
    for chunk in result.chunks:
        assert chunk.byte_total + budget.overhead_bytes <= budget.max_bytes


def test_new_section_closes_chunk_without_room_for_its_header() -> None:
    groups = [
        _group([_entry("A", size=900)], header_size=50),
        _group([_entry("B", size=10, key=SHOWS_ADDED)], header_size=100, key=SHOWS_ADDED),
    ]

    result = assemble(groups, ChunkBudget(max_bytes=1000))

    assert [_titles(chunk) for chunk in result.chunks] == [["A"], ["B"]]
    assert result.chunks[1].headers[0].group_key == SHOWS_ADDED


def test_embed_budget_limits_image_bytes() -> None:
    five_mib = 5 * 1024 * 1024
    entries = [_entry(f"P{i}", image_bytes=five_mib) for i in range(3)]

    result = assemble([_group(entries)], embed_budget())

    assert [chunk.entry_count for chunk in result.chunks] == [2, 1]
    for chunk in result.chunks:
        assert chunk.image_bytes <= 10 * 1024 * 1024
        assert len(chunk.images) == chunk.entry_count


def test_oversized_entry_is_kept_alone_and_flagged() -> None:
    entries = [_entry("Small", size=100), _entry("Huge", size=5000), _entry("Tail", size=100)]

    result = assemble([_group(entries, header_size=10)], ChunkBudget(max_bytes=1000))

    assert [_titles(chunk) for chunk in result.chunks] == [["Small"], ["Huge"], ["Tail"]]
    assert [d.kind for d in result.diagnostics] == [DiagnosticKind.CHUNK_OVERFLOW]
    assert result.diagnostics[0].title == "Huge"


def test_missing_images_never_abort_packing() -> None:
    entries = [_entry("No poster"), _entry("Poster", image_bytes=10)]

    result = assemble([_group(entries)], embed_budget())

    assert result.entry_count == 2
    assert [image.name for image in result.chunks[0].images] == ["Poster.jpg"]


def test_empty_input_and_empty_groups_produce_no_chunks() -> None:
    assert assemble([], email_budget(1)).chunks == ()
    assert assemble([_group([], header_size=10)], email_budget(1)).chunks == ()


def test_assembly_is_idempotent() -> None:
    groups = [_group([_entry(f"M{i}", size=400 + i) for i in range(9)], header_size=30)]
    budget = ChunkBudget(max_bytes=1500, overhead_bytes=100)

    assert assemble(groups, budget) == assemble(groups, budget)


def test_zero_limits_mean_one_unbounded_chunk() -> None:
    entries = [_entry(f"M{i}", size=10 ** 7) for i in range(4)]

    result = assemble([_group(entries)], ChunkBudget())

    assert len(result.chunks) == 1
    assert result.diagnostics == ()


def test_assemble_requires_a_budget() -> None:
    with pytest.raises(TypeError):
        assemble([], None)


def test_budget_rejects_negative_limits() -> None:
    with pytest.raises(ValueError):
        ChunkBudget(max_bytes=-1)


def test_chunk_never_ends_on_a_header_without_entries() -> None:
    groups = [
        _group([_entry("Movie0", size=800)], header_size=100),
        _group([_entry("Show0", size=500, key=SHOWS_ADDED)], header_size=100, key=SHOWS_ADDED),
    ]

    result = assemble(groups, ChunkBudget(max_bytes=1200))

    assert len(result.chunks) == 2
    first, second = result.chunks
    assert [type(part).__name__ for part in first.parts] == ["SectionHeader", "RenderedEntry"]
    assert first.byte_total == 900
    assert [type(part).__name__ for part in second.parts] == ["SectionHeader", "RenderedEntry"]
    assert second.headers[0].group_key == SHOWS_ADDED
    assert second.byte_total == 600
