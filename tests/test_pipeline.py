from __future__ import annotations

import asyncio
from typing import List

from core.config import embed_budget
from core.models import ChangeRecord, EpisodeRangeEntry
from core.newsletter import NewsletterBuilder
from factories import LIBRARY_NAMES, FakeRenderer, all_events_filter, movie
from pipeline import Channel, build_all, run_cycle, send_test


class FakeStore:
    def __init__(self, records: List[ChangeRecord]) -> None:
        self.records = list(records)
        self.loads = 0
        self.archived = False

    def load_records(self) -> List[ChangeRecord]:
        self.loads += 1
        return list(self.records)

    def is_populated(self) -> bool:
        return bool(self.records)

    def archive_current(self) -> int:
        self.archived = True
        count = len(self.records)
        self.records = []
        return count


class FakeSender:
    def __init__(self, name: str, fail: bool = False, delivered: bool = True) -> None:
        self.name = name
        self.fail = fail
        self.delivered = delivered
        self.results = []

    async def send(self, result) -> bool:
        if self.fail:
            raise RuntimeError("Bot API sendMessage error 401: Unauthorized")
        self.results.append(result)
        return self.delivered


def _channel(sender: FakeSender, channel_filter=None) -> Channel:
    builder = NewsletterBuilder(FakeRenderer(), channel_filter or all_events_filter(), embed_budget(), LIBRARY_NAMES)
    return Channel(sender.name, builder, sender)


def test_cycle_sends_to_every_channel_and_archives() -> None:
    store = FakeStore([movie("A"), movie("B")])
    first, second = FakeSender("one"), FakeSender("two")

    report = asyncio.run(run_cycle(store, [_channel(first), _channel(second)]))

    assert report.delivered == ["one", "two"]
    assert report.archived == 2
    assert store.loads == 1
    assert first.results[0].entry_count == 2


def test_failing_channel_does_not_block_the_next_one() -> None:
    store = FakeStore([movie("A")])
    broken, working = FakeSender("broken", fail=True), FakeSender("working")

    report = asyncio.run(run_cycle(store, [_channel(broken), _channel(working)]))

    assert report.failed == ["broken"]
    assert report.delivered == ["working"]
    assert store.archived


def test_snapshot_is_kept_when_nothing_was_delivered() -> None:
    store = FakeStore([movie("A")])

    report = asyncio.run(run_cycle(store, [_channel(FakeSender("broken", fail=True)), _channel(FakeSender("no", delivered=False))]))

    assert report.failed == ["broken", "no"]
    assert report.archived == 0
    assert not store.archived


def test_channels_with_nothing_selected_are_skipped() -> None:
    store = FakeStore([movie("A")])
    quiet = FakeSender("quiet")

    report = asyncio.run(run_cycle(store, [_channel(quiet, all_events_filter(set(), set()))]))

    assert report.skipped == ["quiet"]
    assert quiet.results == []
    assert not store.archived


def test_empty_store_sends_nothing() -> None:
    store = FakeStore([])
    sender = FakeSender("one")

    report = asyncio.run(run_cycle(store, [_channel(sender)]))

    assert report.records == 0
    assert sender.results == []
    assert store.loads == 0


def test_build_all_previews_without_sending() -> None:
    store = FakeStore([movie("A")])
    builder = NewsletterBuilder(FakeRenderer(), all_events_filter(), embed_budget())

    results = build_all(store, [("preview", builder)])

    assert [(name, result.entry_count) for name, result in results] == [("preview", 1)]
    assert not store.archived


def test_sample_newsletter_reaches_every_channel_regardless_of_filter() -> None:
    renderer = FakeRenderer()
    quiet = NewsletterBuilder(renderer, all_events_filter(set(), set()), embed_budget(), LIBRARY_NAMES)
    sender, broken = FakeSender("quiet"), FakeSender("broken", fail=True)
    channels = [Channel("quiet", quiet, sender), _channel(broken)]

    report = asyncio.run(send_test(channels))

    assert report.delivered == ["quiet"]
    assert report.failed == ["broken"]
    assert report.archived == 0
    result = sender.results[0]
    assert [entry.content for chunk in result.chunks for entry in chunk.entries] == [
        "Test Series [add]",
        "Test Movie [update]",
        "Test Series [delete]",
    ]
    assert renderer.ranges[0] == (
        "Test Series",
        tuple(EpisodeRangeEntry(season=season, range="1 - 10") for season in (1, 2, 3)),
    )
    assert result.diagnostics == ()
