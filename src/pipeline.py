"""One newsletter cycle across every configured channel.

The cycle enforces a strict order:
1) Read one snapshot from the record store
2) For each channel, build its newsletter from that same snapshot
3) Log the pass diagnostics and skip channels with nothing to send
4) Send; a failing channel is logged and the next channel still runs
5) Archive the snapshot only if at least one channel delivered content

Archiving last keeps the snapshot around for a retry when every channel
failed. ``send_test`` runs steps 2 to 4 on a fixed sample instead of the
store, to check that a channel is configured correctly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

from core.config import ChannelFilter
from core.diagnostics import log_diagnostics
from core.models import ChangeRecord, EventType, ItemType
from core.newsletter import NewsletterBuilder, NewsletterResult
from core.ports import ChannelSender, RecordStore

LOGGER = logging.getLogger(__name__)

SAMPLE_LIBRARY = "Test Library"
SAMPLE_IMAGE_URL = "https://raw.githubusercontent.com/Sanidhya30/Jellyfin-Newsletter/refs/heads/master/logo.png"
SAMPLE_OVERVIEW = (
    "Newsletter Lorem ipsum dolor sit amet, consectetur adipiscing elit. "
    "Vestibulum sit amet feugiat lectus. Mauris eu commodo arcu."
)
SAMPLE_FILTER = ChannelFilter(
    on_add=True,
    on_update=True,
    on_delete=True,
    movie_libraries=frozenset({SAMPLE_LIBRARY}),
    series_libraries=frozenset({SAMPLE_LIBRARY}),
)


@dataclass(frozen=True)
class Channel:
    """A configured delivery target: its pass parameters plus its transport."""

    name: str
    builder: NewsletterBuilder
    sender: ChannelSender


@dataclass
class CycleReport:
    records: int = 0
    delivered: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    archived: int = 0


def build_all(
    store: RecordStore,
    builders: Sequence[Tuple[str, NewsletterBuilder]],
) -> List[Tuple[str, NewsletterResult]]:
    """Build every named newsletter from one snapshot without sending."""

    records = store.load_records()
    results = []
    for name, builder in builders:
        result = builder.build(records)
        log_diagnostics(result.diagnostics, LOGGER, name)
        results.append((name, result))
    return results


async def _deliver(channel: Channel, result: NewsletterResult, report: CycleReport) -> None:
    log_diagnostics(result.diagnostics, LOGGER, channel.name)

    if not result.has_content:
        LOGGER.info("[%s] Nothing matches this channel's filter; skipping", channel.name)
        report.skipped.append(channel.name)
        return

    try:
        sent = await channel.sender.send(result)
    except Exception:
        # One broken channel must not block the others.
        LOGGER.exception("[%s] Delivery failed", channel.name)
        report.failed.append(channel.name)
        return

    if sent:
        LOGGER.info(
            "[%s] Delivered %s entries in %s chunks",
            channel.name,
            result.entry_count,
            len(result.chunks),
        )
        report.delivered.append(channel.name)
    else:
        report.failed.append(channel.name)


async def run_cycle(store: RecordStore, channels: Sequence[Channel]) -> CycleReport:
    """Send the current snapshot to every channel, then archive it."""

    report = CycleReport()
    if not store.is_populated():
        LOGGER.info("No new records since the last newsletter; nothing to send")
        return report

    records = store.load_records()
    report.records = len(records)
    LOGGER.info("Loaded %s records for %s channels", len(records), len(channels))

    for channel in channels:
        await _deliver(channel, channel.builder.build(records), report)

    if report.delivered:
        report.archived = store.archive_current()
        LOGGER.info("Archived %s records", report.archived)
    else:
        LOGGER.warning("No channel delivered; keeping %s records for the next cycle", report.records)
    return report


def sample_records() -> List[ChangeRecord]:
    """A fixed newsletter touching every section kind, for checking a channel."""

    series = dict(
        title="Test Series",
        item_type=ItemType.SERIES,
        library_id=SAMPLE_LIBRARY,
        overview=SAMPLE_OVERVIEW,
        image_url=SAMPLE_IMAGE_URL,
        premiere_year="2024",
        runtime_minutes=45,
        official_rating="TV-14",
        community_rating=8.4,
    )
    records = [
        ChangeRecord(season=season, episode=episode, **series)
        for season in (1, 2, 3)
        for episode in range(1, 11)
    ]
    records.append(
        ChangeRecord(
            title="Test Movie",
            item_type=ItemType.MOVIE,
            event_type=EventType.UPDATE,
            library_id=SAMPLE_LIBRARY,
            overview=SAMPLE_OVERVIEW,
            image_url=SAMPLE_IMAGE_URL,
            premiere_year="2024",
            runtime_minutes=120,
            official_rating="PG-13",
            community_rating=7.1,
        )
    )
    records.append(ChangeRecord(event_type=EventType.DELETE, season=1, episode=1, **series))
    return records


async def send_test(channels: Sequence[Channel]) -> CycleReport:
    """Send the sample newsletter through every channel; the store is untouched."""

    records = sample_records()
    report = CycleReport(records=len(records))
    for channel in channels:
        await _deliver(channel, channel.builder.with_filter(SAMPLE_FILTER).build(records), report)
    return report
