"""Ports (interfaces) used by the newsletter pipeline.

Ports define the minimal contracts for storage, rendering and delivery
adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Protocol, Sequence

from core.models import ChangeRecord, EpisodeRangeEntry, GroupKey, RenderedEntry, SectionHeader

if TYPE_CHECKING:
    from core.newsletter import NewsletterResult


class RecordStore(Protocol):
    """Snapshot storage for the current newsletter cycle."""

    def load_records(self) -> List[ChangeRecord]:
        ...

    def is_populated(self) -> bool:
        ...

    def archive_current(self) -> int:
        """Archive the rows returned by the last ``load_records`` call."""
        ...


class EntryRenderer(Protocol):
    """Channel-specific rendering of headers and entries, with size estimates."""

    def render_header(self, key: GroupKey) -> SectionHeader:
        ...

    def render_entry(
        self,
        record: ChangeRecord,
        ranges: Sequence[EpisodeRangeEntry],
        key: GroupKey,
    ) -> RenderedEntry:
        ...


class ChannelSender(Protocol):
    """Delivery of one channel's newsletter; returns True if anything went out."""

    name: str

    async def send(self, result: NewsletterResult) -> bool:
        ...

