"""One newsletter pass for one channel.

The pass runs in a fixed order:
1) Filter, deduplicate and order the record snapshot
2) Split the ordered records into sections
3) Compact episode ranges for series entries
4) Render headers and entries through the channel's renderer
5) Pack the rendered sections into chunks

Every step is pure apart from the renderer, so running the same snapshot
twice with the same budget yields the same chunks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Tuple

from core.aggregator import aggregate, group_records
from core.chunker import assemble
from core.config import ChannelFilter, ChunkBudget
from core.diagnostics import Diagnostic, DiagnosticLog
from core.episodes import compact_pairs
from core.models import ChangeRecord, Chunk, EpisodeRangeEntry, RenderedGroup
from core.ports import EntryRenderer

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewsletterResult:
    chunks: Tuple[Chunk, ...]
    diagnostics: Tuple[Diagnostic, ...] = ()

    @property
    def has_content(self) -> bool:
        """True when at least one chunk carries an entry."""

        return any(chunk.entry_count for chunk in self.chunks)

    @property
    def entry_count(self) -> int:
        return sum(chunk.entry_count for chunk in self.chunks)


class NewsletterBuilder:
    """Runs aggregation, compaction, rendering and chunking for one channel."""

    def __init__(
        self,
        renderer: EntryRenderer,
        channel_filter: ChannelFilter,
        budget: ChunkBudget,
        library_names: Optional[Mapping[str, str]] = None,
    ) -> None:
        if channel_filter is None or budget is None:
            raise TypeError("NewsletterBuilder requires a ChannelFilter and a ChunkBudget")
        self._renderer = renderer
        self._filter = channel_filter
        self._budget = budget
        self._library_names = dict(library_names or {})

    def with_filter(self, channel_filter: ChannelFilter) -> "NewsletterBuilder":
        """Same renderer and budget, different record selection."""

        return NewsletterBuilder(self._renderer, channel_filter, self._budget, self._library_names)

    def build(self, records: Iterable[ChangeRecord]) -> NewsletterResult:
        """Run one pass over a stable record snapshot."""

        diagnostics = DiagnosticLog()

        aggregation = aggregate(records, self._filter, self._library_names)
        diagnostics.extend(aggregation.diagnostics)

        groups: List[RenderedGroup] = []
        for key, members in group_records(aggregation.records, self._library_names):
            header = self._renderer.render_header(key)
            entries = []
            for record in members:
                ranges: Tuple[EpisodeRangeEntry, ...] = ()
                if record.is_series:
                    pairs = [(item.season, item.episode) for item in aggregation.members_of(record)]
                    compaction = compact_pairs(pairs, title=record.title)
                    diagnostics.extend(compaction.diagnostics)
                    ranges = compaction.entries
                entries.append(self._renderer.render_entry(record, ranges, key))
            groups.append(RenderedGroup(header=header, entries=tuple(entries)))

        assembly = assemble(groups, self._budget)
        diagnostics.extend(assembly.diagnostics)

        LOGGER.debug(
            "Built %s chunks from %s sections (%s entries)",
            len(assembly.chunks),
            len(groups),
            assembly.entry_count,
        )
        return NewsletterResult(chunks=assembly.chunks, diagnostics=tuple(diagnostics))
