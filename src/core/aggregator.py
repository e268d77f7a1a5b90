"""Record aggregation (core domain).

Filters a flat snapshot of change records for one channel, drops duplicate
``(title, event)`` pairs and orders the survivors into sections:
event (add, update, delete), then movies before series, then library name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from core.config import ChannelFilter
from core.diagnostics import Diagnostic, malformed_record
from core.models import ChangeRecord, EventType, GroupKey

LOGGER = logging.getLogger(__name__)

DEFAULT_LIBRARY_NAME = "Library"


@dataclass(frozen=True)
class AggregationResult:
    records: Tuple[ChangeRecord, ...]
    diagnostics: Tuple[Diagnostic, ...] = ()
    # Every filtered record per (title, event), duplicates included; series
    # episode lists are compacted from these.
    members: Mapping[Tuple[str, EventType], Tuple[ChangeRecord, ...]] = field(default_factory=dict)

    def members_of(self, record: ChangeRecord) -> Tuple[ChangeRecord, ...]:
        return self.members.get(record.dedup_key, (record,))


def resolve_library_name(library_id: str, library_names: Optional[Mapping[str, str]]) -> str:
    """Map a library id to its display name, falling back to the id."""

    if library_names and library_id in library_names:
        return library_names[library_id]
    return library_id or DEFAULT_LIBRARY_NAME


def group_key_for(record: ChangeRecord, library_names: Optional[Mapping[str, str]] = None) -> GroupKey:
    return GroupKey(
        event_type=record.event_type,
        item_type=record.item_type,
        library_name=resolve_library_name(record.library_id, library_names),
    )


def _validate(record: ChangeRecord) -> Optional[Diagnostic]:
    if not record.title:
        return malformed_record(
            f"Record in library {record.library_id or '?'} has no title; skipped",
        )
    if record.item_type is None:
        return malformed_record(f"Record '{record.title}' has no item type; skipped", title=record.title)
    return None


def aggregate(
    records: Iterable[ChangeRecord],
    channel_filter: ChannelFilter,
    library_names: Optional[Mapping[str, str]] = None,
) -> AggregationResult:
    """Filter, deduplicate and order records for one channel.

    - records whose event is disabled or whose library is not selected for
      their type are dropped
    - the first record for each ``(title, event)`` wins, later ones are
      dropped silently
    - the sort is stable, so ties keep input order
    """

    if channel_filter is None:
        raise TypeError("aggregate() requires a ChannelFilter")

    diagnostics: List[Diagnostic] = []
    survivors: Dict[Tuple[str, EventType], ChangeRecord] = {}
    members: Dict[Tuple[str, EventType], List[ChangeRecord]] = {}

    for record in records:
        problem = _validate(record)
        if problem is not None:
            diagnostics.append(problem)
            continue

        if not channel_filter.event_enabled(record.event_type):
            continue
        if not channel_filter.library_selected(record.item_type, record.library_id):
            continue

        key = record.dedup_key
        members.setdefault(key, []).append(record)
        if key in survivors:
            continue
        survivors[key] = record

    ordered = sorted(
        survivors.values(),
        key=lambda record: group_key_for(record, library_names).sort_key(),
    )
    LOGGER.debug("Aggregated %s records into %s entries", sum(len(v) for v in members.values()), len(ordered))

    return AggregationResult(
        records=tuple(ordered),
        diagnostics=tuple(diagnostics),
        members={key: tuple(value) for key, value in members.items()},
    )


def group_records(
    records: Iterable[ChangeRecord],
    library_names: Optional[Mapping[str, str]] = None,
) -> List[Tuple[GroupKey, List[ChangeRecord]]]:
    """Split an ordered record sequence into consecutive sections.

    Sections are keyed by event and library name, so a movie and a series
    library sharing a name still get separate sections.
    """

    groups: List[Tuple[GroupKey, List[ChangeRecord]]] = []
    for record in records:
        key = group_key_for(record, library_names)
        if groups and groups[-1][0] == key:
            groups[-1][1].append(record)
        else:
            groups.append((key, [record]))
    return groups
