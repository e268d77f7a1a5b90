"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any delivery-specific types (HTML, embeds, Markdown).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class EventType(str, Enum):
    """Kind of library change a record describes."""

    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"

    @property
    def rank(self) -> int:
        return _EVENT_RANK[self]

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["EventType"]:
        """Parse a stored event string; a missing value means add."""

        if raw is None or not str(raw).strip():
            return cls.ADD
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return None


class ItemType(str, Enum):
    """Catalog item kind."""

    MOVIE = "Movie"
    SERIES = "Series"

    @property
    def rank(self) -> int:
        return 0 if self is ItemType.MOVIE else 1

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["ItemType"]:
        if raw is None:
            return None
        lowered = str(raw).strip().lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return None


_EVENT_RANK = {EventType.ADD: 0, EventType.UPDATE: 1, EventType.DELETE: 2}


@dataclass(frozen=True)
class ChangeRecord:
    """One library add/update/delete event for a title.

    ``title`` and ``item_type`` may be missing on rows read from storage; the
    aggregator drops such records with a diagnostic instead of failing.
    Descriptive fields are passed through to renderers untouched.
    """

    title: Optional[str]
    item_type: Optional[ItemType]
    event_type: EventType = EventType.ADD
    library_id: str = ""
    season: int = 0
    episode: int = 0
    item_id: str = ""
    overview: str = ""
    image_url: str = ""
    poster_path: str = ""
    premiere_year: str = ""
    runtime_minutes: int = 0
    official_rating: str = ""
    community_rating: Optional[float] = None

    @property
    def is_series(self) -> bool:
        return self.item_type is ItemType.SERIES

    @property
    def dedup_key(self) -> Tuple[Optional[str], EventType]:
        return (self.title, self.event_type)


@dataclass(frozen=True)
class GroupKey:
    """Section key; determines header boundaries and sort order."""

    event_type: EventType
    item_type: ItemType
    library_name: str

    def sort_key(self) -> Tuple[int, int, str]:
        return (self.event_type.rank, self.item_type.rank, self.library_name)


@dataclass(frozen=True)
class EpisodeRangeEntry:
    """Compacted episode list for one season of a title."""

    season: int
    range: str


@dataclass(frozen=True)
class ImageAttachment:
    """Image payload produced by a renderer (inline attachment or upload)."""

    name: str
    data: bytes
    content_type: str = "image/jpeg"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class RenderedEntry:
    """Adapter output for one record.

    The assembler only looks at ``size_bytes``, ``image_bytes`` and
    ``group_key``; ``content`` is whatever the channel serializes later
    (an HTML fragment, an embed dict, a Markdown message).
    """

    group_key: GroupKey
    content: Any
    size_bytes: int
    image_bytes: int = 0
    image: Optional[ImageAttachment] = None
    title: str = ""


@dataclass(frozen=True)
class SectionHeader:
    """Rendered section header, charged against the chunk budget like an entry."""

    group_key: GroupKey
    content: Any
    size_bytes: int


@dataclass(frozen=True)
class RenderedGroup:
    """One section: its header and the entries beneath it, in order."""

    header: SectionHeader
    entries: Tuple[RenderedEntry, ...]


@dataclass(frozen=True)
class Chunk:
    """One size-bounded delivery unit.

    ``parts`` keeps headers and entries interleaved in the order they were
    packed so adapters can serialize the chunk as-is.
    """

    parts: Tuple[Any, ...] = field(default_factory=tuple)
    byte_total: int = 0
    image_bytes: int = 0

    @property
    def entries(self) -> Tuple[RenderedEntry, ...]:
        return tuple(part for part in self.parts if isinstance(part, RenderedEntry))

    @property
    def headers(self) -> Tuple[SectionHeader, ...]:
        return tuple(part for part in self.parts if isinstance(part, SectionHeader))

    @property
    def images(self) -> Tuple[ImageAttachment, ...]:
        return tuple(entry.image for entry in self.entries if entry.image is not None)

    @property
    def entry_count(self) -> int:
        return len(self.entries)
