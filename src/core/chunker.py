"""Greedy chunk assembly (core domain).

Packs rendered sections into size-bounded chunks in a single left-to-right
pass. Headers are charged like entries and repeated at the top of every
chunk a section spills into. The same routine serves every channel; only
the ``ChunkBudget`` differs.

An entry that cannot fit even into an otherwise empty chunk is still packed
(entries are never dropped or split) and reported as ``ChunkOverflow``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from core.config import ChunkBudget
from core.diagnostics import Diagnostic, chunk_overflow
from core.models import Chunk, RenderedEntry, RenderedGroup, SectionHeader

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssemblyResult:
    chunks: Tuple[Chunk, ...]
    diagnostics: Tuple[Diagnostic, ...] = ()

    @property
    def entry_count(self) -> int:
        return sum(chunk.entry_count for chunk in self.chunks)


class _OpenChunk:
    """The chunk currently being filled; frozen into a ``Chunk`` on close."""

    def __init__(self) -> None:
        self.parts: List[object] = []
        self.byte_total = 0
        self.image_bytes = 0
        self.entry_count = 0

    @property
    def has_entries(self) -> bool:
        return self.entry_count > 0

    def add_header(self, header: SectionHeader) -> None:
        self.parts.append(header)
        self.byte_total += header.size_bytes

    def add_entry(self, entry: RenderedEntry) -> None:
        self.parts.append(entry)
        self.byte_total += entry.size_bytes
        self.image_bytes += entry.image_bytes
        self.entry_count += 1

    def drop_trailing_header(self) -> None:
        """Remove a header that no entry of its section followed."""

        if self.parts and isinstance(self.parts[-1], SectionHeader):
            header = self.parts.pop()
            self.byte_total -= header.size_bytes

    def freeze(self) -> Chunk:
        return Chunk(parts=tuple(self.parts), byte_total=self.byte_total, image_bytes=self.image_bytes)


def _over_bytes(total: int, budget: ChunkBudget) -> bool:
    return budget.max_bytes > 0 and total + budget.overhead_bytes > budget.max_bytes


def _entry_would_overflow(current: _OpenChunk, entry: RenderedEntry, budget: ChunkBudget) -> bool:
    if _over_bytes(current.byte_total + entry.size_bytes, budget):
        return True
    if budget.max_entries_per_chunk and current.entry_count + 1 > budget.max_entries_per_chunk:
        return True
    if (
        budget.max_image_bytes_per_chunk
        and current.image_bytes + entry.image_bytes > budget.max_image_bytes_per_chunk
    ):
        return True
    return False


def _lone_entry_overflows(current: _OpenChunk, budget: ChunkBudget) -> bool:
    if _over_bytes(current.byte_total, budget):
        return True
    return bool(
        budget.max_image_bytes_per_chunk and current.image_bytes > budget.max_image_bytes_per_chunk
    )


def assemble(groups: Iterable[RenderedGroup], budget: ChunkBudget) -> AssemblyResult:
    """Fold ordered sections into chunks that respect ``budget``.

    Returns an empty result for empty input. Output order matches input
    order and every entry appears exactly once.
    """

    if budget is None:
        raise TypeError("assemble() requires a ChunkBudget")

    chunks: List[Chunk] = []
    diagnostics: List[Diagnostic] = []
    current = _OpenChunk()

    def close() -> None:
        nonlocal current
        current.drop_trailing_header()
        LOGGER.debug(
            "Closing chunk %s: %s entries, %s bytes, %s image bytes",
            len(chunks) + 1,
            current.entry_count,
            current.byte_total,
            current.image_bytes,
        )
        chunks.append(current.freeze())
        current = _OpenChunk()

    for group in groups:
        if not group.entries:
            continue

        header = group.header
        # Sections never start on a chunk that has no room left for the header.
        if current.has_entries and _over_bytes(current.byte_total + header.size_bytes, budget):
            close()
        current.add_header(header)

        for entry in group.entries:
            if current.has_entries and _entry_would_overflow(current, entry, budget):
                close()
                current.add_header(header)

            lone = not current.has_entries
            current.add_entry(entry)

            if lone and _lone_entry_overflows(current, budget):
                diagnostics.append(
                    chunk_overflow(
                        f"Entry '{entry.title}' needs {current.byte_total} bytes "
                        f"({current.image_bytes} image bytes) in a chunk of its own, "
                        "over the configured budget; sent anyway",
                        title=entry.title or None,
                    )
                )

    if current.has_entries:
        close()

    return AssemblyResult(chunks=tuple(chunks), diagnostics=tuple(diagnostics))
