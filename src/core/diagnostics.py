"""Recoverable anomalies reported by the core.

The core never raises on bad data. Each stage returns its primary output
together with a list of diagnostics so callers can log them and carry on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

LOGGER = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    MALFORMED_RECORD = "MalformedRecord"
    RANGE_COMPACTION_ANOMALY = "RangeCompactionAnomaly"
    CHUNK_OVERFLOW = "ChunkOverflow"


@dataclass(frozen=True)
class Diagnostic:
    """One anomaly, with enough context to find the offending input."""

    kind: DiagnosticKind
    message: str
    title: Optional[str] = None
    season: Optional[int] = None


def malformed_record(message: str, title: Optional[str] = None) -> Diagnostic:
    return Diagnostic(DiagnosticKind.MALFORMED_RECORD, message, title=title)


def range_anomaly(message: str, season: int, title: Optional[str] = None) -> Diagnostic:
    return Diagnostic(DiagnosticKind.RANGE_COMPACTION_ANOMALY, message, title=title, season=season)


def chunk_overflow(message: str, title: Optional[str] = None) -> Diagnostic:
    return Diagnostic(DiagnosticKind.CHUNK_OVERFLOW, message, title=title)


@dataclass
class DiagnosticLog:
    """Append-only collector threaded through one aggregation pass."""

    items: List[Diagnostic] = field(default_factory=list)

    def add(self, diagnostic: Diagnostic) -> None:
        LOGGER.debug("%s: %s", diagnostic.kind.value, diagnostic.message)
        self.items.append(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.add(diagnostic)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


def log_diagnostics(diagnostics: Iterable[Diagnostic], logger: logging.Logger, channel: str) -> None:
    """Log diagnostics at a level matching how surprising they are."""

    for diagnostic in diagnostics:
        if diagnostic.kind is DiagnosticKind.RANGE_COMPACTION_ANOMALY:
            logger.info("[%s] %s: %s", channel, diagnostic.kind.value, diagnostic.message)
        else:
            logger.warning("[%s] %s: %s", channel, diagnostic.kind.value, diagnostic.message)
