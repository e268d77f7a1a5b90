"""Episode range compaction (core domain).

Turns the season/episode numbers collected for one series into short,
human-readable per-season strings:

- one distinct episode renders as the bare number: ``"4"``
- a fully contiguous season renders with the long dash: ``"1 - 5"``
- anything else renders as comma-joined runs: ``"1-2,4-5,7"``

Episodes that arrive out of ascending order, or repeat, are still compacted
(sorted, repeats counted once) and reported as a ``RangeCompactionAnomaly``
so the caller can see the input was not clean.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from core.diagnostics import Diagnostic, range_anomaly
from core.models import EpisodeRangeEntry

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompactionResult:
    entries: Tuple[EpisodeRangeEntry, ...]
    diagnostics: Tuple[Diagnostic, ...] = ()


def _split_runs(sorted_episodes: Sequence[int]) -> List[Tuple[int, int]]:
    """Partition a sorted, distinct sequence into maximal consecutive runs."""

    runs: List[Tuple[int, int]] = []
    start = prev = sorted_episodes[0]
    for episode in sorted_episodes[1:]:
        if episode == prev + 1:
            prev = episode
            continue
        runs.append((start, prev))
        start = prev = episode
    runs.append((start, prev))
    return runs


def format_episode_range(episodes: Iterable[int]) -> str:
    """Return the compact range string for one season's episodes.

    Returns an empty string for an empty input; callers omit such seasons.
    """

    distinct = sorted(set(episodes))
    if not distinct:
        return ""

    first, last = distinct[0], distinct[-1]
    if len(distinct) == 1:
        return str(first)
    if last - first == len(distinct) - 1:
        return f"{first} - {last}"

    parts = []
    for start, end in _split_runs(distinct):
        parts.append(str(start) if start == end else f"{start}-{end}")
    return ",".join(parts)


class _State(Enum):
    NO_SEASON = "no_season"
    IN_SEASON = "in_season"


class SeasonAccumulator:
    """Explicit two-state machine over a season-grouped episode stream.

    Episodes within a season are expected in ascending order. ``feed`` collects episodes while the season stays the same and flushes
    the finished season when it changes; ``finish`` flushes the last one.
    """

    def __init__(self, title: Optional[str] = None) -> None:
        self._title = title
        self._state = _State.NO_SEASON
        self._season: Optional[int] = None
        self._episodes: List[int] = []
        self._entries: List[EpisodeRangeEntry] = []
        self._diagnostics: List[Diagnostic] = []

    def feed(self, season: int, episode: int) -> None:
        if self._state is _State.IN_SEASON and season != self._season:
            self._flush()
        if self._state is _State.NO_SEASON:
            self._season = season
            self._episodes = []
            self._state = _State.IN_SEASON
        self._episodes.append(episode)

    def finish(self) -> CompactionResult:
        if self._state is _State.IN_SEASON:
            self._flush()
        return CompactionResult(entries=tuple(self._entries), diagnostics=tuple(self._diagnostics))

    def _flush(self) -> None:
        season = self._season
        episodes = self._episodes
        self._state = _State.NO_SEASON
        self._season = None
        self._episodes = []

        if season is None or not episodes:
            return

        if any(later < earlier for earlier, later in zip(episodes, episodes[1:])):
            self._diagnostics.append(
                range_anomaly(
                    f"Season {season} episodes arrived out of order {episodes}; sorted",
                    season=season,
                    title=self._title,
                )
            )

        if len(set(episodes)) != len(episodes):
            repeated = sorted({ep for ep in episodes if episodes.count(ep) > 1})
            self._diagnostics.append(
                range_anomaly(
                    f"Season {season} lists repeated episodes {repeated}; counted once",
                    season=season,
                    title=self._title,
                )
            )

        episode_range = format_episode_range(episodes)
        LOGGER.debug("Season %s of %s compacted to %r", season, self._title, episode_range)
        self._entries.append(EpisodeRangeEntry(season=season, range=episode_range))


def compact_pairs(pairs: Iterable[Tuple[int, int]], title: Optional[str] = None) -> CompactionResult:
    """Compact ``(season, episode)`` pairs; seasons may arrive in any order.

    Pairs are grouped by season keeping their arrival order, so an episode
    listed before a lower one of the same season is reported.
    """

    accumulator = SeasonAccumulator(title)
    for season, episode in sorted(pairs, key=lambda pair: pair[0]):
        accumulator.feed(season, episode)
    return accumulator.finish()


def compact(season_episodes: Mapping[int, Iterable[int]], title: Optional[str] = None) -> CompactionResult:
    """Compact a season -> episodes mapping into entries ordered by season.

    Seasons with no episodes are omitted.
    """

    pairs = [
        (season, episode)
        for season, episodes in season_episodes.items()
        for episode in episodes
    ]
    return compact_pairs(pairs, title=title)
