"""Decide which files are the same track and keep the best copy of each.

Records carrying a music id are grouped by that id first. Their survivors,
followed by every record without an id, are then bucketed by exact track
name; inside a bucket, album equality or (when an album is missing) a tight
duration band decides whether two records are the same recording.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from musicdedupe.core.media import MediaRecord

logger = logging.getLogger(__name__)

DEFAULT_DURATION_TOLERANCE_MS = 1500


@dataclass(frozen=True)
class DuplicateMatch:
    """A pair of records judged to be the same track."""

    incoming: MediaRecord
    existing: MediaRecord
    reason: str  # "stable_id" or "heuristic"
    replaced: bool

    @property
    def kept(self) -> MediaRecord:
        return self.incoming if self.replaced else self.existing

    @property
    def discarded(self) -> MediaRecord:
        return self.existing if self.replaced else self.incoming


def _report(match: DuplicateMatch) -> None:
    label = "duplicate music id found" if match.reason == "stable_id" else (
        "probably duplicate music found"
    )
    logger.info(
        "%s:\n -- 1. %s\n -- 2. %s",
        label,
        match.incoming.source_path,
        match.existing.source_path,
    )
    if match.replaced:
        logger.info("    and 1 better than 2")


class IdentityMap:
    """stable_id -> best record seen so far."""

    def __init__(self) -> None:
        self._by_id: dict[int, MediaRecord] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, stable_id: int) -> bool:
        return stable_id in self._by_id

    def get(self, stable_id: int) -> MediaRecord | None:
        return self._by_id.get(stable_id)

    def survivors(self) -> list[MediaRecord]:
        return list(self._by_id.values())

    def add(self, record: MediaRecord) -> DuplicateMatch | None:
        """Insert ``record``, replacing the incumbent only if it is better."""
        if record.stable_id is None:
            raise ValueError(f"record has no stable id: {record.source_path}")
        existing = self._by_id.get(record.stable_id)
        if existing is None:
            self._by_id[record.stable_id] = record
            return None

        replaced = record.better_than(existing)
        if replaced:
            self._by_id[record.stable_id] = record
        match = DuplicateMatch(record, existing, "stable_id", replaced)
        _report(match)
        return match


@dataclass
class TitleMap:
    """track_name -> ordered, mutually distinct records."""

    duration_tolerance_ms: int = DEFAULT_DURATION_TOLERANCE_MS
    _buckets: dict[str, list[MediaRecord]] = field(default_factory=dict)

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._buckets.values())

    def __iter__(self) -> Iterator[MediaRecord]:
        for bucket in self._buckets.values():
            yield from bucket

    def bucket(self, track_name: str) -> list[MediaRecord]:
        return list(self._buckets.get(track_name, []))

    def same_track(self, a: MediaRecord, b: MediaRecord) -> bool:
        """Album equality, or a missing album plus near-equal duration."""
        if a.album is not None and b.album is not None:
            return a.album == b.album
        return abs(a.duration_ms - b.duration_ms) < self.duration_tolerance_ms

    def insert(self, record: MediaRecord) -> None:
        """Append without matching; used for records already deduplicated by id."""
        self._buckets.setdefault(record.track_name, []).append(record)

    def merge(self, record: MediaRecord) -> DuplicateMatch | None:
        """Insert ``record`` unless a bucket entry is the same track.

        When several entries match, the last one in bucket order is the one
        compared against.
        """
        bucket = self._buckets.setdefault(record.track_name, [])
        match_pos: int | None = None
        for pos, existing in enumerate(bucket):
            if self.same_track(existing, record):
                match_pos = pos

        if match_pos is None:
            bucket.append(record)
            return None

        existing = bucket[match_pos]
        replaced = record.better_than(existing)
        if replaced:
            del bucket[match_pos]
            bucket.append(record)
        match = DuplicateMatch(record, existing, "heuristic", replaced)
        _report(match)
        return match


@dataclass
class Resolution:
    """Outcome of one resolution pass."""

    identity: IdentityMap
    titles: TitleMap
    matches: list[DuplicateMatch] = field(default_factory=list)

    @property
    def survivors(self) -> list[MediaRecord]:
        return list(self.titles)


def resolve(
    records: Iterable[MediaRecord],
    *,
    duration_tolerance_ms: int = DEFAULT_DURATION_TOLERANCE_MS,
) -> Resolution:
    """Run both resolution tiers over ``records`` in order."""
    result = Resolution(IdentityMap(), TitleMap(duration_tolerance_ms))
    without_id: list[MediaRecord] = []

    for record in records:
        if record.has_stable_id:
            match = result.identity.add(record)
            if match is not None:
                result.matches.append(match)
        else:
            without_id.append(record)

    for record in result.identity.survivors():
        result.titles.insert(record)

    for record in without_id:
        match = result.titles.merge(record)
        if match is not None:
            result.matches.append(match)

    return result
