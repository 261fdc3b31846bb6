"""One deduplication run: scan, extract, resolve, plan, commit."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from musicdedupe.core.duplicate_finder import (
    DEFAULT_DURATION_TOLERANCE_MS,
    Resolution,
    resolve,
)
from musicdedupe.core.media import MediaRecord
from musicdedupe.core.scanner import AUDIO_EXTENSIONS, FileScanner
from musicdedupe.core.syncer import SyncManager, SyncPlan
from musicdedupe.core.tagger import MetadataReader
from musicdedupe.errors import DedupeError, classify_exception

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


@dataclass
class ExtractionFailure:
    path: Path
    error: DedupeError


@dataclass
class SessionResult:
    """Everything a resolution pass produced."""

    resolution: Resolution
    scanned: int = 0
    errors: list[ExtractionFailure] = field(default_factory=list)

    @property
    def survivors(self) -> list[MediaRecord]:
        return self.resolution.survivors


class DedupeSession:
    """Owns the resolution state for a single run.

    Extraction may run on ``jobs`` threads, but results are consumed in scan
    order on the calling thread, which alone writes the identifier and title
    maps.
    """

    def __init__(
        self,
        roots: Iterable[str | Path],
        *,
        extensions: Iterable[str] = AUDIO_EXTENSIONS,
        duration_tolerance_ms: int = DEFAULT_DURATION_TOLERANCE_MS,
        jobs: int = 1,
        reader: MetadataReader | None = None,
        sync_manager: SyncManager | None = None,
    ) -> None:
        self._scanner = FileScanner(list(roots), extensions)
        self._duration_tolerance_ms = duration_tolerance_ms
        self._jobs = max(jobs, 1)
        self._reader = reader or MetadataReader()
        self._sync = sync_manager or SyncManager()

    def _extract(self, path: Path) -> MediaRecord | DedupeError:
        try:
            return self._reader.read(path)
        except DedupeError as exc:
            return exc
        except Exception as exc:
            return classify_exception(exc, path)

    def _extract_all(self, paths: list[Path]) -> Iterator[MediaRecord | DedupeError]:
        if self._jobs == 1:
            for path in paths:
                yield self._extract(path)
            return
        with ThreadPoolExecutor(max_workers=self._jobs) as pool:
            yield from pool.map(self._extract, paths)

    def run(self, progress_cb: ProgressCallback | None = None) -> SessionResult:
        """Scan every root, read each file and resolve duplicates."""
        logger.info("scanning files...")
        paths = self._scanner.scan()
        total = len(paths)
        failures: list[ExtractionFailure] = []

        def records() -> Iterator[MediaRecord]:
            for i, (path, outcome) in enumerate(zip(paths, self._extract_all(paths))):
                if progress_cb:
                    progress_cb(i + 1, total, f"Reading tags: {path.name}")
                if isinstance(outcome, DedupeError):
                    failures.append(ExtractionFailure(path, outcome))
                    logger.error("file: %s, error: %s", path, outcome.message)
                    continue
                yield outcome

        resolution = resolve(records(), duration_tolerance_ms=self._duration_tolerance_ms)
        logger.info(
            "%d files scanned, %d kept, %d duplicates, %d errors",
            total, len(resolution.survivors), len(resolution.matches), len(failures),
        )
        return SessionResult(resolution=resolution, scanned=total, errors=failures)

    def plan(self, result: SessionResult, dest_dir: str | Path) -> SyncPlan:
        """Decide where every survivor goes; touches nothing on disk."""
        return self._sync.plan_sync(result.survivors, dest_dir)

    def commit(self, plan: SyncPlan, progress_cb: ProgressCallback | None = None,
               *, dry_run: bool = False) -> SyncPlan:
        """Copy the planned files."""
        return self._sync.execute_sync(plan, progress_cb, dry_run=dry_run)
