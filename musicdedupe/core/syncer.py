"""Non-destructive output: copy surviving files into the output directory.

Planning and copying are separate steps. ``plan_sync`` picks a free name for
every survivor without touching the disk; ``execute_sync`` performs the copies
and never overwrites an existing file.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from musicdedupe.core.filenames import canonical_name, with_count_suffix
from musicdedupe.core.media import MediaRecord
from musicdedupe.errors import classify_exception

logger = logging.getLogger(__name__)


@dataclass
class SyncItem:
    """A single file copy operation."""
    source: Path
    dest: Path
    status: str = "pending"  # pending, copied, error
    error: str = ""
    renamed: bool = False


@dataclass
class SyncPlan:
    """The full plan for an output run."""
    dest_dir: Path
    items: list[SyncItem] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def to_copy(self) -> int:
        return sum(1 for i in self.items if i.status == "pending")

    @property
    def copied(self) -> int:
        return sum(1 for i in self.items if i.status == "copied")

    @property
    def renamed(self) -> int:
        return sum(1 for i in self.items if i.renamed)

    @property
    def errors(self) -> int:
        return sum(1 for i in self.items if i.status == "error")


def free_destination(dest_dir: Path, name: str, reserved: set[Path]) -> Path:
    """First of ``name``, ``name(1)``, ``name(2)``... not on disk or reserved."""
    candidate = dest_dir / name
    count = 0
    while candidate in reserved or candidate.exists():
        count += 1
        candidate = dest_dir / with_count_suffix(name, count)
    return candidate


def _copy_exclusive(source: Path, dest: Path) -> None:
    """Copy into a new file; a partial copy is removed before re-raising."""
    with open(source, "rb") as fsrc, open(dest, "xb") as fdst:
        try:
            shutil.copyfileobj(fsrc, fdst)
        except OSError:
            fdst.close()
            dest.unlink(missing_ok=True)
            raise
    try:
        shutil.copystat(source, dest)
    except OSError as exc:
        logger.warning("could not copy file times for %s: %s", dest, exc)


class SyncManager:
    """Plans and executes non-destructive file copy operations."""

    def plan_sync(self, records: Iterable[MediaRecord], dest_dir: str | Path) -> SyncPlan:
        """Choose a destination for every record.

        Names already on disk and names taken earlier in this plan are both
        treated as occupied.
        """
        dest_dir = Path(dest_dir)
        plan = SyncPlan(dest_dir=dest_dir)
        reserved: set[Path] = set()

        for record in records:
            name = canonical_name(record.source_path)
            dest = free_destination(dest_dir, name, reserved)
            reserved.add(dest)
            plan.items.append(
                SyncItem(source=record.source_path, dest=dest, renamed=dest.name != name)
            )
            logger.debug("planned %s -> %s", record.source_path, dest)

        return plan

    def execute_sync(self, plan: SyncPlan,
                     progress_cb: Callable[[int, int, str], None] | None = None,
                     *, dry_run: bool = False) -> SyncPlan:
        """Execute the copy operations in the plan.

        A failing item is marked ``error`` and the remaining items are still
        attempted. In ``dry_run`` mode nothing is written.
        """
        pending = [item for item in plan.items if item.status == "pending"]

        for i, item in enumerate(pending):
            if progress_cb:
                progress_cb(i + 1, len(pending), item.source.name)

            logger.debug("copy file from %s\n            to %s", item.source, item.dest)
            if dry_run:
                continue

            try:
                item.dest.parent.mkdir(parents=True, exist_ok=True)
                _copy_exclusive(item.source, item.dest)
                item.status = "copied"
            except OSError as e:
                error = classify_exception(e, item.source)
                item.status = "error"
                item.error = str(e)
                logger.error(
                    "copy failed: %s -> %s: %s (%s)",
                    item.source, item.dest, e, error.code.name,
                )

        return plan
