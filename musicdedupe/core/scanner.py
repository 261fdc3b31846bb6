"""Walk directories and find audio files."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from pathlib import Path

AUDIO_EXTENSIONS = frozenset({".wav", ".mp3", ".flac", ".ncm"})


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lowercase and dot-prefix a list of extensions."""
    result = set()
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        result.add(ext if ext.startswith(".") else f".{ext}")
    return frozenset(result)


class FileScanner:
    """Scans one or more directory trees for recognized audio files.

    Symbolic links are followed; unreadable directories are skipped.
    """

    def __init__(
        self,
        roots: str | Path | Iterable[str | Path],
        extensions: Iterable[str] = AUDIO_EXTENSIONS,
    ) -> None:
        if isinstance(roots, (str, Path)):
            roots = [roots]
        self._roots = [Path(r) for r in roots]
        self._extensions = normalize_extensions(extensions)

    @property
    def extensions(self) -> frozenset[str]:
        return self._extensions

    def is_audio(self, path: Path) -> bool:
        return path.suffix.lower() in self._extensions

    def scan(self) -> list[Path]:
        """Return all audio files under the root directories."""
        return list(self.scan_iter())

    def scan_iter(self) -> Iterator[Path]:
        """Yield audio files one at a time (for progress reporting)."""
        for root in self._roots:
            for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
                dirnames.sort()
                for fname in sorted(filenames):
                    p = Path(dirpath) / fname
                    if self.is_audio(p) and p.is_file():
                        yield p
