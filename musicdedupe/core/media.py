"""The per-file record that the resolvers compare."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class MediaRecord:
    """Resolved metadata for one audio file.

    ``stable_id`` is only present when a music id could be recovered; two
    records with the same id are the same logical track. ``bitrate`` is in
    bits per second (0 when unknown), ``duration_ms`` in milliseconds.
    """

    source_path: Path
    track_name: str
    stable_id: int | None = None
    album: str | None = None
    bitrate: int = 0
    duration_ms: int = 0

    def __post_init__(self) -> None:
        if not self.track_name:
            raise ValueError(f"track_name must not be empty: {self.source_path}")
        if self.bitrate < 0 or self.duration_ms < 0:
            raise ValueError(f"bitrate and duration must be non-negative: {self.source_path}")

    @property
    def has_stable_id(self) -> bool:
        return self.stable_id is not None

    def better_than(self, other: MediaRecord) -> bool:
        """Return True if this copy should replace ``other``.

        Higher bitrate wins, then longer duration. Equal pairs keep the
        incumbent.
        """
        return (self.bitrate, self.duration_ms) > (other.bitrate, other.duration_ms)
