"""Application settings stored in a YAML file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from musicdedupe.core.duplicate_finder import DEFAULT_DURATION_TOLERANCE_MS
from musicdedupe.core.scanner import AUDIO_EXTENSIONS, normalize_extensions
from musicdedupe.errors import DedupeError, ErrorCode

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class AppSettings:
    """Wraps ``config.yaml`` in the app data directory.

    A missing file means defaults. An unreadable or malformed file raises
    ``DedupeError(CONFIG_INVALID)``.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else self._app_data_dir() / "config.yaml"
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise DedupeError(
                ErrorCode.CONFIG_INVALID,
                path=self._path,
                details={"original": str(exc)},
            ) from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise DedupeError(
                ErrorCode.CONFIG_INVALID,
                message="Expected a mapping at the top of the settings file",
                path=self._path,
            )
        return data

    @property
    def path(self) -> Path:
        return self._path

    # -- output --

    @property
    def output_dir(self) -> str:
        value = self._data.get("output_dir")
        return str(value).strip() if value else ""

    # -- scanning --

    @property
    def extensions(self) -> frozenset[str]:
        raw = self._data.get("extensions")
        if not isinstance(raw, list):
            return AUDIO_EXTENSIONS
        cleaned = normalize_extensions(str(item) for item in raw)
        return cleaned or AUDIO_EXTENSIONS

    @property
    def jobs(self) -> int:
        try:
            value = int(self._data.get("jobs", 1))
        except (TypeError, ValueError):
            return 1
        return max(value, 1)

    # -- resolution --

    @property
    def duration_tolerance_ms(self) -> int:
        raw = self._data.get("duration_tolerance_ms", DEFAULT_DURATION_TOLERANCE_MS)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            return DEFAULT_DURATION_TOLERANCE_MS
        return value if value >= 0 else DEFAULT_DURATION_TOLERANCE_MS

    # -- logging --

    @property
    def log_level(self) -> str:
        raw = str(self._data.get("log_level", "INFO")).strip().upper()
        return raw if raw in _LOG_LEVELS else "INFO"

    # -- helpers --

    @property
    def app_data_dir(self) -> Path:
        path = self._app_data_dir()
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def _app_data_dir() -> Path:
        base = Path(os.environ.get("APPDATA", Path.home() / ".config"))
        return base / "musicdedupe"
