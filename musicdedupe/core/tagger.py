"""Read the metadata a MediaRecord needs, via music-tag (and mutagen for .ncm)."""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import music_tag
import mutagen

from musicdedupe.core.filenames import strip_count_suffix
from musicdedupe.core.media import MediaRecord
from musicdedupe.core.netease import KEY_PREFIX, decrypt_163_key, unwrap_ncm
from musicdedupe.errors import (
    DedupeError,
    ErrorCode,
    KeyDecodeError,
    classify_exception,
)

logger = logging.getLogger(__name__)


def _str(f: Any, key: str) -> str:
    try:
        val = f[key].first
        return str(val) if val is not None else ""
    except Exception:
        return ""


def _int(f: Any, key: str) -> int:
    try:
        val = f[key].first
        if val is None:
            return 0
        return int(val)
    except Exception:
        return 0


def _float(f: Any, key: str) -> float:
    try:
        val = f[key].first
        if val is None:
            return 0.0
        return float(val)
    except Exception:
        return 0.0


def _first(tags: Any, key: str) -> str:
    """First text value of an easy-mode mutagen tag, or ""."""
    if tags is None:
        return ""
    try:
        values = tags.get(key) or []
    except (KeyError, ValueError):
        return ""
    if isinstance(values, str):
        return values
    for val in values:
        if val:
            return str(val)
    return ""


def iter_tag_texts(tags: Any) -> Iterator[str]:
    """Yield every text value stored in a raw mutagen tag container."""
    if tags is None:
        return
    try:
        values = list(tags.values())
    except (AttributeError, TypeError):
        return
    for value in values:
        texts = getattr(value, "text", value)
        if isinstance(texts, str):
            yield texts
        elif isinstance(texts, (list, tuple)):
            for item in texts:
                if isinstance(item, str):
                    yield item


def find_key_token(texts: Iterable[str]) -> str | None:
    for text in texts:
        if text.startswith(KEY_PREFIX):
            return text
    return None


def fallback_track_name(path: Path) -> str:
    """Track name taken from the file name, minus any ``(n)`` suffix."""
    return strip_count_suffix(path.stem).strip()


class MetadataReader:
    """Builds MediaRecords from audio files.

    Plain files are read with music-tag; ``.ncm`` containers are decoded in
    memory and the decoded stream is parsed with mutagen.
    """

    def read(self, path: str | Path) -> MediaRecord:
        """Extract a MediaRecord from an audio file.

        Raises:
            DedupeError: If the file cannot be read or parsed, or no track
                name can be derived.
        """
        path = Path(path)
        if path.suffix.lower() == ".ncm":
            return self._read_ncm(path)
        return self._read_plain(path)

    def _read_plain(self, path: Path) -> MediaRecord:
        try:
            f = music_tag.load_file(str(path))
        except Exception as exc:
            raise classify_exception(exc, path) from exc
        if f is None:
            raise DedupeError(ErrorCode.TAG_UNSUPPORTED_FORMAT, path=path)

        texts = [_str(f, "comment")]
        mfile = getattr(f, "mfile", None)
        texts.extend(iter_tag_texts(getattr(mfile, "tags", None)))

        return self._build(
            path,
            title=_str(f, "tracktitle"),
            album=_str(f, "album"),
            bitrate=_int(f, "#bitrate"),
            length=_float(f, "#length"),
            stable_id=self._recover_id(path, texts),
        )

    def _read_ncm(self, path: Path) -> MediaRecord:
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise classify_exception(exc, path) from exc

        logger.info("decrypting file: %s", path)
        try:
            content = unwrap_ncm(data)
        except DedupeError as exc:
            exc.path = path
            raise

        try:
            mfile = mutagen.File(io.BytesIO(content.audio), easy=True)
        except Exception as exc:
            raise classify_exception(exc, path) from exc
        if mfile is None:
            raise DedupeError(ErrorCode.TAG_UNSUPPORTED_FORMAT, path=path)

        tags = mfile.tags
        info = mfile.info
        stable_id = content.music_id
        if stable_id is None:
            stable_id = self._recover_id(path, iter_tag_texts(tags))

        return self._build(
            path,
            title=_first(tags, "title") or str(content.meta.get("musicName") or ""),
            album=_first(tags, "album") or str(content.meta.get("album") or ""),
            bitrate=int(getattr(info, "bitrate", 0) or 0),
            length=float(getattr(info, "length", 0.0) or 0.0),
            stable_id=stable_id,
        )

    @staticmethod
    def _recover_id(path: Path, texts: Iterable[str]) -> int | None:
        token = find_key_token(texts)
        if token is None:
            return None
        try:
            return decrypt_163_key(token)
        except KeyDecodeError as exc:
            logger.debug("no music id for %s: %s (%s)", path, exc.message, exc.code.name)
            return None

    @staticmethod
    def _build(
        path: Path,
        *,
        title: str,
        album: str,
        bitrate: int,
        length: float,
        stable_id: int | None,
    ) -> MediaRecord:
        track_name = title or fallback_track_name(path)
        if not track_name:
            raise DedupeError(ErrorCode.TAG_MISSING_REQUIRED, path=path)
        return MediaRecord(
            source_path=path,
            track_name=track_name,
            stable_id=stable_id,
            album=album or None,
            bitrate=max(bitrate, 0),
            duration_ms=max(int(length * 1000), 0),
        )
