"""Disambiguation suffixes: the ``(n)`` a file manager appends to copies.

The grammar is checked by hand: a trailing ``(``, one or more ASCII digits,
then ``)`` at the very end of the stem. Other Unicode decimal digits
(``"Song(٣)"``, Arabic-Indic three) are not treated as a count, so such a
name is left as it is.
"""

from __future__ import annotations

from pathlib import Path

_DIGITS = frozenset("0123456789")


def split_count_suffix(stem: str) -> tuple[str, int | None]:
    """Split ``"Song(2)"`` into ``("Song", 2)``.

    Returns ``(stem, None)`` when the stem does not end in a count suffix.
    """
    if not stem.endswith(")"):
        return stem, None
    open_idx = stem.rfind("(")
    if open_idx < 0:
        return stem, None
    digits = stem[open_idx + 1:-1]
    if not digits or not all(ch in _DIGITS for ch in digits):
        return stem, None
    return stem[:open_idx], int(digits)


def strip_count_suffix(stem: str) -> str:
    """Remove every trailing count suffix and the whitespace before it.

    A stem that would become empty is returned unchanged.
    """
    result = stem
    while True:
        base, count = split_count_suffix(result)
        if count is None:
            break
        base = base.rstrip()
        if not base:
            break
        result = base
    return result


def canonical_name(path: str | Path) -> str:
    """Final path segment with any count suffix removed from its stem."""
    p = Path(path)
    stem = strip_count_suffix(p.stem)
    return f"{stem}{p.suffix}"


def with_count_suffix(name: str, count: int) -> str:
    """``with_count_suffix("Song.mp3", 2) == "Song(2).mp3"``."""
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    p = Path(name)
    return f"{p.stem}({count}){p.suffix}"
