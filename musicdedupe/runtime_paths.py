"""Runtime path helpers for source and frozen executable modes."""

from __future__ import annotations

from pathlib import Path
import sys

DEFAULT_OUTPUT_DIRNAME = "dedupe-output"


def is_frozen() -> bool:
    """Return True when running from a PyInstaller bundle."""
    return bool(getattr(sys, "frozen", False))


def program_dir() -> Path:
    """Return the directory of the running program.

    For a frozen build this is the folder holding the executable, otherwise
    the folder that contains the `musicdedupe` package.
    """
    if is_frozen():
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent.parent


def default_output_dir() -> Path:
    """Fixed output folder beside the running program."""
    return program_dir() / DEFAULT_OUTPUT_DIRNAME
