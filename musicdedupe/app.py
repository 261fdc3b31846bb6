"""Command line bootstrap."""

from __future__ import annotations

import argparse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys
from typing import Callable, TextIO

from musicdedupe import __version__
from musicdedupe.config.settings import AppSettings
from musicdedupe.core.session import DedupeSession
from musicdedupe.core.syncer import SyncPlan
from musicdedupe.errors import DedupeError, ErrorCode, format_error_for_user
from musicdedupe.runtime_paths import default_output_dir, is_frozen, program_dir

logger = logging.getLogger("musicdedupe")

CONFIRM_PROMPT = "copy music to output dir? (y/N): "


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="musicdedupe",
        description="Deduplicate downloaded music files and copy the best copy of each track.",
    )
    parser.add_argument(
        "-i", "--input", dest="inputs", action="extend", nargs="+", required=True,
        metavar="DIR", help="input directory to scan (repeatable)",
    )
    parser.add_argument(
        "-o", "--output", default=None, metavar="DIR",
        help="save deduplicated files here (default: dedupe-output beside the program)",
    )
    parser.add_argument(
        "-d", "--dry-run", action="store_true",
        help="write nothing, only show what would be copied",
    )
    parser.add_argument("-y", "--yes", action="store_true", help="do not ask for confirmation")
    parser.add_argument("-j", "--jobs", type=int, default=None, help="metadata reader threads")
    parser.add_argument(
        "--duration-tolerance", type=int, default=None, metavar="MS",
        help="max duration difference for title matches without album (default 1500)",
    )
    parser.add_argument("--config", default=None, metavar="FILE", help="settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _configure_logger(settings: AppSettings, level: str) -> logging.Logger:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(getattr(logging, level, logging.INFO))

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console)

    try:
        log_dir = settings.app_data_dir / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_dir / "musicdedupe.log",
            maxBytes=512_000,
            backupCount=3,
            encoding="utf-8",
        )
    except OSError as exc:
        logger.warning("file logging disabled: %s", exc)
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        logger.addHandler(handler)
    return logger


def prepare_output_dir(path: Path) -> None:
    """Create the output directory or fail before anything is scanned."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DedupeError(
            ErrorCode.CONFIG_OUTPUT_DIR,
            message=f"cannot create output dir: {exc}",
            path=path,
        ) from exc


def confirm(input_fn: Callable[[str], str] = input) -> bool:
    try:
        answer = input_fn(CONFIRM_PROMPT)
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def print_plan(plan: SyncPlan, out: TextIO | None = None) -> None:
    out = out or sys.stdout
    for item in plan.items:
        print(f"copy file from {item.source}\n            to {item.dest}", file=out)


def run_app(argv: list[str] | None = None,
            input_fn: Callable[[str], str] = input) -> int:
    """Parse arguments, run the deduplication and return an exit code."""
    args = build_parser().parse_args(argv)

    try:
        settings = AppSettings(args.config)
    except DedupeError as exc:
        print(format_error_for_user(exc), file=sys.stderr)
        return 1

    _configure_logger(settings, "DEBUG" if args.verbose else settings.log_level)
    logger.debug(
        "startup mode frozen=%s program_dir=%s settings=%s",
        is_frozen(), program_dir(), settings.path,
    )

    if args.output:
        output_dir = Path(args.output)
    elif settings.output_dir:
        output_dir = Path(settings.output_dir).expanduser()
    else:
        output_dir = default_output_dir()

    if not args.dry_run:
        try:
            prepare_output_dir(output_dir)
        except DedupeError as exc:
            logger.error(format_error_for_user(exc))
            return 1

    session = DedupeSession(
        args.inputs,
        extensions=settings.extensions,
        duration_tolerance_ms=(
            args.duration_tolerance if args.duration_tolerance is not None
            else settings.duration_tolerance_ms
        ),
        jobs=args.jobs if args.jobs is not None else settings.jobs,
    )
    result = session.run()

    plan = session.plan(result, output_dir)
    print_plan(plan)

    if args.dry_run:
        print(f"dry run: {plan.total} files would be copied to {output_dir}")
        return 0

    if not args.yes and not confirm(input_fn):
        print("nothing copied")
        return 0

    session.commit(plan)
    print(f"{plan.copied} files copied to {output_dir}, {plan.errors} errors")
    return 0
