"""Command-line interface for transcriptnorm."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import load_config
from .export_parser import ExportFormatError
from .pipeline import normalize_inputs, run_normalization
from .run_state import RunState
from .table_writer import render_rows
from .watcher import watch

_PREVIEW_COLUMNS = (
    "call_id",
    "duration_minutes",
    "speaker_count",
    "participants",
    "topics_discussed",
)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="transcriptnorm",
        description="Flatten call transcript exports into one readable row per call",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to config YAML (default: ~/.config/transcriptnorm/config.yaml)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single normalization pass and exit (no daemon)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Normalize without writing the output table",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Rebuild the output even if the exports are unchanged",
    )
    parser.add_argument(
        "--preview",
        type=int,
        default=0,
        metavar="N",
        help="After a --once run, print the first N rows as a table",
    )

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1) from None

    state = RunState(config.state_path)
    if args.force:
        state.clear()

    if not args.once:
        watch(config, state, dry_run=args.dry_run)
        return

    try:
        result = run_normalization(config, state, dry_run=args.dry_run)
        rows = None
        if args.preview > 0:
            # A skipped run wrote nothing, so rebuild the rows it would have written
            rows = result.rows if result is not None else normalize_inputs(config).rows
    except (ExportFormatError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1) from None

    if result is None:
        print("Everything up to date")
    elif result.rejected:
        print(f"Normalized {len(result.rows)} call(s), {len(result.rejected)} rejected")
    else:
        print(f"Normalized {len(result.rows)} call(s)")

    if rows is not None:
        print(render_rows(rows[: args.preview], _PREVIEW_COLUMNS))
