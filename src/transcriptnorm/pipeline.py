"""Orchestrator: parse exports -> normalize -> publish table."""

from __future__ import annotations

import hashlib
import logging

from .config import Config
from .export_parser import parse_calls, parse_users
from .models import NormalizationResult
from .normalizer import normalize_calls
from .run_state import RunState
from .table_writer import write_rows

log = logging.getLogger(__name__)


def input_fingerprint(config: Config) -> str:
    """Hash both exports and the settings that change the output."""
    digest = hashlib.sha256()
    for path in (config.calls_path, config.users_path):
        digest.update(path.read_bytes())
        digest.update(b"\0")
    digest.update(",".join(sorted(config.internal_domains)).encode("utf-8"))
    digest.update(config.output_format.encode("utf-8"))
    return digest.hexdigest()


def normalize_inputs(config: Config) -> NormalizationResult:
    """Parse both exports and normalize every call. Raises on malformed input."""
    calls = parse_calls(config.calls_path)
    users = parse_users(config.users_path)
    return normalize_calls(calls, users, config.internal_domains)


def run_normalization(
    config: Config,
    state: RunState,
    *,
    dry_run: bool = False,
) -> NormalizationResult | None:
    """Run a single normalization pass.

    Returns the result that was published, or None when the inputs are
    unchanged since the last run and nothing was written. The output is only
    replaced once every call has been normalized; a parse error propagates and
    leaves the previous output in place.
    """
    for path in (config.calls_path, config.users_path):
        if not path.exists():
            raise FileNotFoundError(f"Export not found: {path}")

    output_path = config.resolved_output_path
    fingerprint = input_fingerprint(config)
    if state.is_current(fingerprint, output_path):
        log.debug("Inputs unchanged since last run, %s is up to date", output_path)
        return None

    result = normalize_inputs(config)

    for rejected in result.rejected:
        log.warning("Call %s rejected: %s", rejected.call_id, rejected.reason)

    write_rows(result.rows, output_path, config.output_format, dry_run=dry_run)

    if not dry_run:
        state.record_run(fingerprint, output_path, len(result.rows), result.rejected)

    log.info(
        "Normalization complete: %d calls written, %d rejected",
        len(result.rows), len(result.rejected),
    )
    return result
