"""Publish normalized calls as a table file and render human-readable previews."""

from __future__ import annotations

import csv
import io
import json
import logging
import os
import tempfile
from dataclasses import asdict, fields
from pathlib import Path
from typing import Iterable, Sequence

from .models import NormalizedCall

log = logging.getLogger(__name__)

OUTPUT_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(NormalizedCall))
OUTPUT_FORMATS = ("jsonl", "json", "csv")

# Text column the search index embeds, and the attributes it can filter on
SEARCH_TEXT_COLUMN = "chronological_transcript"
SEARCH_ATTRIBUTES: tuple[str, ...] = (
    "call_id",
    "participants",
    "customer_emails",
    "topics_discussed",
    "company_domains",
    "duration_minutes",
    "speaker_count",
)

_PREVIEW_WIDTH_CAP = 50
_PREVIEW_SAMPLE_ROWS = 50


def search_documents(rows: Iterable[NormalizedCall]) -> list[dict]:
    """Project rows onto the searched text plus the search index attributes."""
    columns = (SEARCH_TEXT_COLUMN, *SEARCH_ATTRIBUTES)
    docs = []
    for row in rows:
        record = asdict(row)
        docs.append({col: record[col] for col in columns})
    return docs


def serialize_rows(rows: Sequence[NormalizedCall], output_format: str) -> str:
    """Serialize rows into the text of an output file."""
    records = [asdict(row) for row in rows]

    match output_format:
        case "jsonl":
            return "".join(json.dumps(r, ensure_ascii=False) + "\n" for r in records)
        case "json":
            return json.dumps(records, indent=2, ensure_ascii=False) + "\n"
        case "csv":
            buf = io.StringIO()
            writer = csv.DictWriter(buf, fieldnames=OUTPUT_COLUMNS, lineterminator="\n")
            writer.writeheader()
            writer.writerows(records)
            return buf.getvalue()
        case _:
            raise ValueError(f"Unknown output format: {output_format!r}")


def write_rows(
    rows: Sequence[NormalizedCall],
    output_path: Path,
    output_format: str = "jsonl",
    *,
    dry_run: bool = False,
) -> Path:
    """Replace the output table with ``rows``. Returns the path written.

    The new content goes to a temporary file beside the target and is renamed
    over it, so readers see either the old table or the new one.
    """
    content = serialize_rows(rows, output_format)

    if dry_run:
        log.info("[DRY RUN] Would write %d rows to %s (%d chars)", len(rows), output_path, len(content))
        return output_path

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=output_path.parent, prefix=f".{output_path.name}.", suffix=".tmp"
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        tmp_path.replace(output_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

    log.info("Wrote %d rows to %s", len(rows), output_path)
    return output_path


def _render_table(records: list[dict], columns: Sequence[str]) -> str:
    widths = []
    for col in columns:
        width = len(col)
        for record in records[:_PREVIEW_SAMPLE_ROWS]:
            width = max(width, len(str(record[col])))
        widths.append(min(width, _PREVIEW_WIDTH_CAP))

    header = "| " + " | ".join(col.ljust(w) for col, w in zip(columns, widths)) + " |"
    separator = "|-" + "-|-".join("-" * w for w in widths) + "-|"
    lines = [header, separator]
    for record in records:
        # Newlines would break the grid
        cells = [
            str(record[col]).replace("\n", " ")[:w].ljust(w)
            for col, w in zip(columns, widths)
        ]
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)


def render_rows(
    rows: Sequence[NormalizedCall],
    columns: Sequence[str] | None = None,
    output_format: str = "table",
) -> str:
    """Render rows for display as a fixed-width table, a JSON envelope or CSV."""
    columns = tuple(columns or OUTPUT_COLUMNS)
    unknown = [c for c in columns if c not in OUTPUT_COLUMNS]
    if unknown:
        raise ValueError(f"Unknown column(s): {', '.join(unknown)}")

    records = [{col: asdict(row)[col] for col in columns} for row in rows]

    if output_format == "json":
        data = [{col: str(value) for col, value in r.items()} for r in records]
        return json.dumps({"row_count": len(records), "data": data}, indent=2)

    if output_format == "csv":
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=columns, lineterminator="\n")
        writer.writeheader()
        writer.writerows(records)
        return buf.getvalue().rstrip("\n")

    if output_format != "table":
        raise ValueError(f"Unknown render format: {output_format!r}")

    output = f"Rows returned: {len(records)}\n\n"
    if not records:
        return output + "No data found."
    return output + _render_table(records, columns)
