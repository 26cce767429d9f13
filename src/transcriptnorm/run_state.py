"""Track the last normalization run and which calls it rejected."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from .models import RejectedCall

log = logging.getLogger(__name__)

_DEFAULT_STATE_DIR = Path.home() / ".local" / "share" / "transcriptnorm"
_DEFAULT_STATE_PATH = _DEFAULT_STATE_DIR / "run_state.json"


class RunState:
    """Persistent report of the last completed run."""

    def __init__(self, state_path: Path | None = None):
        self.path = state_path or _DEFAULT_STATE_PATH
        self._state: dict = {}
        self._load()

    def _load(self) -> None:
        if self.path.exists():
            try:
                self._state = json.loads(self.path.read_text(encoding="utf-8"))
                log.debug("Loaded run state from %s", self.path)
            except (json.JSONDecodeError, OSError):
                log.warning("Failed to load run state, starting fresh")
                self._state = {}
        if not isinstance(self._state, dict):
            self._state = {}

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(self._state, indent=2, default=str),
            encoding="utf-8",
        )

    def is_current(self, fingerprint: str, output_path: Path) -> bool:
        """True if the last run used these inputs and its output still exists."""
        if self._state.get("fingerprint") != fingerprint:
            return False
        if self._state.get("output_path") != str(output_path):
            return False
        return output_path.exists()

    def record_run(
        self,
        fingerprint: str,
        output_path: Path,
        written: int,
        rejected: list[RejectedCall],
    ) -> None:
        """Record a completed run."""
        self._state = {
            "fingerprint": fingerprint,
            "output_path": str(output_path),
            "rows_written": written,
            "rejected": [{"call_id": r.call_id, "reason": r.reason} for r in rejected],
            "completed_at": datetime.now(tz=timezone.utc).isoformat(),
        }
        self._save()

    def rejected_calls(self) -> list[RejectedCall]:
        """Calls the last run produced no row for, with the reason."""
        return [
            RejectedCall(call_id=entry["call_id"], reason=entry.get("reason", ""))
            for entry in self._state.get("rejected", [])
        ]

    def clear(self) -> None:
        """Forget the last run so the next one is not skipped."""
        self._state = {}
        self._save()
