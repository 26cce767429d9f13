"""Watchdog-based daemon that re-runs normalization when an export changes."""

from __future__ import annotations

import logging
import signal
import threading
import time
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import Config
from .pipeline import run_normalization
from .run_state import RunState

log = logging.getLogger(__name__)

_DEBOUNCE_SECONDS = 2.0


class _ExportEventHandler(FileSystemEventHandler):
    """Watches for writes to the calls or users export."""

    def __init__(self, config: Config, state: RunState, *, dry_run: bool = False):
        super().__init__()
        self._config = config
        self._state = state
        self._dry_run = dry_run
        self._watched = {config.calls_path.name, config.users_path.name}
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()
        self._run_lock = threading.Lock()

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle(event, str(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle(event, str(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        # Exports replaced via rename land here
        self._handle(event, str(getattr(event, "dest_path", "")))

    def _handle(self, event: FileSystemEvent, path: str) -> None:
        if event.is_directory:
            return
        if Path(path).name not in self._watched:
            return

        log.debug("Export %s changed, scheduling run in %.1fs", path, _DEBOUNCE_SECONDS)
        self._schedule_run()

    def _schedule_run(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(_DEBOUNCE_SECONDS, self._do_run)
            self._timer.daemon = True
            self._timer.start()

    def _do_run(self) -> None:
        with self._run_lock:
            try:
                run_normalization(self._config, self._state, dry_run=self._dry_run)
            except Exception:
                log.error("Normalization failed", exc_info=True)


def watch(config: Config, state: RunState, *, dry_run: bool = False) -> None:
    """Start watching the export files. Blocks until interrupted."""
    watch_dirs = sorted({config.calls_path.parent, config.users_path.parent})

    for directory in watch_dirs:
        if not directory.exists():
            log.error("Export directory does not exist: %s", directory)
            raise SystemExit(1)

    log.info("Running initial normalization...")
    try:
        run_normalization(config, state, dry_run=dry_run)
    except Exception:
        log.error("Initial normalization failed", exc_info=True)

    handler = _ExportEventHandler(config, state, dry_run=dry_run)
    observer = Observer()
    for directory in watch_dirs:
        observer.schedule(handler, str(directory), recursive=False)

    stop_event = threading.Event()

    def _shutdown(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        log.info("Received %s, shutting down...", sig_name)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    observer.start()
    log.info(
        "Watching %s and %s for changes (Ctrl+C to stop)",
        config.calls_path, config.users_path,
    )

    try:
        while not stop_event.is_set():
            time.sleep(1)
    finally:
        observer.stop()
        observer.join()
        log.info("Watcher stopped")
