"""File system watcher with debouncing for sync triggers.

This module provides:
- DebounceGate: Collapses bursts of events into one trigger (3s quiet period)
- ChangeEventHandler: Forwards watchdog events to the gate
- FileWatcher: Watches a directory tree using watchdog
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from watchdog.events import (
    DirModifiedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

DEFAULT_QUIET_PERIOD_S = 3.0


class DebounceGate:
    """Coalesces bursts of change events into a single callback.

    Every on_event() call records the path and restarts the quiet-period
    timer. When the timer elapses the accumulated paths are swapped out under
    the lock and handed to the callback. Events arriving while the callback
    runs start a new set and a new timer.
    """

    def __init__(
        self,
        callback: Callable[[frozenset[str]], object],
        quiet_period_s: float = DEFAULT_QUIET_PERIOD_S,
    ) -> None:
        """Initialize the gate.

        Args:
            callback: Called with the set of changed paths.
            quiet_period_s: Time without events before the callback fires.
        """
        self._callback = callback
        self._quiet_period_s = quiet_period_s

        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        # Identifies the current timer so a superseded one does nothing
        self._generation = 0

    @property
    def quiet_period_s(self) -> float:
        """Get the quiet period in seconds."""
        return self._quiet_period_s

    @property
    def pending(self) -> frozenset[str]:
        """Get a copy of the paths accumulated since the last fire."""
        with self._lock:
            return frozenset(self._pending)

    def on_event(self, path: str) -> None:
        """Record a changed path and restart the quiet-period timer."""
        with self._lock:
            self._pending.add(path)
            self._schedule_fire()

    def _schedule_fire(self) -> None:
        """Restart the timer. Caller holds the lock."""
        if self._timer:
            self._timer.cancel()

        self._generation += 1
        self._timer = threading.Timer(
            self._quiet_period_s, self._fire, args=(self._generation,)
        )
        self._timer.daemon = True
        self._timer.start()

    def _fire(self, generation: int) -> None:
        """Hand the accumulated paths to the callback."""
        with self._lock:
            if generation != self._generation or not self._pending:
                return
            changed = frozenset(self._pending)
            self._pending = set()
            self._timer = None

        try:
            self._callback(changed)
        except Exception:
            logger.exception("Error in debounce callback")

    def flush(self) -> None:
        """Fire immediately if any paths are pending."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._generation += 1
            generation = self._generation
        self._fire(generation)

    def stop(self) -> None:
        """Cancel the pending timer."""
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._generation += 1


class ChangeEventHandler(FileSystemEventHandler):
    """Forwards file system events to a callback.

    Only created, modified, deleted and moved events are handled; access
    events (opened/closed) are ignored so that reading files for upload
    does not trigger another pass.
    """

    def __init__(self, on_change: Callable[[str], None]) -> None:
        super().__init__()
        self._on_change = on_change

    @staticmethod
    def _decode(path: str | bytes) -> str:
        if isinstance(path, bytes):
            return path.decode("utf-8", errors="replace")
        return path

    def _handle_event(self, event: FileSystemEvent) -> None:
        # A directory mtime change always accompanies the child event
        if isinstance(event, DirModifiedEvent):
            return
        self._on_change(self._decode(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle created event."""
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle modified event."""
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle deleted event."""
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moved event."""
        self._handle_event(event)
        dest = getattr(event, "dest_path", None)
        if dest:
            self._on_change(self._decode(dest))


class FileWatcher:
    """Watches a directory tree and reports changed paths."""

    def __init__(
        self,
        watch_path: Path,
        on_change: Callable[[str], None],
    ) -> None:
        """Initialize the file watcher.

        Args:
            watch_path: Directory to watch (recursively).
            on_change: Called with the path of every change, possibly
                several times per logical change.
        """
        self._watch_path = Path(watch_path).resolve()
        if not self._watch_path.is_dir():
            raise ValueError(f"Watch path must be a directory: {watch_path}")

        self._handler = ChangeEventHandler(on_change)
        self._observer: BaseObserver = Observer()
        self._running = False

    @property
    def watch_path(self) -> Path:
        """Get the watched directory path."""
        return self._watch_path

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching for changes."""
        if self._running:
            return

        self._observer.schedule(self._handler, str(self._watch_path), recursive=True)
        self._observer.start()
        self._running = True
        logger.info("Watching %s for changes", self._watch_path)

    def stop(self) -> None:
        """Stop watching for changes."""
        if not self._running:
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def __enter__(self) -> FileWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
