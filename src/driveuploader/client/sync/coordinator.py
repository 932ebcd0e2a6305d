"""Sync coordinator for reconciling the watched folder with Drive.

This module provides:
- SyncCoordinator: Runs reconciliation passes with a single-flight guarantee
- diff_new_entries: Local files absent from the remote listing

The coordinator is the "brain" of the uploader:
1. Receives triggers (from the debounce gate or the initial pass)
2. Guarantees at most one pass runs at a time
3. Remembers triggers that arrive during a pass and runs one follow-up
4. Diffs local files against the remote listing and uploads what is new

State machine:
    | State                | Trigger              | Pass completed          |
    |----------------------|----------------------|-------------------------|
    | IDLE                 | -> RUNNING, run pass | -                       |
    | RUNNING              | -> RUNNING_WITH_PEND | -> IDLE                 |
    | RUNNING_WITH_PENDING | (unchanged)          | -> RUNNING, run again   |
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from driveuploader.client.api import APIError
from driveuploader.client.sync.snapshot import read_local_tree
from driveuploader.client.sync.types import (
    CoordinatorStats,
    LocalEntry,
    LocalIoError,
    SyncState,
    UploadSummary,
)
from driveuploader.client.sync.upload import UploadPipeline

if TYPE_CHECKING:
    from driveuploader.client.api import RemoteFile

logger = logging.getLogger(__name__)


class SyncClient(Protocol):
    """The part of DriveClient the coordinator needs."""

    def list_files(self, folder_id: str) -> list[RemoteFile]:
        """List every file in a folder."""
        ...

    def upload_file(self, folder_id: str, name: str, content: bytes) -> RemoteFile:
        """Upload one file into a folder."""
        ...


def diff_new_entries(
    local: Iterable[LocalEntry],
    remote: Iterable[RemoteFile],
) -> list[LocalEntry]:
    """Get the local entries whose name is not present remotely.

    Names are compared exactly (case-sensitive, no normalization).
    """
    remote_names = {f.name for f in remote}
    return [entry for entry in local if entry.name not in remote_names]


class SyncCoordinator:
    """Single-flight reconciliation of a local folder against a Drive folder.

    trigger() may be called from any thread. The first caller while IDLE runs
    the pass in its own thread; callers arriving while a pass runs only flag
    a follow-up and return. Follow-ups run in a loop in the thread that owns
    the current pass, so however many triggers arrive during a pass, exactly
    one more pass runs after it.

    Usage:
        coordinator = SyncCoordinator(client, watch_path, folder_id)
        coordinator.run_once()              # initial pass
        gate = DebounceGate(coordinator.trigger)
    """

    def __init__(
        self,
        client: SyncClient,
        watch_path: Path,
        folder_id: str,
        folder_name: str | None = None,
        delete_after_upload: bool = False,
        pipeline: UploadPipeline | None = None,
        read_tree: Callable[[Path], list[LocalEntry]] = read_local_tree,
    ) -> None:
        """Initialize the coordinator.

        Args:
            client: Drive client for listing (and uploads via the pipeline).
            watch_path: Local folder being synchronized.
            folder_id: Target Drive folder id.
            folder_name: Folder display name for log messages.
            delete_after_upload: Remove local files after upload and skip the
                remote listing.
            pipeline: Upload pipeline (default: UploadPipeline on client).
            read_tree: Local snapshot reader.
        """
        self._client = client
        self._watch_path = Path(watch_path)
        self._folder_id = folder_id
        self._folder_name = folder_name or folder_id
        self._delete_after_upload = delete_after_upload
        self._pipeline = pipeline or UploadPipeline(client, folder_id)
        self._read_tree = read_tree

        self._state = SyncState.IDLE
        self._lock = threading.Lock()
        self._stats = CoordinatorStats()
        # Set whenever no pass is running
        self._idle = threading.Event()
        self._idle.set()

    @property
    def state(self) -> SyncState:
        """Get current sync state."""
        return self._state

    @property
    def stats(self) -> CoordinatorStats:
        """Get coordinator statistics."""
        return self._stats

    def trigger(self, changed: Iterable[str] = ()) -> int:
        """Request a reconciliation pass.

        Args:
            changed: Paths that caused the trigger (logged only).

        Returns:
            Number of passes run by this call (0 if a pass was already
            running and a follow-up was scheduled instead).
        """
        names = sorted(Path(p).name for p in changed)
        if names:
            logger.info("Sync triggered by the following files: %s", ", ".join(names))

        with self._lock:
            self._stats.triggers_received += 1
            if self._state != SyncState.IDLE:
                if self._state == SyncState.RUNNING_WITH_PENDING:
                    self._stats.triggers_coalesced += 1
                self._state = SyncState.RUNNING_WITH_PENDING
                logger.info("Sync is already running.")
                return 0
            self._state = SyncState.RUNNING
            self._idle.clear()

        return self._run_loop()

    def run_once(self) -> int:
        """Run a pass now (through the single-flight protocol)."""
        return self.trigger()

    def _run_loop(self) -> int:
        """Run passes until no follow-up is pending."""
        passes = 0
        try:
            while True:
                try:
                    self._run_pass()
                except Exception:
                    logger.exception("Error during sync pass")
                    self._stats.errors += 1
                passes += 1
                self._stats.passes_run += 1

                with self._lock:
                    if self._state == SyncState.RUNNING_WITH_PENDING:
                        self._state = SyncState.RUNNING
                        logger.debug("Running follow-up sync pass")
                        continue
                    self._state = SyncState.IDLE
                    self._idle.set()
                    return passes
        except BaseException:
            # Interrupted (e.g. Ctrl+C); a pending follow-up is dropped
            with self._lock:
                self._state = SyncState.IDLE
                self._idle.set()
            raise

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no pass is running.

        Args:
            timeout: Maximum time to wait in seconds (None waits forever).

        Returns:
            True if the coordinator is idle, False on timeout.
        """
        return self._idle.wait(timeout)

    def _run_pass(self) -> UploadSummary | None:
        """Execute one reconciliation pass.

        Returns:
            UploadSummary if uploads were attempted, None otherwise.
        """
        logger.info("Uploading local files to the online folder: %s", self._folder_name)

        try:
            local_entries = self._read_tree(self._watch_path)
        except LocalIoError as e:
            logger.error("Unable to read the local folder: %s", e)
            self._stats.errors += 1
            return None

        remote_files: list[RemoteFile] = []
        # Local copies are removed after upload, so everything present is new
        if not self._delete_after_upload:
            try:
                logger.info("Reading files from folder %s...", self._folder_name)
                remote_files = self._client.list_files(self._folder_id)
            except APIError as e:
                logger.error("Unable to get the file list, skipping this pass: %s", e)
                self._stats.errors += 1
                return None

        new_entries = diff_new_entries(local_entries, remote_files)
        if not new_entries:
            logger.info("No new files found")
            return None

        logger.info("New files found: %d", len(new_entries))
        summary = self._pipeline.run(new_entries, self._delete_after_upload)
        self._stats.files_uploaded += len(summary.uploaded)
        self._stats.upload_failures += len(summary.failed)
        if summary.processed:
            logger.info(
                "Uploading finished: %d uploaded, %d failed",
                len(summary.uploaded),
                len(summary.failed),
            )
        else:
            logger.info("Uploading finished: only empty files found")
        return summary
