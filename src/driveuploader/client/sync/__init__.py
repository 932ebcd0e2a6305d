"""Sync operations for uploading a watched folder to Drive.

Architecture:
    FileWatcher → DebounceGate → SyncCoordinator → UploadPipeline

Components:
- **FileWatcher**: Watches the folder with watchdog, reports changed paths
- **DebounceGate**: Collapses bursts of events into one trigger
- **SyncCoordinator**: Single-flight reconciliation passes (local vs remote)
- **UploadPipeline**: Sequential, failure-isolated uploads
- **RetentionPruner**: One-shot deletion of old remote files

All public symbols are re-exported here.
"""

from driveuploader.client.sync.coordinator import SyncCoordinator, diff_new_entries
from driveuploader.client.sync.prune import RetentionPruner, run_prune
from driveuploader.client.sync.service import WatchSession, start_watch
from driveuploader.client.sync.snapshot import delete_local_files, read_local_tree
from driveuploader.client.sync.types import (
    CoordinatorStats,
    LocalEntry,
    LocalIoError,
    PruneResult,
    SyncError,
    SyncState,
    UploadSummary,
)
from driveuploader.client.sync.upload import UploadPipeline
from driveuploader.client.sync.watcher import (
    DEFAULT_QUIET_PERIOD_S,
    ChangeEventHandler,
    DebounceGate,
    FileWatcher,
)

__all__ = [
    # Types and dataclasses
    "CoordinatorStats",
    "LocalEntry",
    "LocalIoError",
    "PruneResult",
    "SyncError",
    "SyncState",
    "UploadSummary",
    # Snapshot
    "delete_local_files",
    "read_local_tree",
    # Coordinator & pipeline
    "SyncCoordinator",
    "UploadPipeline",
    "diff_new_entries",
    # Watcher
    "DEFAULT_QUIET_PERIOD_S",
    "ChangeEventHandler",
    "DebounceGate",
    "FileWatcher",
    # Service
    "WatchSession",
    "start_watch",
    # Retention
    "RetentionPruner",
    "run_prune",
]
