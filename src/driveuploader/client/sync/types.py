"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, LocalIoError: Exception classes
- LocalEntry: A file found in the watched folder
- SyncState: Single-flight state of the coordinator
- CoordinatorStats: Coordinator counters
- UploadSummary, PruneResult: Operation result dataclasses
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum, auto
from pathlib import Path


class SyncError(Exception):
    """Base exception for sync errors."""


class LocalIoError(SyncError):
    """Failed to read or delete a local file."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


@dataclass(frozen=True)
class LocalEntry:
    """A regular file found under the watched folder.

    Attributes:
        name: File name (basename), used as the Drive name.
        path: Path relative to the watched folder, with forward slashes.
        full_path: Absolute path.
        size: Size in bytes at the time of the scan.
    """

    name: str
    path: str
    full_path: Path
    size: int


class SyncState(IntEnum):
    """Single-flight state of the coordinator.

    - IDLE: No pass running
    - RUNNING: One pass executing
    - RUNNING_WITH_PENDING: One pass executing and a follow-up was requested
    """

    IDLE = auto()
    RUNNING = auto()
    RUNNING_WITH_PENDING = auto()


@dataclass
class CoordinatorStats:
    """Statistics for the coordinator."""

    triggers_received: int = 0
    triggers_coalesced: int = 0
    passes_run: int = 0
    files_uploaded: int = 0
    upload_failures: int = 0
    errors: int = 0


@dataclass
class UploadSummary:
    """Result of one upload batch."""

    uploaded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def processed(self) -> bool:
        """Whether at least one file survived the zero-size filter."""
        return bool(self.uploaded or self.failed)


@dataclass
class PruneResult:
    """Result of a retention run."""

    cutoff: datetime
    matched: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    local_deleted: list[Path] = field(default_factory=list)
    # Set when the folder listing failed and nothing could be checked
    error: str | None = None
