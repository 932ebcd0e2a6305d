"""Retention pruning of old files in the Drive folder.

This module provides:
- RetentionPruner: One-shot deletion of remote files older than a cutoff
- run_prune: Validates the configuration and runs the pruner
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from driveuploader.client.api import APIError, AuthenticationError, DriveClient
from driveuploader.client.sync.snapshot import delete_local_files, read_local_tree
from driveuploader.client.sync.types import LocalIoError, PruneResult
from driveuploader.core.config import ConfigError

if TYPE_CHECKING:
    from collections.abc import Callable

    from driveuploader.client.api import RemoteFile
    from driveuploader.core.config import ConnectionConfig, OAuthCredentials

logger = logging.getLogger(__name__)


class PruneClient(Protocol):
    """The part of DriveClient the pruner needs."""

    def list_files(self, folder_id: str) -> list[RemoteFile]:
        """List every file in a folder."""
        ...

    def delete_file(self, file_id: str) -> None:
        """Delete a file."""
        ...


class RetentionPruner:
    """Deletes remote files created before a cutoff, optionally locally too."""

    def __init__(
        self,
        client: PruneClient,
        folder_id: str,
        folder_name: str | None = None,
    ) -> None:
        """Initialize the pruner.

        Args:
            client: Drive client.
            folder_id: Drive folder to prune.
            folder_name: Folder display name for log messages.
        """
        self._client = client
        self._folder_id = folder_id
        self._folder_name = folder_name or folder_id

    def run(
        self,
        keep_days: int,
        local_path: Path | None = None,
        now: datetime | None = None,
    ) -> PruneResult:
        """Delete files older than keep_days.

        Args:
            keep_days: Files created strictly before now - keep_days are deleted.
            local_path: Watched folder; matching local files are removed too.
            now: Reference time (default: current UTC time).

        Returns:
            PruneResult describing what was deleted.
        """
        cutoff = (now or datetime.now(UTC)) - timedelta(days=keep_days)
        result = PruneResult(cutoff=cutoff)
        logger.info("Deleting all files before %s", cutoff.isoformat())

        try:
            remote_files = self._client.list_files(self._folder_id)
        except APIError as e:
            logger.error("Unable to get the file list: %s", e)
            result.error = f"Unable to get the file list: {e}"
            return result

        expired = [
            f for f in remote_files
            if f.created_at is not None and _as_utc(f.created_at) < cutoff
        ]
        result.matched = [f.name for f in expired]
        if not expired:
            logger.info("No files found before the archive date, nothing to delete")
            return result

        logger.info("Found %d files to be deleted", len(expired))
        logger.info(
            "Deleting %d files from the folder %s", len(expired), self._folder_name
        )
        for remote_file in expired:
            try:
                self._client.delete_file(remote_file.id)
            except APIError as e:
                logger.error("Unable to delete %s from the folder: %s", remote_file.name, e)
                result.failed.append(remote_file.name)
                continue
            result.deleted.append(remote_file.name)

        if local_path is not None and result.deleted:
            result.local_deleted = self._delete_local(Path(local_path), set(result.deleted))

        return result

    def _delete_local(self, local_path: Path, names: set[str]) -> list[Path]:
        """Delete local files named like the pruned remote files."""
        abs_path = local_path.resolve()
        logger.info("Removing files from the local path: %s", abs_path)
        try:
            entries = read_local_tree(abs_path)
        except LocalIoError as e:
            logger.warning("Unable to read the local folder: %s", e)
            return []
        return delete_local_files(
            [e.full_path for e in entries if e.name in names], silent=True
        )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def run_prune(
    config: ConnectionConfig,
    keep_days: int | None,
    local_path: Path | None = None,
    client: PruneClient | None = None,
    on_credentials_refreshed: Callable[[OAuthCredentials], None] | None = None,
) -> PruneResult:
    """Validate the configuration and prune the configured folder.

    All checks happen before any API call.

    Args:
        config: Connection settings.
        keep_days: Retention threshold in days (mandatory).
        local_path: Optional watched folder to prune as well.
        client: Drive client (default: a DriveClient built from config).
        on_credentials_refreshed: Passed to the default DriveClient.

    Raises:
        ConfigError: If keep_days or the target folder is missing.
        AuthenticationError: If no credentials are configured.
    """
    if keep_days is None:
        raise ConfigError("--keep-days is mandatory option for prune command")
    if keep_days < 0:
        raise ConfigError("--keep-days must not be negative")
    if config.credentials is None:
        raise AuthenticationError(
            "The authentication token is missing. Run 'config' command first."
        )
    folder_id = config.require_folder()

    owned = client is None
    drive = client or DriveClient(config, on_credentials_refreshed=on_credentials_refreshed)
    try:
        pruner = RetentionPruner(drive, folder_id, config.folder_name)
        return pruner.run(keep_days, local_path=local_path)
    finally:
        if owned and isinstance(drive, DriveClient):
            drive.close()
