"""Watch service wiring the watcher, debounce gate and coordinator.

This module provides:
- WatchSession: Running watch resources
- start_watch: Validate configuration, start watching, run the initial pass
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from driveuploader.client.api import AuthenticationError, DriveClient
from driveuploader.client.sync.coordinator import SyncClient, SyncCoordinator
from driveuploader.client.sync.watcher import (
    DEFAULT_QUIET_PERIOD_S,
    DebounceGate,
    FileWatcher,
)
from driveuploader.core.config import ConfigError, ConnectionConfig, OAuthCredentials

logger = logging.getLogger(__name__)

DEFAULT_STOP_TIMEOUT_S = 60.0


class WatchSession:
    """Resources of a running watch: watcher, gate and coordinator."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        gate: DebounceGate,
        watcher: FileWatcher,
        client: SyncClient,
        owns_client: bool = False,
    ) -> None:
        self.coordinator = coordinator
        self.gate = gate
        self.watcher = watcher
        self._client = client
        self._owns_client = owns_client

    def stop(self, timeout: float | None = DEFAULT_STOP_TIMEOUT_S) -> None:
        """Stop watching.

        No new pass is scheduled once the watcher and gate are stopped. A pass
        already running is waited for before the Drive client is closed.

        Args:
            timeout: Maximum time to wait for a running pass (None waits forever).
        """
        self.watcher.stop()
        self.gate.stop()
        if not self.coordinator.wait_idle(timeout):
            logger.warning("Sync pass still running after %ss, closing the client", timeout)
        if self._owns_client and isinstance(self._client, DriveClient):
            self._client.close()

    def __enter__(self) -> WatchSession:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()


def start_watch(
    config: ConnectionConfig,
    local_path: Path,
    delete_after_upload: bool = False,
    quiet_period_s: float = DEFAULT_QUIET_PERIOD_S,
    client: SyncClient | None = None,
    on_credentials_refreshed: Callable[[OAuthCredentials], None] | None = None,
) -> WatchSession:
    """Start watching a folder and run the initial pass.

    The watcher starts before the initial pass so changes made during it
    schedule a follow-up pass.

    Args:
        config: Connection settings.
        local_path: Folder to watch.
        delete_after_upload: Remove local files after a successful upload.
        quiet_period_s: Debounce quiet period in seconds.
        client: Drive client (default: a DriveClient built from config).
        on_credentials_refreshed: Passed to the default DriveClient.

    Returns:
        The running WatchSession.

    Raises:
        AuthenticationError: If no credentials are configured.
        ConfigError: If the folder is not configured or local_path is not a
            directory.
    """
    if config.credentials is None:
        raise AuthenticationError(
            "The authentication token is missing. Run 'config' command first."
        )
    folder_id = config.require_folder()

    abs_path = Path(local_path).expanduser().resolve()
    if not abs_path.is_dir():
        raise ConfigError(f"The watched folder does not exist: {abs_path}")

    owns_client = client is None
    drive: SyncClient = client or DriveClient(
        config, on_credentials_refreshed=on_credentials_refreshed
    )

    coordinator = SyncCoordinator(
        drive,
        abs_path,
        folder_id,
        folder_name=config.folder_name,
        delete_after_upload=delete_after_upload,
    )
    gate = DebounceGate(coordinator.trigger, quiet_period_s=quiet_period_s)
    watcher = FileWatcher(abs_path, gate.on_event)

    watcher.start()
    session = WatchSession(coordinator, gate, watcher, drive, owns_client=owns_client)

    try:
        coordinator.run_once()
    except BaseException:
        session.stop()
        raise
    return session
