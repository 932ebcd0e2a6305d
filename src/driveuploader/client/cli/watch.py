"""Watch command for driveuploader CLI.

Commands:
- watch: Upload new files from a folder as they appear
"""

from __future__ import annotations

import sys
import time
from pathlib import Path

import click

from driveuploader.client.api import AuthenticationError
from driveuploader.client.cli.config import load_connection_config, save_credentials
from driveuploader.client.sync.service import start_watch
from driveuploader.client.sync.watcher import DEFAULT_QUIET_PERIOD_S
from driveuploader.core.config import ConfigError


def _wait_forever() -> None:
    while True:
        time.sleep(1.0)


@click.command()
@click.option(
    "--folder",
    "-f",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="The path of the watched folder.",
)
@click.option(
    "--delete-after-upload",
    is_flag=True,
    help="Delete file after successful upload.",
)
@click.option(
    "--delay",
    type=float,
    default=DEFAULT_QUIET_PERIOD_S,
    show_default=True,
    help="Seconds without changes before a sync runs.",
)
def watch(folder: Path | None, delete_after_upload: bool, delay: float) -> None:
    """Start watching the folder for new files.

    Runs one sync immediately, then uploads new files whenever the
    folder changes. Press Ctrl+C to stop.
    """
    config = load_connection_config()

    if folder is None:
        if not config.watch_folder:
            click.echo("Error: --folder is mandatory option for watch command", err=True)
            sys.exit(1)
        folder = Path(config.watch_folder)
    delete_after_upload = delete_after_upload or config.delete_after_upload

    try:
        session = start_watch(
            config,
            folder,
            delete_after_upload=delete_after_upload,
            quiet_period_s=delay,
            on_credentials_refreshed=save_credentials,
        )
    except (AuthenticationError, ConfigError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"\nWatching {session.watcher.watch_path} for changes... (Ctrl+C to stop)\n")
    try:
        _wait_forever()
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    finally:
        session.stop()
