"""Prune command for driveuploader CLI.

Commands:
- prune: Delete old files from the Drive folder
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from driveuploader.client.api import AuthenticationError
from driveuploader.client.cli.config import load_connection_config, save_credentials
from driveuploader.client.sync.prune import run_prune
from driveuploader.core.config import ConfigError


@click.command()
@click.option(
    "--folder",
    "-f",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="The path of the watched folder.",
)
@click.option(
    "--keep-days",
    type=click.IntRange(min=0),
    default=None,
    help="Number of days to keep in the online folder.",
)
def prune(folder: Path | None, keep_days: int | None) -> None:
    """Delete old files.

    Removes files created more than --keep-days days ago from the
    online folder, and from --folder when given.
    """
    config = load_connection_config()
    if keep_days is None:
        keep_days = config.keep_days
    if keep_days is None:
        raise click.UsageError("--keep-days is mandatory option for prune command")

    try:
        result = run_prune(
            config,
            keep_days,
            local_path=folder,
            on_credentials_refreshed=save_credentials,
        )
    except (AuthenticationError, ConfigError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if result.error:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)

    if not result.matched:
        click.echo("No files found before the archive date, nothing to delete.")
        return

    click.echo(
        f"Deleted {len(result.deleted)} of {len(result.matched)} files "
        f"created before {result.cutoff:%Y-%m-%d %H:%M}"
    )
    if result.local_deleted:
        click.echo(f"Removed {len(result.local_deleted)} local files")
    if result.failed:
        click.echo(click.style(f"{len(result.failed)} deletions failed", fg="red"))
