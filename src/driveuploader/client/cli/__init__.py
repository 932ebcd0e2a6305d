"""Command-line interface for driveuploader.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config: Configure the Google Drive connection
- watch: Watch a folder and upload new files
- prune: Delete old files from the online folder
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from driveuploader.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from driveuploader.client.cli.prune import prune
from driveuploader.client.cli.setup import configure
from driveuploader.client.cli.watch import watch

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(verbose: bool = False, log_path: Path | None = None) -> None:
    """Configure logging to stdout and optionally a file.

    Args:
        verbose: Log DEBUG messages.
        log_path: Optional path to a log file.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("driveuploader")
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


@click.group()
@click.version_option(package_name="driveuploader")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write logs to this file.",
)
def cli(verbose: bool, log_file: Path | None) -> None:
    """driveuploader - Upload new files from a folder to Google Drive."""
    setup_logging(verbose, log_file)


cli.add_command(configure)
cli.add_command(watch)
cli.add_command(prune)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "setup_logging",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
