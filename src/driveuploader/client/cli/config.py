"""Configuration utilities for driveuploader CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from driveuploader.core.config import ConnectionConfig, OAuthCredentials


def get_config_dir() -> Path:
    """Get the configuration directory for driveuploader.

    Returns:
        Path to ~/.driveuploader or equivalent.
    """
    return Path.home() / ".driveuploader"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text(encoding="utf-8")))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2), encoding="utf-8")


def load_connection_config() -> ConnectionConfig:
    """Load the config file as a ConnectionConfig."""
    return ConnectionConfig.from_dict(load_config())


def save_connection_config(config: ConnectionConfig) -> Path:
    """Save a ConnectionConfig, returning the file written."""
    save_config(config.to_dict())
    return get_config_file()


def save_credentials(credentials: OAuthCredentials) -> None:
    """Persist refreshed tokens without touching other settings."""
    config = load_config()
    config["tokens"] = credentials.to_dict()
    save_config(config)
