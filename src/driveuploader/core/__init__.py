"""Core module - Shared configuration models."""

from driveuploader.core.config import ConfigError, ConnectionConfig, OAuthCredentials

__all__ = [
    "ConfigError",
    "ConnectionConfig",
    "OAuthCredentials",
]
