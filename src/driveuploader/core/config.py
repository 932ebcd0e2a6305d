"""Connection configuration for driveuploader.

This module defines the configuration classes shared by the Drive client,
the watch service and the retention pruner.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ConfigError(Exception):
    """A required setting is missing or invalid."""


@dataclass
class OAuthCredentials:
    """OAuth2 tokens for the Drive API.

    Attributes:
        access_token: Short-lived bearer token.
        refresh_token: Long-lived token used to obtain new access tokens.
        expiry_date: Access token expiry in epoch milliseconds (None if unknown).
        token_type: Token type, normally "Bearer".
        scope: Granted scope(s).
    """

    access_token: str | None = None
    refresh_token: str | None = None
    expiry_date: int | None = None
    token_type: str = "Bearer"
    scope: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OAuthCredentials:
        """Create from the stored token dictionary."""
        expiry = data.get("expiry_date")
        return cls(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            expiry_date=int(expiry) if expiry is not None else None,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the config file, dropping unset values."""
        data: dict[str, Any] = {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expiry_date": self.expiry_date,
            "token_type": self.token_type,
            "scope": self.scope,
        }
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class ConnectionConfig:
    """Settings for talking to one Drive folder.

    Loaded once at startup. The coordinator never mutates it; refreshed
    credentials are handed back through DriveClient's callback instead.

    Attributes:
        client_id: OAuth client id.
        client_secret: OAuth client secret.
        credentials: Stored OAuth tokens (None until 'config' has run).
        folder_id: Target Drive folder id.
        folder_name: Target Drive folder display name.
        watch_folder: Default local folder for watch/prune.
        delete_after_upload: Default for the delete-after-upload flag.
        keep_days: Default retention threshold for prune.
    """

    client_id: str | None = None
    client_secret: str | None = None
    credentials: OAuthCredentials | None = None
    folder_id: str | None = None
    folder_name: str | None = None
    watch_folder: str | None = None
    delete_after_upload: bool = False
    keep_days: int | None = None
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConnectionConfig:
        """Create from the config file dictionary."""
        known = {
            "client_id",
            "client_secret",
            "tokens",
            "folder_id",
            "folder_name",
            "watch_folder",
            "delete_after_upload",
            "keep_days",
        }
        tokens = data.get("tokens")
        keep_days = data.get("keep_days")
        return cls(
            client_id=data.get("client_id"),
            client_secret=data.get("client_secret"),
            credentials=OAuthCredentials.from_dict(tokens) if tokens else None,
            folder_id=data.get("folder_id"),
            folder_name=data.get("folder_name"),
            watch_folder=data.get("watch_folder"),
            delete_after_upload=bool(data.get("delete_after_upload", False)),
            keep_days=int(keep_days) if keep_days is not None else None,
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the config file."""
        data: dict[str, Any] = dict(self.extra)
        values: dict[str, Any] = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "tokens": self.credentials.to_dict() if self.credentials else None,
            "folder_id": self.folder_id,
            "folder_name": self.folder_name,
            "watch_folder": self.watch_folder,
            "keep_days": self.keep_days,
        }
        data.update({k: v for k, v in values.items() if v is not None})
        if self.delete_after_upload:
            data["delete_after_upload"] = True
        return data

    def require_folder(self) -> str:
        """Get the target folder id.

        Raises:
            ConfigError: If no folder has been configured.
        """
        if not self.folder_id:
            raise ConfigError("The online folder is not defined. Run 'config' command first.")
        return self.folder_id
