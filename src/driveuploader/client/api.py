"""HTTP client for the Google Drive v3 API.

This module provides:
- DriveClient: HTTP client scoped to the calls the uploader needs
- Folder operations (list root folders, create folder)
- File operations (paginated listing, multipart upload, delete)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx
import requests
from google.auth.transport.requests import Request

from driveuploader.client.auth import (
    TokenError,
    from_google_credentials,
    refresh_google_credentials,
    to_google_credentials,
)
from driveuploader.core.config import ConnectionConfig, OAuthCredentials

if TYPE_CHECKING:
    from google.auth.transport import Request as AuthRequest

logger = logging.getLogger(__name__)

DRIVE_FILES_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
MULTIPART_BOUNDARY = "boundary"

FOLDER_PAGE_SIZE = 50
FILE_PAGE_SIZE = 100


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Credentials are missing or cannot be refreshed."""


class NotFoundError(APIError):
    """Resource not found."""


@dataclass
class RemoteFile:
    """File entry in the target Drive folder."""

    id: str
    name: str
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteFile:
        """Create from API response dictionary."""
        created = data.get("createdTime")
        return cls(
            id=data["id"],
            name=data["name"],
            created_at=datetime.fromisoformat(created) if created else None,
        )


@dataclass
class RemoteFolder:
    """Drive folder."""

    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteFolder:
        """Create from API response dictionary."""
        return cls(id=data["id"], name=data["name"])


def build_multipart_body(
    metadata: dict[str, Any],
    content: bytes,
    boundary: str = MULTIPART_BOUNDARY,
) -> bytes:
    """Build a multipart/related body with a JSON part and a binary part.

    Args:
        metadata: File metadata (name, parents).
        content: Raw file bytes.
        boundary: Boundary marker separating the parts.

    Returns:
        Encoded request body.
    """
    head = (
        f"--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n"
        "\r\n"
        f"{json.dumps(metadata)}\r\n"
        f"--{boundary}\r\n"
        "Content-Type: application/octet-stream\r\n"
        "\r\n"
    ).encode("utf-8")
    tail = f"\r\n--{boundary}--".encode()
    return head + content + tail


class DriveClient:
    """HTTP client for the Drive v3 API."""

    def __init__(
        self,
        config: ConnectionConfig,
        timeout: float = 30.0,
        on_credentials_refreshed: Callable[[OAuthCredentials], None] | None = None,
        auth_request: AuthRequest | None = None,
    ) -> None:
        """Initialize the Drive client.

        Args:
            config: Connection settings with OAuth credentials.
            timeout: Request timeout in seconds.
            on_credentials_refreshed: Called after a successful token refresh,
                typically to persist the new tokens.
            auth_request: google-auth transport used for token refreshes
                (default: a requests session owned by the client).

        Raises:
            AuthenticationError: If the config carries no usable credentials.
        """
        stored = config.credentials
        if stored is None or not (stored.access_token or stored.refresh_token):
            raise AuthenticationError(
                "The authentication token is missing. Run 'config' command first."
            )
        self._credentials = to_google_credentials(
            stored, config.client_id or "", config.client_secret or ""
        )
        self._on_credentials_refreshed = on_credentials_refreshed

        self._auth_session: requests.Session | None = None
        if auth_request is None:
            self._auth_session = requests.Session()
            auth_request = Request(session=self._auth_session)
        self._auth_request = auth_request
        self._client = httpx.Client(timeout=timeout)

    @property
    def credentials(self) -> OAuthCredentials:
        """Get the current credentials."""
        return from_google_credentials(self._credentials)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()
        if self._auth_session is not None:
            self._auth_session.close()

    def __enter__(self) -> DriveClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    # === Authentication ===

    def refresh(self) -> OAuthCredentials:
        """Refresh the access token.

        Raises:
            AuthenticationError: If the token cannot be refreshed.
        """
        try:
            refresh_google_credentials(self._credentials, self._auth_request)
        except TokenError as e:
            raise AuthenticationError(f"Unable to refresh the access token: {e}", 401) from e

        credentials = from_google_credentials(self._credentials)
        if self._on_credentials_refreshed:
            try:
                self._on_credentials_refreshed(credentials)
            except (OSError, ValueError) as e:
                # The new token is still used for this session
                logger.error("Unable to save the refreshed token: %s", e)
        return credentials

    def _auth_headers(self) -> dict[str, str]:
        if not self._credentials.valid:
            self.refresh()
        headers: dict[str, str] = {}
        self._credentials.apply(headers)
        return headers

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authorized request, refreshing once on 401."""
        extra_headers: dict[str, str] = kwargs.pop("headers", {})
        for attempt in range(2):
            headers = {**extra_headers, **self._auth_headers()}
            try:
                response = self._client.request(method, url, headers=headers, **kwargs)
            except httpx.RequestError as e:
                raise APIError(f"{method} {url} failed: {e}") from e

            if response.status_code == 401 and attempt == 0 and self._credentials.refresh_token:
                logger.debug("Access token rejected, refreshing")
                self.refresh()
                continue
            return self._handle_response(response)

        raise AuthenticationError("Access token rejected after refresh", 401)

    def _handle_response(self, response: httpx.Response) -> httpx.Response:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code < 400:
            return response

        detail = _error_detail(response)
        if response.status_code == 401:
            raise AuthenticationError(detail or "Invalid or expired token", 401)
        if response.status_code == 404:
            raise NotFoundError(detail or "Resource not found", 404)
        raise APIError(detail or "Unknown error", response.status_code)

    def _paginate(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page_token: str | None = None
        while True:
            page_params = dict(params)
            if page_token:
                page_params["pageToken"] = page_token
            data = _json_body(self._request("GET", DRIVE_FILES_URL, params=page_params))
            items.extend(f for f in data.get("files", []) if f)
            page_token = data.get("nextPageToken")
            if not page_token:
                return items

    # === Folder operations ===

    def list_folders(self) -> list[RemoteFolder]:
        """List the folders in the Drive root.

        Returns:
            Non-trashed root folders.
        """
        logger.info("Reading folders...")
        files = self._paginate(
            {
                "q": f"mimeType='{FOLDER_MIME_TYPE}' and 'root' in parents and trashed=false",
                "pageSize": FOLDER_PAGE_SIZE,
            }
        )
        return [RemoteFolder.from_dict(f) for f in files]

    def create_folder(self, name: str) -> RemoteFolder:
        """Create a folder in the Drive root.

        Args:
            name: Folder name.

        Returns:
            Created folder.
        """
        logger.info("Creating new folder: %s", name)
        response = self._request(
            "POST",
            DRIVE_FILES_URL,
            json={"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": ["root"]},
        )
        return RemoteFolder.from_dict(_json_body(response))

    # === File operations ===

    def list_files(self, folder_id: str) -> list[RemoteFile]:
        """List every non-trashed file in a folder.

        Follows nextPageToken until the listing is exhausted.

        Args:
            folder_id: Drive folder id.

        Returns:
            Files with id, name and creation time.
        """
        files = self._paginate(
            {
                "q": f"'{folder_id}' in parents and trashed=false",
                "fields": "files(id,name,createdTime),nextPageToken",
                "pageSize": FILE_PAGE_SIZE,
            }
        )
        result = [RemoteFile.from_dict(f) for f in files]
        logger.info("Found %d files.", len(result))
        return result

    def upload_file(self, folder_id: str, name: str, content: bytes) -> RemoteFile:
        """Upload a file into a folder as a single multipart request.

        Args:
            folder_id: Parent folder id.
            name: File name on Drive.
            content: File bytes.

        Returns:
            Created file.
        """
        body = build_multipart_body({"name": name, "parents": [folder_id]}, content)
        response = self._request(
            "POST",
            DRIVE_UPLOAD_URL,
            params={"uploadType": "multipart"},
            headers={
                "Content-Type": f"multipart/related; boundary={MULTIPART_BOUNDARY}",
                "Content-Length": str(len(body)),
            },
            content=body,
        )
        return RemoteFile.from_dict(_json_body(response))

    def delete_file(self, file_id: str) -> None:
        """Delete a file permanently.

        Args:
            file_id: Drive file id.
        """
        self._request("DELETE", f"{DRIVE_FILES_URL}/{file_id}")


def _error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", ""))
    if error:
        return str(error)
    return ""


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a successful response body.

    Raises:
        APIError: If the body is not a JSON object (e.g. a proxy error page).
    """
    try:
        data = response.json()
    except ValueError as e:
        raise APIError(
            f"Unexpected response from {response.request.method} {response.request.url}: {e}",
            response.status_code,
        ) from e
    if not isinstance(data, dict):
        raise APIError("Unexpected response: expected a JSON object", response.status_code)
    return data
