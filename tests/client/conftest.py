"""Shared fixtures for client tests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import pytest

from driveuploader.client.api import APIError, RemoteFile


class FakeDriveClient:
    """In-memory stand-in for DriveClient."""

    def __init__(self) -> None:
        self.remote: list[RemoteFile] = []
        self.uploads: list[tuple[str, str, bytes]] = []
        self.deleted_ids: list[str] = []
        self.list_calls = 0
        self.list_error: BaseException | None = None
        self.fail_uploads: set[str] = set()
        self.upload_errors: dict[str, Exception] = {}
        self.fail_deletes: set[str] = set()

    def add_remote(self, name: str, created_at: datetime | None = None) -> RemoteFile:
        remote_file = RemoteFile(
            id=f"id-{name}",
            name=name,
            created_at=created_at or datetime.now(UTC),
        )
        self.remote.append(remote_file)
        return remote_file

    def list_files(self, folder_id: str) -> list[RemoteFile]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.remote)

    def upload_file(self, folder_id: str, name: str, content: bytes) -> RemoteFile:
        if name in self.upload_errors:
            raise self.upload_errors[name]
        if name in self.fail_uploads:
            raise APIError(f"Upload of {name} rejected", 500)
        self.uploads.append((folder_id, name, content))
        return self.add_remote(name)

    def delete_file(self, file_id: str) -> None:
        if file_id in self.fail_deletes:
            raise APIError(f"Delete of {file_id} rejected", 500)
        self.deleted_ids.append(file_id)
        self.remote = [f for f in self.remote if f.id != file_id]

    @property
    def uploaded_names(self) -> list[str]:
        return [name for _, name, _ in self.uploads]


@pytest.fixture
def fake_client() -> FakeDriveClient:
    """Create an in-memory Drive client."""
    return FakeDriveClient()


@dataclass
class TokenResponse:
    """Response shape google-auth expects from its transport."""

    status: int
    data: bytes
    headers: dict[str, str] = field(default_factory=dict)


class FakeTokenTransport:
    """google-auth transport answering token requests from a queue."""

    def __init__(self) -> None:
        self.payloads: list[tuple[int, dict[str, Any]]] = []
        self.requests: list[dict[str, Any]] = []

    def add(self, payload: dict[str, Any], status: int = 200) -> None:
        self.payloads.append((status, payload))

    def __call__(
        self,
        url: str,
        method: str = "GET",
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> TokenResponse:
        self.requests.append({"url": url, "method": method, "body": body or b""})
        status, payload = self.payloads.pop(0)
        return TokenResponse(status=status, data=json.dumps(payload).encode())


@pytest.fixture
def token_transport() -> FakeTokenTransport:
    """Create a fake token endpoint transport."""
    return FakeTokenTransport()
