"""Sequential upload of new local files.

This module provides:
- UploadPipeline: Uploads a batch of files one at a time, isolating failures
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

from driveuploader.client.api import APIError
from driveuploader.client.sync.snapshot import delete_local_files
from driveuploader.client.sync.types import LocalEntry, LocalIoError, UploadSummary

if TYPE_CHECKING:
    from collections.abc import Iterable

    from driveuploader.client.api import RemoteFile

logger = logging.getLogger(__name__)


class UploadClient(Protocol):
    """The part of DriveClient the pipeline needs."""

    def upload_file(self, folder_id: str, name: str, content: bytes) -> RemoteFile:
        """Upload one file into a folder."""
        ...


class UploadPipeline:
    """Uploads files sequentially into one Drive folder.

    Files are processed in reverse name order. Zero-byte files are skipped
    since they are most likely still being written. A failure on one file
    is logged and the batch moves on; there is no retry within a batch, the
    file stays new and is picked up by the next reconciliation pass.
    """

    def __init__(self, client: UploadClient, folder_id: str) -> None:
        """Initialize the pipeline.

        Args:
            client: Drive client used for uploads.
            folder_id: Target folder id.
        """
        self._client = client
        self._folder_id = folder_id

    def run(
        self,
        entries: Iterable[LocalEntry],
        delete_after_upload: bool = False,
    ) -> UploadSummary:
        """Upload a batch of files.

        Args:
            entries: Files to upload.
            delete_after_upload: Remove each local file once uploaded.

        Returns:
            UploadSummary with uploaded, failed and skipped file names.
        """
        summary = UploadSummary()
        ordered = sorted(entries, key=lambda e: e.name, reverse=True)

        pending: list[LocalEntry] = []
        for entry in ordered:
            try:
                size = entry.full_path.stat().st_size
            except OSError as e:
                logger.warning("Unable to read %s: %s", entry.path, e)
                summary.failed.append(entry.name)
                continue
            if size == 0:
                logger.debug("Skipping empty file %s", entry.path)
                summary.skipped.append(entry.name)
                continue
            pending.append(entry)

        for entry in pending:
            logger.info("Uploading %s", entry.path)
            try:
                self._upload(entry, delete_after_upload)
            except (APIError, LocalIoError, OSError, httpx.HTTPError) as e:
                logger.error("Uploading %s failed: %s", entry.path, e)
                summary.failed.append(entry.name)
                continue
            summary.uploaded.append(entry.name)

        return summary

    def _upload(self, entry: LocalEntry, delete_after_upload: bool) -> None:
        try:
            content = entry.full_path.read_bytes()
        except OSError as e:
            raise LocalIoError(f"Unable to read {entry.path}: {e}", entry.full_path) from e

        self._client.upload_file(self._folder_id, entry.name, content)

        if delete_after_upload and not delete_local_files([entry.full_path]):
            logger.warning("Uploaded %s but could not delete the local copy", entry.path)
