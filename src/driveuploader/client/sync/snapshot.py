"""Local folder snapshot and deletion helpers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from driveuploader.client.sync.types import LocalEntry, LocalIoError

logger = logging.getLogger(__name__)


def read_local_tree(root: Path) -> list[LocalEntry]:
    """Recursively list the regular files under a folder.

    The filesystem is read on every call; nothing is cached between passes.

    Args:
        root: Folder to scan.

    Returns:
        Entries sorted by relative path.

    Raises:
        LocalIoError: If the folder cannot be read.
    """
    root = Path(root)
    if not root.is_dir():
        raise LocalIoError(f"Not a directory: {root}", root)

    entries: list[LocalEntry] = []
    try:
        for path in sorted(root.rglob("*")):
            try:
                if not path.is_file():
                    continue
                size = path.stat().st_size
            except OSError:
                # Removed between listing and stat
                logger.debug("Skipping vanished file %s", path)
                continue
            rel_path = str(path.relative_to(root)).replace("\\", "/")
            entries.append(
                LocalEntry(name=path.name, path=rel_path, full_path=path, size=size)
            )
    except OSError as e:
        raise LocalIoError(f"Unable to read {root}: {e}", root) from e

    return entries


def delete_local_files(paths: Iterable[Path], silent: bool = False) -> list[Path]:
    """Delete local files one by one.

    Args:
        paths: Files to delete.
        silent: Skip missing files instead of reporting them.

    Returns:
        The paths that were actually deleted.
    """
    deleted: list[Path] = []
    for path in paths:
        path = Path(path)
        if silent and not path.exists():
            continue
        logger.info("Deleting %s", path.name)
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Unable to delete %s: %s", path, e)
            continue
        deleted.append(path)
    return deleted
