"""Tests for sync coordinator."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from driveuploader.client.api import APIError, RemoteFile
from driveuploader.client.sync.coordinator import SyncCoordinator, diff_new_entries
from driveuploader.client.sync.snapshot import read_local_tree
from driveuploader.client.sync.types import LocalEntry, LocalIoError, SyncState


def entry(name: str, size: int = 1) -> LocalEntry:
    return LocalEntry(name=name, path=name, full_path=Path("/data") / name, size=size)


class BlockingReader:
    """Snapshot reader that blocks the first pass until released."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.calls = 0

    def __call__(self, path: Path) -> list[LocalEntry]:
        self.calls += 1
        if self.calls == 1:
            self.started.set()
            assert self.release.wait(5.0)
        return []


class TestDiffNewEntries:
    """Tests for diff_new_entries."""

    def test_only_missing_names_are_new(self) -> None:
        """{a.txt, b.txt} against {a.txt} yields {b.txt}."""
        local = [entry("a.txt"), entry("b.txt")]
        remote = [RemoteFile(id="1", name="a.txt")]

        assert diff_new_entries(local, remote) == [entry("b.txt")]

    def test_case_sensitive(self) -> None:
        """Names are compared exactly."""
        local = [entry("Photo.JPG")]
        remote = [RemoteFile(id="1", name="photo.jpg")]

        assert diff_new_entries(local, remote) == local

    def test_no_remote(self) -> None:
        """Everything is new against an empty folder."""
        local = [entry("a.txt"), entry("b.txt")]
        assert diff_new_entries(local, []) == local


class TestSingleFlight:
    """Tests for the single-flight state machine."""

    def test_starts_idle(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """A new coordinator is idle."""
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1")
        assert coordinator.state == SyncState.IDLE

    def test_idle_trigger_runs_one_pass(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """A trigger while idle runs exactly one pass and returns to idle."""
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1")

        assert coordinator.trigger({"a.txt"}) == 1
        assert coordinator.state == SyncState.IDLE
        assert coordinator.stats.passes_run == 1

    def test_triggers_during_pass_coalesce(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """Many triggers during a pass cause exactly one follow-up pass."""
        reader = BlockingReader()
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1", read_tree=reader)
        results: list[int] = []
        worker = threading.Thread(target=lambda: results.append(coordinator.trigger()))
        worker.start()
        assert reader.started.wait(5.0)
        assert coordinator.state == SyncState.RUNNING

        for i in range(5):
            assert coordinator.trigger({f"file{i}.txt"}) == 0
        assert coordinator.state == SyncState.RUNNING_WITH_PENDING

        reader.release.set()
        worker.join(5.0)

        assert results == [2]
        assert reader.calls == 2
        assert coordinator.state == SyncState.IDLE
        assert coordinator.stats.triggers_received == 6
        assert coordinator.stats.triggers_coalesced == 4

    def test_no_follow_up_without_trigger(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """Passes are not repeated when nothing arrived during them."""
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1")

        coordinator.trigger()
        coordinator.trigger()

        assert coordinator.stats.passes_run == 2
        assert coordinator.stats.triggers_coalesced == 0

    def test_passes_never_overlap(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """Concurrent triggers never run two passes at once."""
        lock = threading.Lock()
        active = 0
        max_active = 0
        intervals: list[tuple[float, float]] = []

        def reader(path: Path) -> list[LocalEntry]:
            nonlocal active, max_active
            with lock:
                active += 1
                max_active = max(max_active, active)
            start = time.monotonic()
            time.sleep(0.02)
            end = time.monotonic()
            with lock:
                active -= 1
                intervals.append((start, end))
            return []

        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1", read_tree=reader)

        def hammer() -> None:
            for _ in range(10):
                coordinator.trigger()
                time.sleep(0.005)

        threads = [threading.Thread(target=hammer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10.0)

        assert max_active == 1
        intervals.sort()
        for (_, prev_end), (next_start, _) in zip(intervals, intervals[1:], strict=False):
            assert next_start >= prev_end
        assert coordinator.state == SyncState.IDLE
        assert coordinator.stats.passes_run == len(intervals)

    def test_error_in_pass_returns_to_idle(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """An unexpected exception is logged and does not wedge the state."""

        def reader(path: Path) -> list[LocalEntry]:
            raise RuntimeError("boom")

        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1", read_tree=reader)

        assert coordinator.trigger() == 1
        assert coordinator.state == SyncState.IDLE
        assert coordinator.stats.errors == 1

    def test_interrupt_returns_to_idle(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """Ctrl+C during a pass propagates and leaves the coordinator idle."""

        def reader(path: Path) -> list[LocalEntry]:
            raise KeyboardInterrupt

        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1", read_tree=reader)

        with pytest.raises(KeyboardInterrupt):
            coordinator.trigger()

        assert coordinator.state == SyncState.IDLE
        assert coordinator.wait_idle(0) is True

    def test_wait_idle_blocks_during_pass(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """wait_idle returns only once the running pass and its follow-up finish."""
        reader = BlockingReader()
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1", read_tree=reader)
        assert coordinator.wait_idle(0) is True

        worker = threading.Thread(target=coordinator.trigger)
        worker.start()
        assert reader.started.wait(5.0)
        coordinator.trigger()

        assert coordinator.wait_idle(0.1) is False
        reader.release.set()
        assert coordinator.wait_idle(5.0) is True
        assert reader.calls == 2
        worker.join(5.0)


class TestReconciliationPass:
    """Tests for what a pass does."""

    def test_uploads_only_new_files(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """Files already present remotely are not uploaded again."""
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "b.txt").write_text("b")
        fake_client.add_remote("a.txt")
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1")

        coordinator.trigger()

        assert fake_client.uploaded_names == ["b.txt"]
        assert coordinator.stats.files_uploaded == 1

    def test_uploaded_file_is_not_new_next_pass(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """Without delete-after-upload the file stays and is skipped next time."""
        (tmp_path / "a.txt").write_text("a")
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1")

        coordinator.trigger()
        coordinator.trigger()

        assert fake_client.uploaded_names == ["a.txt"]
        assert (tmp_path / "a.txt").exists()
        assert fake_client.list_calls == 2

    def test_delete_after_upload_skips_listing(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """With delete-after-upload every local file is uploaded and removed."""
        (tmp_path / "a.txt").write_text("a")
        fake_client.add_remote("a.txt")
        coordinator = SyncCoordinator(
            fake_client, tmp_path, "folder-1", delete_after_upload=True
        )

        coordinator.trigger()

        assert fake_client.list_calls == 0
        assert fake_client.uploaded_names == ["a.txt"]
        assert not (tmp_path / "a.txt").exists()

    def test_nothing_new(self, tmp_path: Path, fake_client, caplog: pytest.LogCaptureFixture) -> None:  # type: ignore[no-untyped-def]
        """Should log and upload nothing when everything is remote."""
        (tmp_path / "a.txt").write_text("a")
        fake_client.add_remote("a.txt")
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1")

        with caplog.at_level("INFO", logger="driveuploader"):
            coordinator.trigger()

        assert fake_client.uploads == []
        assert "No new files found" in caplog.text

    def test_listing_failure_skips_pass(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """A failed listing never leads to blind uploads."""
        (tmp_path / "a.txt").write_text("a")
        fake_client.add_remote("a.txt")
        fake_client.list_error = APIError("Backend Error", 503)
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1")

        coordinator.trigger()

        assert fake_client.uploads == []
        assert coordinator.stats.errors == 1
        assert coordinator.state == SyncState.IDLE

        # Retried by the next trigger
        fake_client.list_error = None
        (tmp_path / "b.txt").write_text("b")
        coordinator.trigger()
        assert fake_client.uploaded_names == ["b.txt"]

    def test_local_read_failure(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """A missing watch folder is logged, not raised."""
        coordinator = SyncCoordinator(fake_client, tmp_path / "missing", "folder-1")

        assert coordinator.trigger() == 1
        assert coordinator.stats.errors == 1
        assert fake_client.list_calls == 0

    def test_rereads_state_each_pass(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """A follow-up pass sees files created during the previous pass."""
        calls = 0

        def reader(path: Path) -> list[LocalEntry]:
            nonlocal calls
            calls += 1
            if calls == 1:
                (tmp_path / "late.txt").write_text("late")
                coordinator.trigger({str(tmp_path / "late.txt")})
            return read_local_tree(path)

        (tmp_path / "early.txt").write_text("early")
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1", read_tree=reader)

        assert coordinator.trigger() == 2
        assert sorted(fake_client.uploaded_names) == ["early.txt", "late.txt"]

    def test_failed_upload_retried_next_pass(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """A failed file is still new on the next reconciliation."""
        (tmp_path / "a.txt").write_text("a")
        fake_client.fail_uploads = {"a.txt"}
        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1")

        coordinator.trigger()
        assert coordinator.stats.upload_failures == 1

        fake_client.fail_uploads = set()
        coordinator.trigger()
        assert fake_client.uploaded_names == ["a.txt"]

    def test_local_io_error_from_reader(self, tmp_path: Path, fake_client) -> None:  # type: ignore[no-untyped-def]
        """LocalIoError from the reader ends the pass quietly."""

        def reader(path: Path) -> list[LocalEntry]:
            raise LocalIoError("permission denied", path)

        coordinator = SyncCoordinator(fake_client, tmp_path, "folder-1", read_tree=reader)
        coordinator.trigger()

        assert coordinator.stats.errors == 1
        assert fake_client.list_calls == 0
