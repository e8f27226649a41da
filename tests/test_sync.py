"""Tests for the sandbox sync bridge."""

import logging
from pathlib import Path

import pytest

from workbench_core.observability import register_metric_callback, unregister_metric_callback
from workbench_core.sandbox.local import LocalFileSystem
from workbench_core.sandbox.mock import MockFileSystem
from workbench_core.sync import CreateFile, RenamePath, SyncBridge, WriteFile
from workbench_core.workspace.files import PLACEHOLDER_NAME


@pytest.fixture
def fs() -> MockFileSystem:
    return MockFileSystem()


@pytest.fixture
def bridge() -> SyncBridge:
    return SyncBridge(max_retries=0, retry_delay_seconds=0)


class TestLifecycle:
    """Tests for arming, starting and disarming."""

    def test_dropped_before_arm(self, bridge: SyncBridge) -> None:
        """Before the mount snapshot, edits are not queued."""
        assert not bridge.write("a.txt", "x")
        assert bridge.pending == 0

    @pytest.mark.asyncio
    async def test_queued_between_arm_and_start(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        """Edits made while mounting are applied once the worker starts."""
        bridge.arm()
        assert bridge.write("a.txt", "x")
        assert bridge.pending == 1
        assert fs.operations == []

        bridge.start(fs)
        await bridge.drain()

        assert fs.files == {"a.txt": "x"}
        await bridge.close()

    @pytest.mark.asyncio
    async def test_disarm_drops_queue(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        bridge.arm()
        bridge.write("a.txt", "x")
        bridge.disarm()

        assert bridge.pending == 0
        assert not bridge.is_armed
        assert not bridge.write("b.txt", "y")

    @pytest.mark.asyncio
    async def test_close_stops_worker(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        bridge.start(fs)
        assert bridge.is_live

        await bridge.close()

        assert not bridge.is_live
        assert not bridge.is_armed


class TestOperations:
    """Tests for applying operations to the sandbox filesystem."""

    @pytest.mark.asyncio
    async def test_fifo_order_same_path(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        """Operations on one path land in the order they were issued."""
        bridge.start(fs)
        bridge.write("a.txt", "1")
        bridge.write("a.txt", "2")
        bridge.write("a.txt", "3")
        await bridge.drain()

        assert fs.files["a.txt"] == "3"
        assert fs.operations == [("write", "a.txt")] * 3
        await bridge.close()

    @pytest.mark.asyncio
    async def test_create_file_makes_parent(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        bridge.start(fs)
        bridge.create_file("src/components/Button.jsx")
        await bridge.drain()

        assert fs.operations == [("mkdir", "src/components"), ("write", "src/components/Button.jsx")]
        assert fs.files["src/components/Button.jsx"] == ""
        await bridge.close()

    @pytest.mark.asyncio
    async def test_create_root_file_skips_mkdir(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        bridge.start(fs)
        bridge.create_file("notes.md")
        await bridge.drain()

        assert fs.operations == [("write", "notes.md")]
        await bridge.close()

    @pytest.mark.asyncio
    async def test_write_into_new_folder(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        """Writing a file whose folder the sandbox lacks creates the folder."""
        bridge.start(fs)
        bridge.write("lib/util.js", "export {}")
        await bridge.drain()

        assert fs.operations == [("mkdir", "lib"), ("write", "lib/util.js")]
        assert fs.files["lib/util.js"] == "export {}"
        assert bridge.diverged_paths == set()
        await bridge.close()

    @pytest.mark.asyncio
    async def test_write_into_new_folder_on_disk(self, bridge: SyncBridge, tmp_path: Path) -> None:
        bridge.start(LocalFileSystem(tmp_path))
        bridge.write("lib/util.js", "export {}")
        await bridge.drain()

        assert (tmp_path / "lib" / "util.js").read_text(encoding="utf-8") == "export {}"
        assert bridge.diverged_paths == set()
        assert bridge.failure_count == 0
        await bridge.close()

    @pytest.mark.asyncio
    async def test_mkdir_writes_placeholder(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        """A synced folder matches a mounted one, placeholder included."""
        bridge.start(fs)
        bridge.mkdir("assets")
        await bridge.drain()

        assert "assets" in fs.directories
        assert fs.files == {f"assets/{PLACEHOLDER_NAME}": ""}
        await bridge.close()

    @pytest.mark.asyncio
    async def test_mkdir_and_remove(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        fs.files["src/a.js"] = "x"
        bridge.start(fs)
        bridge.mkdir("assets")
        bridge.remove("src")
        await bridge.drain()

        assert "assets" in fs.directories
        assert "src/a.js" not in fs.files
        await bridge.close()

    @pytest.mark.asyncio
    async def test_rename_reads_writes_removes(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        """A rename is a read, a write of the new path, then a removal."""
        fs.files["src/old.js"] = "content"
        bridge.start(fs)
        bridge.rename("src/old.js", "src/new.js")
        await bridge.drain()

        assert fs.operations == [("read", "src/old.js"), ("write", "src/new.js"), ("rm", "src/old.js")]
        assert fs.files == {"src/new.js": "content"}
        await bridge.close()

    def test_operation_paths(self) -> None:
        assert WriteFile("a", "x").paths == ("a",)
        assert CreateFile("b").name == "create"
        assert RenamePath("a", "b").paths == ("a", "b")


class TestFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_failure_logged_not_raised(
        self, bridge: SyncBridge, fs: MockFileSystem, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A failed operation is logged and later operations still run."""
        fs.fail_paths.add("bad.txt")
        bridge.start(fs)

        with caplog.at_level(logging.WARNING, logger="workbench_core.sync"):
            bridge.write("bad.txt", "x")
            bridge.write("good.txt", "y")
            await bridge.drain()

        assert fs.files == {"good.txt": "y"}
        assert bridge.failure_count == 1
        assert bridge.diverged_paths == {"bad.txt"}
        assert any(record.message == "Sandbox sync failed" for record in caplog.records)
        await bridge.close()

    @pytest.mark.asyncio
    async def test_retry_recovers(self, fs: MockFileSystem) -> None:
        """A transient failure is retried."""
        bridge = SyncBridge(max_retries=2, retry_delay_seconds=0)
        fs.fail_times["a.txt"] = 2
        bridge.start(fs)

        bridge.write("a.txt", "x")
        await bridge.drain()

        assert fs.files == {"a.txt": "x"}
        assert bridge.failure_count == 0
        assert bridge.diverged_paths == set()
        await bridge.close()

    @pytest.mark.asyncio
    async def test_retries_are_bounded(self, fs: MockFileSystem) -> None:
        bridge = SyncBridge(max_retries=1, retry_delay_seconds=0)
        fs.fail_paths.add("a.txt")
        bridge.start(fs)

        bridge.write("a.txt", "x")
        await bridge.drain()

        assert fs.operations == [("write", "a.txt")] * 2
        assert bridge.failure_count == 1
        await bridge.close()

    @pytest.mark.asyncio
    async def test_later_success_clears_divergence(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        fs.fail_times["a.txt"] = 1
        bridge.start(fs)

        bridge.write("a.txt", "1")
        await bridge.drain()
        assert bridge.diverged_paths == {"a.txt"}

        bridge.write("a.txt", "2")
        await bridge.drain()
        assert bridge.diverged_paths == set()
        await bridge.close()

    @pytest.mark.asyncio
    async def test_failure_metric(self, bridge: SyncBridge, fs: MockFileSystem) -> None:
        received: list[tuple] = []

        def callback(name: str, value: float, labels: dict) -> None:
            received.append((name, value, labels))

        register_metric_callback(callback)
        try:
            fs.fail = True
            bridge.start(fs)
            bridge.mkdir("assets")
            await bridge.drain()
        finally:
            unregister_metric_callback(callback)

        assert ("sync.failed", 1.0, {"operation": "mkdir"}) in received
        await bridge.close()
