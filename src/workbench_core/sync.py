"""Best-effort propagation of file edits to the live sandbox filesystem.

Edits are enqueued synchronously and applied by a single worker task in
FIFO order, so editing never waits on sandbox I/O and operations on the
same path land in the order they were issued. A failed operation is retried
a bounded number of times; if it still fails it is logged, never raised,
and its paths are marked as diverged until a later operation on them
succeeds.
"""

import asyncio
from dataclasses import dataclass

from workbench_core.exceptions import SyncError
from workbench_core.observability import emit_counter, get_logger
from workbench_core.protocols import SandboxFileSystem
from workbench_core.workspace.files import PLACEHOLDER_NAME

logger = get_logger(__name__)


async def _ensure_parent(fs: SandboxFileSystem, path: str) -> None:
    parent, _, _ = path.rpartition("/")
    if parent:
        await fs.mkdir(parent, recursive=True)


@dataclass(frozen=True)
class WriteFile:
    path: str
    contents: str
    name = "write"

    @property
    def paths(self) -> tuple[str, ...]:
        return (self.path,)

    async def apply(self, fs: SandboxFileSystem) -> None:
        await _ensure_parent(fs, self.path)
        await fs.write_file(self.path, self.contents)


@dataclass(frozen=True)
class CreateFile:
    path: str
    name = "create"

    @property
    def paths(self) -> tuple[str, ...]:
        return (self.path,)

    async def apply(self, fs: SandboxFileSystem) -> None:
        await _ensure_parent(fs, self.path)
        await fs.write_file(self.path, "")


@dataclass(frozen=True)
class MakeDirectory:
    path: str
    name = "mkdir"

    @property
    def paths(self) -> tuple[str, ...]:
        return (self.path,)

    async def apply(self, fs: SandboxFileSystem) -> None:
        await fs.mkdir(self.path, recursive=True)
        await fs.write_file(f"{self.path}/{PLACEHOLDER_NAME}", "")


@dataclass(frozen=True)
class RemovePath:
    path: str
    name = "remove"

    @property
    def paths(self) -> tuple[str, ...]:
        return (self.path,)

    async def apply(self, fs: SandboxFileSystem) -> None:
        await fs.rm(self.path, recursive=True)


@dataclass(frozen=True)
class RenamePath:
    old_path: str
    new_path: str
    name = "rename"

    @property
    def paths(self) -> tuple[str, ...]:
        return (self.old_path, self.new_path)

    async def apply(self, fs: SandboxFileSystem) -> None:
        contents = await fs.read_file(self.old_path)
        await fs.write_file(self.new_path, contents)
        await fs.rm(self.old_path)


SyncOperation = WriteFile | CreateFile | MakeDirectory | RemovePath | RenamePath


class SyncBridge:
    """Queues file operations against the sandbox filesystem.

    Lifecycle: ``arm()`` when the mount snapshot is taken, ``start(fs)``
    once the mount succeeded, ``disarm()`` if it failed. Before arming,
    operations are dropped since the mount will carry the full state.
    """

    def __init__(self, max_retries: int = 2, retry_delay_seconds: float = 0.2) -> None:
        """Initialize sync bridge.

        Args:
            max_retries: Extra attempts per operation after the first failure
            retry_delay_seconds: Pause between attempts
        """
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self._fs: SandboxFileSystem | None = None
        self._armed = False
        self._queue: asyncio.Queue[SyncOperation] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._diverged: set[str] = set()
        self._failures = 0

    @property
    def is_armed(self) -> bool:
        return self._armed

    @property
    def is_live(self) -> bool:
        """Whether operations are currently being applied."""
        return self._worker is not None and not self._worker.done()

    @property
    def diverged_paths(self) -> set[str]:
        """Paths whose last sync attempt failed."""
        return set(self._diverged)

    @property
    def failure_count(self) -> int:
        return self._failures

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def arm(self) -> None:
        """Start accepting operations (applied once ``start`` is called)."""
        self._armed = True

    def start(self, fs: SandboxFileSystem) -> None:
        """Begin applying queued operations to ``fs``."""
        self._fs = fs
        self._armed = True
        if not self.is_live:
            self._worker = asyncio.create_task(self._run())

    def disarm(self) -> None:
        """Stop accepting operations and drop anything queued."""
        self._armed = False
        self._fs = None
        self._cancel_worker()
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    def enqueue(self, operation: SyncOperation) -> bool:
        """Queue an operation without waiting.

        Returns:
            True if queued, False if the bridge is not armed
        """
        if not self._armed:
            return False
        self._queue.put_nowait(operation)
        return True

    def write(self, path: str, contents: str) -> bool:
        return self.enqueue(WriteFile(path, contents))

    def create_file(self, path: str) -> bool:
        return self.enqueue(CreateFile(path))

    def mkdir(self, path: str) -> bool:
        return self.enqueue(MakeDirectory(path))

    def remove(self, path: str) -> bool:
        return self.enqueue(RemovePath(path))

    def rename(self, old_path: str, new_path: str) -> bool:
        return self.enqueue(RenamePath(old_path, new_path))

    async def drain(self) -> None:
        """Wait until every queued operation has been attempted."""
        if self.is_live:
            await self._queue.join()

    async def close(self) -> None:
        """Stop the worker; queued operations are dropped."""
        self.disarm()

    async def _run(self) -> None:
        while True:
            operation = await self._queue.get()
            try:
                await self._apply(operation)
            finally:
                self._queue.task_done()

    async def _apply(self, operation: SyncOperation) -> None:
        fs = self._fs
        if fs is None:
            return

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                await operation.apply(fs)
            except Exception as e:
                last_error = e
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay_seconds)
                continue
            self._diverged.difference_update(operation.paths)
            return

        self._failures += 1
        self._diverged.update(operation.paths)
        error = SyncError(operation.paths[-1], operation.name, last_error)
        logger.warning(
            "Sandbox sync failed",
            context={
                "operation": operation.name,
                "paths": list(operation.paths),
                "attempts": self.max_retries + 1,
            },
            error=error,
        )
        emit_counter("sync.failed", {"operation": operation.name})

    def _cancel_worker(self) -> None:
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
        self._worker = None
