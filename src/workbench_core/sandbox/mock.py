"""Scripted in-memory sandbox for testing and demos."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from workbench_core.protocols import ServerReadyListener

KILLED_EXIT_CODE = 137


@dataclass
class MockScript:
    """What a spawned command does."""

    output: list[str] = field(default_factory=list)
    exit_code: int = 0
    long_running: bool = False  # Runs until killed
    ready: tuple[int, str] | None = None  # Readiness event after the output


def default_scripts(
    install_exit_code: int = 0,
    ready_url: str | None = "http://localhost:5173",
    ready_port: int = 5173,
) -> dict[str, MockScript]:
    """Scripts for ``npm install`` and ``npm run dev``."""
    return {
        "npm install": MockScript(
            output=["\nadded 42 packages in 1s\n"] if install_exit_code == 0
            else ["npm ERR! code ERESOLVE\n"],
            exit_code=install_exit_code,
        ),
        "npm run dev": MockScript(
            output=["\n> dev\n> vite\n\n", f"  VITE ready\n  Local: {ready_url}/\n"],
            long_running=True,
            ready=(ready_port, ready_url) if ready_url else None,
        ),
    }


class MockFileSystem:
    """Dictionary-backed filesystem that records every operation."""

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.directories: set[str] = set()
        self.operations: list[tuple[str, str]] = []
        self.fail = False
        self.fail_paths: set[str] = set()
        self.fail_times: dict[str, int] = {}  # path -> remaining failures

    def _check(self, operation: str, path: str) -> None:
        self.operations.append((operation, path))
        remaining = self.fail_times.get(path, 0)
        if remaining:
            self.fail_times[path] = remaining - 1
            raise OSError(f"{operation} failed for {path}")
        if self.fail or path in self.fail_paths:
            raise OSError(f"{operation} failed for {path}")

    async def write_file(self, path: str, contents: str) -> None:
        self._check("write", path)
        parent, _, _ = path.rpartition("/")
        if parent and not self.is_directory(parent):
            raise FileNotFoundError(f"No such directory: {parent}")
        self.files[path] = contents

    def is_directory(self, path: str) -> bool:
        prefix = path + "/"
        return path in self.directories or any(key.startswith(prefix) for key in self.files)

    async def read_file(self, path: str) -> str:
        self._check("read", path)
        try:
            return self.files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        self._check("mkdir", path)
        parts = path.split("/")
        for i in range(1, len(parts) + 1):
            self.directories.add("/".join(parts[:i]))

    async def rm(self, path: str, recursive: bool = False) -> None:
        self._check("rm", path)
        prefix = path + "/"
        doomed = [k for k in self.files if k == path or k.startswith(prefix)]
        if not doomed and path not in self.directories:
            raise FileNotFoundError(path)
        for key in doomed:
            del self.files[key]
        self.directories = {
            d for d in self.directories if d != path and not d.startswith(prefix)
        }


class MockProcess:
    """A scripted process: emits its output, then exits or waits for kill."""

    def __init__(self, container: "MockSandboxContainer", command: str, script: MockScript) -> None:
        self.command = command
        self.script = script
        self.killed = False
        self._container = container
        self._chunks: asyncio.Queue[str | None] = asyncio.Queue()
        self._exit: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        self._output = self._read_output()
        self._runner = asyncio.create_task(self._run())

    @property
    def output(self) -> AsyncIterator[str]:
        return self._output

    async def _read_output(self) -> AsyncIterator[str]:
        while True:
            chunk = await self._chunks.get()
            if chunk is None:
                return
            yield chunk

    async def _run(self) -> None:
        for chunk in self.script.output:
            if self._exit.done():
                return
            self._chunks.put_nowait(chunk)
            await asyncio.sleep(0)
        if self.script.ready is not None and not self._exit.done():
            self._container.emit_server_ready(*self.script.ready)
        if not self.script.long_running:
            self._finish(self.script.exit_code)

    def write(self, chunk: str) -> None:
        """Emit an extra output chunk (tests use this for late output)."""
        self._chunks.put_nowait(chunk)

    def exit(self, code: int) -> None:
        """End the process as if it exited by itself."""
        self._finish(code)

    def _finish(self, code: int) -> None:
        if self._exit.done():
            return
        self._chunks.put_nowait(None)
        self._exit.set_result(code)

    async def wait(self) -> int:
        return await asyncio.shield(self._exit)

    def kill(self) -> None:
        if self._exit.done():
            return
        self.killed = True
        self._finish(KILLED_EXIT_CODE)


class MockSandboxContainer:
    """In-memory container with a scripted process table."""

    def __init__(self, runtime: "MockSandboxRuntime") -> None:
        self._runtime = runtime
        self._fs = MockFileSystem()
        self._fs.fail = runtime.fail_fs
        self._listener: ServerReadyListener | None = None
        self.mounted: list[dict[str, Any]] = []
        self.processes: list[MockProcess] = []
        self.torn_down = False

    @property
    def fs(self) -> MockFileSystem:
        return self._fs

    @property
    def spawned(self) -> list[str]:
        """Commands spawned so far, e.g. ``["npm install", "npm run dev"]``."""
        return [process.command for process in self.processes]

    async def mount(self, tree: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        if self._runtime.fail_mount:
            raise OSError("mount rejected")
        self.mounted.append(tree)

        def _load(base: str, entries: dict[str, Any]) -> None:
            for name, node in entries.items():
                path = f"{base}/{name}" if base else name
                if "directory" in node:
                    self._fs.directories.add(path)
                    _load(path, node["directory"])
                else:
                    self._fs.files[path] = node["file"]["contents"]

        _load("", tree)

    async def spawn(self, program: str, args: list[str]) -> MockProcess:
        await asyncio.sleep(0)
        command = " ".join([program, *args])
        script = self._runtime.scripts.get(command)
        if script is None:
            script = MockScript(output=[f"sh: {program}: command not found\n"], exit_code=127)
        process = MockProcess(self, command, script)
        self.processes.append(process)
        return process

    def on_server_ready(self, listener: ServerReadyListener | None) -> None:
        self._listener = listener

    def emit_server_ready(self, port: int, url: str) -> None:
        if self._listener is not None:
            self._listener(port, url)

    async def teardown(self) -> None:
        for process in self.processes:
            process.kill()
        self.torn_down = True


class MockSandboxRuntime:
    """Runtime that boots in-memory containers.

    Example:
        runtime = MockSandboxRuntime(install_exit_code=1)
        container = await runtime.boot()
    """

    def __init__(
        self,
        install_exit_code: int = 0,
        ready_url: str | None = "http://localhost:5173",
        ready_port: int = 5173,
        scripts: dict[str, MockScript] | None = None,
        fail_boot: bool = False,
        fail_mount: bool = False,
        fail_fs: bool = False,
        boot_delay: float = 0.0,
        **kwargs: Any,
    ) -> None:
        """Initialize mock runtime.

        Args:
            install_exit_code: Exit code of ``npm install``
            ready_url: URL announced by ``npm run dev`` (None for never)
            ready_port: Port announced with the URL
            scripts: Command scripts, replacing the npm defaults
            fail_boot: Make ``boot`` raise
            fail_mount: Make ``mount`` raise
            fail_fs: Make every filesystem operation raise
            boot_delay: Seconds ``boot`` takes
            **kwargs: Ignored (for compatibility with other backends)
        """
        self.scripts = scripts if scripts is not None else default_scripts(
            install_exit_code, ready_url, ready_port
        )
        self.fail_boot = fail_boot
        self.fail_mount = fail_mount
        self.fail_fs = fail_fs
        self.boot_delay = boot_delay
        self.containers: list[MockSandboxContainer] = []

    @property
    def boot_count(self) -> int:
        return len(self.containers)

    async def boot(self) -> MockSandboxContainer:
        await asyncio.sleep(self.boot_delay)
        if self.fail_boot:
            raise RuntimeError("sandbox unavailable")
        container = MockSandboxContainer(self)
        self.containers.append(container)
        return container
