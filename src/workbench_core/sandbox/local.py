"""Local subprocess-based sandbox for development."""

import asyncio
import atexit
import codecs
import os
import re
import shutil
import signal
import tempfile
from collections.abc import AsyncIterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable

from workbench_core.observability import get_logger
from workbench_core.protocols import ServerReadyListener

logger = get_logger(__name__)

# Thread pool for async file I/O - configurable via environment
_max_workers = int(os.environ.get("WORKBENCH_FILE_WORKERS", "8"))
_executor = ThreadPoolExecutor(max_workers=_max_workers)

# Ensure executor is cleaned up on process exit
atexit.register(_executor.shutdown, wait=False)

READ_CHUNK_SIZE = 4096

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[ -/]*[@-~]")

# Dev servers announce themselves on a loopback or wildcard address
SERVER_URL_RE = re.compile(
    r"(https?://(?:localhost|127\.0\.0\.1|0\.0\.0\.0|\[::1?\]):(\d{2,5}))/?"
)


async def _run_io(func: Callable[[], Any]) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_executor, func)


class LocalFileSystem:
    """Filesystem of a local sandbox, rooted at its working directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _resolve(self, path: str) -> Path:
        """Map a workspace path to a location inside the root.

        Rejects absolute paths and traversal outside the root.
        """
        if not path or path.startswith("/") or "\x00" in path or "\\" in path:
            raise ValueError(f"Invalid path: {path!r}")

        target = (self.root / path).resolve()
        try:
            target.relative_to(self.root.resolve())
        except ValueError:
            raise ValueError(f"Invalid path: {path!r} escapes the sandbox") from None
        return target

    async def write_file(self, path: str, contents: str) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.write_text(contents, encoding="utf-8")

        await _run_io(_write)

    async def read_file(self, path: str) -> str:
        target = self._resolve(path)
        return await _run_io(lambda: target.read_text(encoding="utf-8"))

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        target = self._resolve(path)
        await _run_io(lambda: target.mkdir(parents=recursive, exist_ok=recursive))

    async def rm(self, path: str, recursive: bool = False) -> None:
        target = self._resolve(path)

        def _remove() -> None:
            if target.is_dir() and not target.is_symlink():
                if recursive:
                    shutil.rmtree(target)
                else:
                    target.rmdir()
            else:
                target.unlink()

        await _run_io(_remove)


class LocalProcess:
    """A subprocess spawned in a local sandbox.

    Output is read as merged stdout/stderr, decoded incrementally as UTF-8,
    and passed through the container's readiness scanner before being
    yielded.
    """

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        on_text: Callable[[str], None],
    ) -> None:
        self._proc = proc
        self._on_text = on_text
        self._output = self._read_output()

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def output(self) -> AsyncIterator[str]:
        return self._output

    async def _read_output(self) -> AsyncIterator[str]:
        stream = self._proc.stdout
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await stream.read(READ_CHUNK_SIZE)
            if not data:
                break
            text = decoder.decode(data)
            if text:
                self._on_text(text)
                yield text
        tail = decoder.decode(b"", final=True)
        if tail:
            self._on_text(tail)
            yield tail

    async def wait(self) -> int:
        return await self._proc.wait()

    def kill(self) -> None:
        if self._proc.returncode is not None:
            return
        try:
            if hasattr(os, "killpg"):
                # npm forks the real server; kill the whole session
                os.killpg(self._proc.pid, signal.SIGKILL)
            else:
                self._proc.kill()
        except ProcessLookupError:
            pass


class _ReadinessScanner:
    """Finds server URLs in a process's output, across chunk boundaries."""

    MAX_PENDING = 8192

    def __init__(self, emit: Callable[[int, str], None]) -> None:
        self._emit = emit
        self._pending = ""
        self._seen: set[str] = set()

    def feed(self, text: str) -> None:
        self._pending += text
        *lines, self._pending = self._pending.split("\n")
        if len(self._pending) > self.MAX_PENDING:
            lines.append(self._pending)
            self._pending = ""
        for line in lines:
            self._scan(line)

    def _scan(self, line: str) -> None:
        for match in SERVER_URL_RE.finditer(ANSI_ESCAPE_RE.sub("", line)):
            url, port = match.group(1), int(match.group(2))
            if url not in self._seen:
                self._seen.add(url)
                self._emit(port, url)


class LocalSandboxContainer:
    """A working directory plus the processes spawned in it.

    WARNING: NOT for production use. Provides no security isolation.
    """

    def __init__(self, root: Path, env: dict[str, str] | None = None) -> None:
        self.root = root
        self._env = env or {}
        self._fs = LocalFileSystem(root)
        self._listener: ServerReadyListener | None = None
        self._processes: list[LocalProcess] = []

    @property
    def fs(self) -> LocalFileSystem:
        return self._fs

    async def mount(self, tree: dict[str, Any]) -> None:
        def _write_tree(base: Path, entries: dict[str, Any]) -> None:
            base.mkdir(parents=True, exist_ok=True)
            for name, node in entries.items():
                if "directory" in node:
                    _write_tree(base / name, node["directory"])
                else:
                    (base / name).write_text(node["file"]["contents"], encoding="utf-8")

        await _run_io(lambda: _write_tree(self.root, tree))

    async def spawn(self, program: str, args: list[str]) -> LocalProcess:
        env = {**os.environ, **self._env}
        proc = await asyncio.create_subprocess_exec(
            program,
            *args,
            cwd=self.root,
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            start_new_session=True,
        )
        scanner = _ReadinessScanner(self._emit_server_ready)
        process = LocalProcess(proc, scanner.feed)
        self._processes = [p for p in self._processes if p.returncode is None]
        self._processes.append(process)
        logger.debug("Spawned process", context={"program": program, "args": args, "pid": proc.pid})
        return process

    def on_server_ready(self, listener: ServerReadyListener | None) -> None:
        self._listener = listener

    def _emit_server_ready(self, port: int, url: str) -> None:
        if self._listener is not None:
            self._listener(port, url)

    async def teardown(self) -> None:
        for process in self._processes:
            process.kill()
        self._processes.clear()
        await _run_io(lambda: shutil.rmtree(self.root, ignore_errors=True))


class LocalSandboxRuntime:
    """Boots sandboxes as temporary directories on this machine."""

    def __init__(
        self,
        workdir: str | None = None,
        env: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize local runtime.

        Args:
            workdir: Parent directory for sandbox roots (system temp if unset)
            env: Extra environment variables for spawned processes
            **kwargs: Ignored (for compatibility with other backends)
        """
        self._workdir = Path(workdir) if workdir else None
        self._env = env or {}

    async def boot(self) -> LocalSandboxContainer:
        def _make_root() -> Path:
            if self._workdir is not None:
                self._workdir.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix="workbench-sandbox-", dir=self._workdir))

        root = await _run_io(_make_root)
        logger.info("Local sandbox created", context={"root": str(root)})
        return LocalSandboxContainer(root, env=self._env)
