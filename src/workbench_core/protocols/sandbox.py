"""Sandbox protocols for execution runtimes."""

from collections.abc import AsyncIterator
from typing import Any, Callable, Protocol

# (port, url) emitted when a spawned server becomes reachable
ServerReadyListener = Callable[[int, str], None]


class SandboxProcess(Protocol):
    """A process spawned inside a sandbox."""

    @property
    def output(self) -> AsyncIterator[str | bytes]:
        """Merged stdout/stderr chunks, in the order the process wrote them."""
        ...

    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        ...

    def kill(self) -> None:
        """Kill the process. No-op if it already exited."""
        ...


class SandboxFileSystem(Protocol):
    """The live filesystem of a booted sandbox."""

    async def write_file(self, path: str, contents: str) -> None:
        """Write a text file, replacing existing content."""
        ...

    async def read_file(self, path: str) -> str:
        """Read a text file."""
        ...

    async def mkdir(self, path: str, recursive: bool = False) -> None:
        """Create a directory."""
        ...

    async def rm(self, path: str, recursive: bool = False) -> None:
        """Remove a file or directory."""
        ...


class SandboxContainer(Protocol):
    """A booted sandbox: a filesystem plus a process table."""

    @property
    def fs(self) -> SandboxFileSystem:
        """The container's live filesystem."""
        ...

    async def mount(self, tree: dict[str, Any]) -> None:
        """Write a whole filesystem tree in one call.

        ``tree`` maps a path segment to ``{"file": {"contents": str}}`` or
        ``{"directory": {...}}``.
        """
        ...

    async def spawn(self, program: str, args: list[str]) -> SandboxProcess:
        """Start a program with its argv."""
        ...

    def on_server_ready(self, listener: ServerReadyListener | None) -> None:
        """Set the single readiness listener, replacing any previous one."""
        ...

    async def teardown(self) -> None:
        """Release the container's resources."""
        ...


class SandboxRuntime(Protocol):
    """Factory for sandbox containers (local subprocess, mock, remote)."""

    async def boot(self) -> SandboxContainer:
        """Boot a new container."""
        ...
