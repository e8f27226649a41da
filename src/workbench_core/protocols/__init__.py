"""Protocol interfaces for pluggable sandboxes and terminals."""

from workbench_core.protocols.sandbox import (
    SandboxContainer,
    SandboxFileSystem,
    SandboxProcess,
    SandboxRuntime,
    ServerReadyListener,
)
from workbench_core.protocols.terminal import TerminalSink

__all__ = [
    "SandboxContainer",
    "SandboxFileSystem",
    "SandboxProcess",
    "SandboxRuntime",
    "ServerReadyListener",
    "TerminalSink",
]
