"""Sandbox runtimes and the session sandbox handle."""

from workbench_core.sandbox.factory import create_sandbox_runtime
from workbench_core.sandbox.handle import SandboxHandle

__all__ = [
    "SandboxHandle",
    "create_sandbox_runtime",
]
