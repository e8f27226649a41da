"""Factory function for creating sandbox runtimes."""

from typing import Any

from workbench_core.exceptions import ConfigError
from workbench_core.plugins import get_sandbox_runtime
from workbench_core.protocols import SandboxRuntime


def create_sandbox_runtime(backend: str = "local", **kwargs: Any) -> SandboxRuntime:
    """Create a sandbox runtime by backend name.

    Args:
        backend: "local", "mock", or a name registered under the
            ``workbench_core.sandboxes`` entry-point group
        **kwargs: Backend-specific options

    Returns:
        Configured sandbox runtime

    Raises:
        ConfigError: If the backend is unknown
    """
    if backend == "local":
        from workbench_core.sandbox.local import LocalSandboxRuntime

        return LocalSandboxRuntime(**kwargs)

    elif backend == "mock":
        from workbench_core.sandbox.mock import MockSandboxRuntime

        return MockSandboxRuntime(**kwargs)

    try:
        cls = get_sandbox_runtime(backend)
    except ValueError as e:
        raise ConfigError(f"Unknown sandbox backend: {backend}. {e}") from e
    return cls(**kwargs)
