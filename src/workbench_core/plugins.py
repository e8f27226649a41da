"""Discovery of sandbox runtimes registered by other packages.

A third-party runtime (a container service, a remote VM pool) registers its
class under the ``workbench_core.sandboxes`` entry-point group:

    [project.entry-points."workbench_core.sandboxes"]
    firecracker = "my_package.runtime:FirecrackerRuntime"

and is then selectable with ``sandbox.backend: firecracker``.
"""

from importlib.metadata import entry_points
from typing import Any

SANDBOX_GROUP = "workbench_core.sandboxes"


def discover_sandbox_runtimes() -> dict[str, Any]:
    """Load every registered sandbox runtime class.

    Returns:
        Dictionary mapping backend names to runtime classes
    """
    return {ep.name: ep.load() for ep in entry_points(group=SANDBOX_GROUP)}


def get_sandbox_runtime(name: str) -> Any:
    """Look up one registered sandbox runtime class.

    Args:
        name: The backend name (e.g., "local", "mock")

    Raises:
        ValueError: If no runtime is registered under ``name``
    """
    matches = entry_points(group=SANDBOX_GROUP, name=name)
    for ep in matches:
        return ep.load()

    available = ", ".join(sorted(discover_sandbox_runtimes())) or "(none)"
    raise ValueError(f"Sandbox runtime '{name}' is not registered. Available: {available}")
