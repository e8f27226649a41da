"""Workbench Core exceptions."""


class WorkbenchError(Exception):
    """Base exception for workbench-core."""

    pass


class ConfigError(WorkbenchError):
    """Configuration error."""

    pass


class ValidationError(WorkbenchError):
    """A file intent was rejected before any state changed."""

    pass


class ConflictError(WorkbenchError):
    """The target of a create or rename already exists."""

    pass


class NotFoundError(WorkbenchError):
    """Path not found in the workspace."""

    pass


class SandboxError(WorkbenchError):
    """Sandbox runtime error."""

    pass


class BootError(SandboxError):
    """The sandbox failed to boot."""

    pass


class MountError(SandboxError):
    """The project files could not be mounted into the sandbox."""

    pass


class InstallFailure(SandboxError):
    """The install command exited with a non-zero code."""

    def __init__(self, exit_code: int) -> None:
        self.exit_code = exit_code
        super().__init__(f"Install failed with exit code {exit_code}")


class SyncError(SandboxError):
    """A file operation could not be propagated to the live sandbox."""

    def __init__(self, path: str, operation: str, cause: Exception | None = None) -> None:
        self.path = path
        self.operation = operation
        self.cause = cause
        message = f"Failed to sync {operation} for {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
