"""Workbench Core - orchestration of an in-browser development workspace."""

from workbench_core.config import Config
from workbench_core.exceptions import (
    BootError,
    ConflictError,
    InstallFailure,
    MountError,
    NotFoundError,
    SyncError,
    ValidationError,
    WorkbenchError,
)
from workbench_core.notifications import Notification, NotificationLevel
from workbench_core.observability import (
    RunContext,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
)
from workbench_core.orchestrator import WorkspaceOrchestrator
from workbench_core.output import BufferedTerminal, OutputRouter
from workbench_core.sandbox import SandboxHandle, create_sandbox_runtime
from workbench_core.supervisor import ProcessSupervisor, RunState
from workbench_core.sync import SyncBridge
from workbench_core.workspace import EditorState, FileStore, project_tree

__version__ = "0.1.0"
__all__ = [
    # Core
    "Config",
    "WorkspaceOrchestrator",
    # Components
    "BufferedTerminal",
    "EditorState",
    "FileStore",
    "OutputRouter",
    "ProcessSupervisor",
    "RunState",
    "SandboxHandle",
    "SyncBridge",
    "create_sandbox_runtime",
    "project_tree",
    # Notifications
    "Notification",
    "NotificationLevel",
    # Errors
    "BootError",
    "ConflictError",
    "InstallFailure",
    "MountError",
    "NotFoundError",
    "SyncError",
    "ValidationError",
    "WorkbenchError",
    # Observability
    "RunContext",
    "StructuredLogger",
    "Timer",
    "configure_logging",
    "emit_counter",
    "emit_metric",
    "emit_timer",
    "get_logger",
    "register_metric_callback",
]
