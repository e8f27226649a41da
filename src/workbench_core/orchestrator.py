"""Workspace orchestrator: the API surface the UI collaborators talk to."""

import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from workbench_core.archive import archive_filename, export_zip
from workbench_core.config import Config
from workbench_core.exceptions import NotFoundError, ValidationError
from workbench_core.notifications import Notification, Notifier, NotifyCallback
from workbench_core.observability import RunContext, get_logger
from workbench_core.output import BufferedTerminal, OutputRouter
from workbench_core.protocols import SandboxRuntime, TerminalSink
from workbench_core.sandbox import SandboxHandle, create_sandbox_runtime
from workbench_core.starter import DEFAULT_ACTIVE_FILE, starter_files
from workbench_core.supervisor import ProcessSupervisor, RunState
from workbench_core.sync import SyncBridge
from workbench_core.workspace import EditorState, FileStore, TreeNode, project_tree

logger = get_logger(__name__)


def seed_files(config: Config) -> dict[str, str]:
    """Initial files for a new workspace, per the project config."""
    files = starter_files(config.project.name) if config.project.seed == "starter" else {}
    files.update(config.project.files)
    return files


class WorkspaceOrchestrator:
    """Owns the project files and drives the sandbox that runs them.

    File intents mutate the FileStore synchronously and queue the matching
    sandbox operation; run intents go through the ProcessSupervisor.

    Example usage:
        workspace = WorkspaceOrchestrator.from_dict({"sandbox": {"backend": "mock"}})
        path = workspace.create_file("src", "util.js")
        workspace.update_content("export const x = 1;")
        await workspace.run()
        workspace.preview_url
        workspace.stop()
    """

    def __init__(
        self,
        config: Config | None = None,
        runtime: SandboxRuntime | None = None,
        files: FileStore | Mapping[str, str] | None = None,
        terminal: TerminalSink | None = None,
        notify: NotifyCallback | None = None,
        workspace_id: str | None = None,
    ) -> None:
        """Initialize the workspace.

        Args:
            config: Workspace configuration (defaults apply when omitted)
            runtime: Sandbox runtime; built from ``config.sandbox`` if omitted
            files: Initial files; seeded from ``config.project`` if omitted
            terminal: Sink for process output; a BufferedTerminal by default
            notify: Callback receiving user-visible notifications
            workspace_id: Identifier used in logs
        """
        self.config = config or Config()
        self.workspace_id = workspace_id or f"ws-{uuid.uuid4().hex[:8]}"

        if isinstance(files, FileStore):
            self._files = files
        else:
            self._files = FileStore(seed_files(self.config) if files is None else files)

        self._editor = EditorState()
        if files is None and DEFAULT_ACTIVE_FILE in self._files:
            self._editor.select(DEFAULT_ACTIVE_FILE)

        sandbox_config = self.config.sandbox
        self._runtime = runtime or create_sandbox_runtime(
            sandbox_config.backend,
            workdir=sandbox_config.workdir,
            env=sandbox_config.env,
            **sandbox_config.options,
        )

        self.terminal = terminal if terminal is not None else BufferedTerminal()
        self.notifier = Notifier(notify)
        self.output = OutputRouter(self.terminal)
        self.handle = SandboxHandle(self._runtime)
        self.sync = SyncBridge(
            max_retries=self.config.sync.max_retries,
            retry_delay_seconds=self.config.sync.retry_delay_seconds,
        )
        self.supervisor = ProcessSupervisor(
            handle=self.handle,
            files=self._files,
            sync=self.sync,
            output=self.output,
            pipeline=self.config.pipeline,
            notifier=self.notifier,
        )

        self._tree: list[TreeNode] = []
        self._tree_revision = -1

    @classmethod
    def from_config(cls, path: str | Path, **kwargs: Any) -> "WorkspaceOrchestrator":
        """Create a workspace from a YAML or JSON configuration file."""
        return cls(Config.from_file(path), **kwargs)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any], **kwargs: Any) -> "WorkspaceOrchestrator":
        """Create a workspace from a configuration dictionary."""
        return cls(Config.from_dict(config_dict), **kwargs)

    # State views

    @property
    def files(self) -> FileStore:
        return self._files

    @property
    def project_name(self) -> str:
        return self.config.project.name

    @property
    def open_files(self) -> list[str]:
        return self._editor.open_files

    @property
    def active_file(self) -> str | None:
        return self._editor.active_file

    @property
    def active_content(self) -> str:
        """Content the editor should show ("" when nothing is active)."""
        if self.active_file is None:
            return ""
        return self._files.get(self.active_file, "") or ""

    @property
    def run_state(self) -> RunState:
        return self.supervisor.state

    @property
    def is_running(self) -> bool:
        return self.supervisor.is_running

    @property
    def is_loading(self) -> bool:
        return self.supervisor.is_loading

    @property
    def preview_url(self) -> str | None:
        return self.supervisor.preview_url

    @property
    def diverged_paths(self) -> set[str]:
        return self.sync.diverged_paths

    @property
    def notifications(self) -> list[Notification]:
        return self.notifier.items

    def tree(self) -> list[TreeNode]:
        """Display tree, recomputed only after the files changed."""
        if self._tree_revision != self._files.revision:
            self._tree = project_tree(self._files.paths())
            self._tree_revision = self._files.revision
        return self._tree

    def status(self) -> dict[str, Any]:
        """Snapshot of the run and sync state."""
        return {
            "workspace_id": self.workspace_id,
            "state": self.run_state.value,
            "is_running": self.is_running,
            "is_loading": self.is_loading,
            "preview_url": self.preview_url,
            "sandbox_booted": self.handle.is_booted,
            "diverged_paths": sorted(self.diverged_paths),
            "last_error": str(self.supervisor.last_error) if self.supervisor.last_error else None,
        }

    # Editor intents

    def select_file(self, path: str) -> None:
        """Open ``path`` in the editor and make it active."""
        if path not in self._files:
            raise NotFoundError(f"File not found: {path}")
        self._editor.select(path)

    def close_file(self, path: str) -> None:
        """Close an editor tab."""
        self._editor.close(path)

    def update_content(self, content: str) -> None:
        """Apply the editor's content-changed event to the active file."""
        path = self.active_file
        if path is None:
            raise ValidationError("No file is open for editing")
        self.write_file(path, content)

    # File intents

    def write_file(self, path: str, content: str) -> None:
        """Insert or overwrite a file."""
        self._files.write(path, content)
        self.sync.write(path, content)

    def create_file(self, dir_path: str, name: str) -> str:
        """Create an empty file and open it.

        Returns:
            The new file's path
        """
        path = self._files.create(dir_path, name)
        self._editor.select(path)
        self.sync.create_file(path)
        logger.info("File created", context={"path": path})
        self.notifier.success(f"Created {name}")
        return path

    def create_folder(self, dir_path: str, name: str) -> str:
        """Create an empty folder.

        Returns:
            The new folder's path
        """
        path = self._files.create_directory(dir_path, name)
        self.sync.mkdir(path)
        logger.info("Folder created", context={"path": path})
        self.notifier.success(f"Created folder {name}")
        return path

    def delete_path(self, path: str) -> list[str]:
        """Delete a file, or a folder with everything in it.

        Returns:
            The removed file paths
        """
        removed = self._files.delete(path)
        self._editor.forget(path)
        if not removed:
            return removed

        self.sync.remove(path)
        logger.info("Path deleted", context={"path": path, "removed": len(removed)})
        self.notifier.success(f"Deleted {path.rsplit('/', 1)[-1]}")
        return removed

    def rename_path(self, old_path: str, new_name: str) -> str:
        """Rename a file in place.

        Returns:
            The new path
        """
        new_path = self._files.rename(old_path, new_name)
        if new_path == old_path:
            return new_path

        self._editor.rename(old_path, new_path)
        self.sync.rename(old_path, new_path)
        logger.info("Path renamed", context={"from": old_path, "to": new_path})
        self.notifier.success(f"Renamed to {new_name}")
        return new_path

    # Run intents

    async def run(self) -> RunState:
        """Boot (once), mount (once), install, then start the dev server."""
        with RunContext(workspace_id=self.workspace_id):
            return await self.supervisor.run()

    def stop(self) -> bool:
        """Stop the running project; the sandbox stays booted."""
        with RunContext(workspace_id=self.workspace_id):
            return self.supervisor.stop()

    # Export / fork

    @property
    def archive_name(self) -> str:
        return archive_filename(self.project_name)

    def export_archive(self) -> bytes:
        """Zip of every project file."""
        data = export_zip(self._files.snapshot())
        self.notifier.success("Project downloaded as ZIP!")
        return data

    def fork(self) -> "WorkspaceOrchestrator":
        """A new workspace over a copy of the files; no sandbox state is shared."""
        forked = WorkspaceOrchestrator(
            config=self.config,
            runtime=self._runtime,
            files=self._files.fork(),
            terminal=BufferedTerminal(),
            notify=self.notifier.callback,
        )
        forked._editor.reset(self.open_files, self.active_file)
        logger.info("Workspace forked", context={"fork_id": forked.workspace_id})
        forked.notifier.success("Project forked! You're now working on a copy.")
        return forked

    # Lifecycle

    async def close(self) -> None:
        """Stop everything and tear the sandbox down."""
        self.stop()
        await self.sync.close()
        self.output.close()
        await self.handle.discard()

    def serve(self, host: str | None = None, port: int | None = None) -> None:
        """Start the HTTP server.

        Args:
            host: Host to bind to (defaults to config value)
            port: Port to bind to (defaults to config value)
        """
        import uvicorn

        from workbench_core.observability import configure_logging
        from workbench_core.server.app import create_app

        configure_logging(self.config.logging.level, self.config.logging.format)
        app = create_app(self)
        uvicorn.run(
            app,
            host=host or self.config.server.host,
            port=port or self.config.server.port,
        )

    async def __aenter__(self) -> "WorkspaceOrchestrator":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
