"""Run pipeline: boot, mount, install, dev server, stop.

State machine:

    IDLE --run()--> BOOTING --> MOUNTING --> INSTALLING --exit 0--> RUNNING
      ^                |            |             |                    |
      +----------------+------------+-------------+--- stop()/failure -+

Failures never leave a dedicated error state: they are reported and the
supervisor returns to IDLE. A boolean latch (not the state alone) guards
re-entry, because boot suspends and a second ``run()`` can arrive before the
first has moved off IDLE.
"""

import asyncio
from enum import Enum

from workbench_core.config import CommandConfig, PipelineConfig
from workbench_core.exceptions import (
    BootError,
    InstallFailure,
    MountError,
    SandboxError,
    WorkbenchError,
)
from workbench_core.notifications import Notifier
from workbench_core.observability import Timer, emit_counter, emit_timer, get_logger
from workbench_core.output import BOLD_BLUE, BOLD_GREEN, BOLD_RED, BOLD_YELLOW, OutputRouter
from workbench_core.protocols import SandboxContainer, SandboxProcess
from workbench_core.sandbox.handle import SandboxHandle
from workbench_core.sync import SyncBridge
from workbench_core.workspace.files import FileStore
from workbench_core.workspace.tree import mount_payload

logger = get_logger(__name__)


class RunState(str, Enum):
    """Lifecycle state of the project run."""

    IDLE = "idle"
    BOOTING = "booting"
    MOUNTING = "mounting"
    INSTALLING = "installing"
    RUNNING = "running"
    STOPPING = "stopping"


class ProcessSupervisor:
    """Drives the install -> dev pipeline and owns the active process.

    Example:
        supervisor = ProcessSupervisor(handle, files, sync, output)
        await supervisor.run()
        supervisor.preview_url  # set once the dev server is reachable
        supervisor.stop()
    """

    def __init__(
        self,
        handle: SandboxHandle,
        files: FileStore,
        sync: SyncBridge,
        output: OutputRouter,
        pipeline: PipelineConfig | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.handle = handle
        self.files = files
        self.sync = sync
        self.output = output
        self.pipeline = pipeline or PipelineConfig()
        self.notifier = notifier or Notifier()

        self._state = RunState.IDLE
        self._latch = False
        self._generation = 0
        self._active: SandboxProcess | None = None
        self._dev_watch: asyncio.Task[None] | None = None
        self.preview_url: str | None = None
        self.is_loading = False
        self.is_running = False
        self.last_error: WorkbenchError | None = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def active_process(self) -> SandboxProcess | None:
        return self._active

    async def run(self) -> RunState:
        """Run the project; a no-op while a run is already in progress.

        Failures are reported through the notifier and the terminal, never
        raised.

        Returns:
            The state after the pipeline settled (RUNNING on success)
        """
        if self._latch:
            logger.debug("Run ignored, already in progress", context={"state": self._state.value})
            return self._state

        self._latch = True
        self._generation += 1
        generation = self._generation
        self.is_running = True
        self.is_loading = True
        self.preview_url = None
        self.last_error = None
        emit_counter("run.started")

        with Timer() as timer:
            await self._pipeline(generation)

        logger.info(
            "Run pipeline settled",
            context={"state": self._state.value},
            duration_ms=timer.duration_ms,
        )
        return self._state

    def stop(self) -> bool:
        """Kill the active process and return to IDLE.

        The sandbox stays booted for a faster next run.

        Returns:
            False if there was nothing to stop
        """
        if self._state is RunState.IDLE and not self._latch and self._active is None:
            return False

        self._set_state(RunState.STOPPING)
        self._generation += 1

        process, self._active = self._active, None
        if process is not None:
            try:
                process.kill()
            except Exception as e:
                logger.warning("Failed to kill process", error=e)

        if self._dev_watch is not None:
            self._dev_watch.cancel()
            self._dev_watch = None

        self._reset()
        self.output.write_line()
        self.output.write_line("■ Process stopped", BOLD_YELLOW)
        emit_counter("run.stopped")
        return True

    async def _pipeline(self, generation: int) -> None:
        container = await self._boot(generation)
        if container is None or not await self._mount(generation):
            return
        if not await self._install(container, generation):
            return
        await self._start_dev(container, generation)

    async def _boot(self, generation: int) -> SandboxContainer | None:
        self._set_state(RunState.BOOTING)
        self.output.write_line("⚡ Booting sandbox...", BOLD_YELLOW)
        try:
            container = await self.handle.boot()
        except BootError as e:
            await self._fail(generation, e, "Failed to boot sandbox", discard=True)
            return None
        if self._cancelled(generation):
            return None

        self.output.write_line("✓ Sandbox booted", BOLD_GREEN)
        self.handle.on_server_ready(self._on_server_ready)
        return container

    async def _mount(self, generation: int) -> bool:
        if self.handle.is_mounted:
            return not self._cancelled(generation)

        self._set_state(RunState.MOUNTING)
        self.output.write_line("📁 Mounting project files...", BOLD_BLUE)

        # Snapshot and arm together: later edits queue behind the mount
        snapshot = self.files.snapshot()
        self.sync.arm()
        try:
            await self.handle.mount(mount_payload(snapshot))
        except (BootError, MountError) as e:
            self.sync.disarm()
            await self._fail(generation, e, "Failed to mount project files", discard=True)
            return False

        fs = self.handle.fs
        if fs is not None:
            self.sync.start(fs)
        if self._cancelled(generation):
            return False

        self.output.write_line(f"✓ Mounted {len(snapshot)} files", BOLD_GREEN)
        return True

    async def _install(self, container: SandboxContainer, generation: int) -> bool:
        self._set_state(RunState.INSTALLING)
        command = self.pipeline.install
        process = await self._spawn(container, command, generation)
        if process is None:
            return False

        self._active = process
        pump = self.output.attach(process.output, "install")
        with Timer() as timer:
            exit_code = await process.wait()
            # Install output must be fully forwarded before dev starts
            await asyncio.gather(pump, return_exceptions=True)

        if self._active is process:
            self._active = None
        if self._cancelled(generation):
            return False

        emit_timer("run.install.duration", timer.duration_ms, {"exit_code": exit_code})
        if exit_code != 0:
            self.output.write_line(
                f"✗ {command.display()} failed with exit code {exit_code}", BOLD_RED
            )
            await self._fail(generation, InstallFailure(exit_code), "Install failed")
            return False

        logger.info("Install finished", context={"exit_code": exit_code}, duration_ms=timer.duration_ms)
        self.output.write_line()
        self.output.write_line("✓ Dependencies installed", BOLD_GREEN)
        self.output.write_line()
        return True

    async def _start_dev(self, container: SandboxContainer, generation: int) -> None:
        self._set_state(RunState.RUNNING)
        process = await self._spawn(container, self.pipeline.dev, generation)
        if process is None:
            return

        self._active = process
        self.output.attach(process.output, "dev")
        self._dev_watch = asyncio.create_task(self._watch_dev(process, generation))
        emit_counter("run.dev.spawned")

    async def _spawn(
        self,
        container: SandboxContainer,
        command: CommandConfig,
        generation: int,
    ) -> SandboxProcess | None:
        self.output.write_line(f"$ {command.display()}", BOLD_BLUE)
        try:
            process = await container.spawn(command.program, list(command.args))
        except Exception as e:
            error = SandboxError(f"Failed to start {command.display()}: {e}")
            await self._fail(generation, error, f"Failed to start {command.display()}")
            return None

        if self._cancelled(generation):
            process.kill()
            return None
        logger.info("Process spawned", context={"command": command.display()})
        return process

    async def _watch_dev(self, process: SandboxProcess, generation: int) -> None:
        exit_code = await process.wait()
        if self._cancelled(generation) or self._active is not process:
            return

        self._active = None
        self._dev_watch = None
        logger.warning("Dev process exited", context={"exit_code": exit_code})
        self.output.write_line()
        self.output.write_line(f"■ {self.pipeline.dev.display()} exited with code {exit_code}", BOLD_YELLOW)
        self.notifier.warning(f"Dev server exited with code {exit_code}")
        self._reset()

    def _on_server_ready(self, port: int, url: str) -> None:
        if self._state is not RunState.RUNNING:
            logger.debug("Readiness ignored", context={"state": self._state.value, "url": url})
            return

        first = self.is_loading
        self.preview_url = url
        self.is_loading = False
        self.output.write_line()
        self.output.write_line(f"✓ Dev server ready at {url}", BOLD_GREEN)
        if first:
            emit_counter("run.ready")

    async def _fail(
        self,
        generation: int,
        error: WorkbenchError,
        message: str,
        discard: bool = False,
    ) -> None:
        logger.error(message, error=error)
        emit_counter("run.failed", {"error": type(error).__name__})
        if discard:
            await self.handle.discard()

        if self._cancelled(generation):
            return
        if not isinstance(error, InstallFailure):
            self.output.write_line(f"✗ {error}", BOLD_RED)
        self.last_error = error
        self._reset()
        self.notifier.error(str(error) if isinstance(error, InstallFailure) else message)

    def _cancelled(self, generation: int) -> bool:
        return generation != self._generation

    def _reset(self) -> None:
        self._set_state(RunState.IDLE)
        self.preview_url = None
        self.is_loading = False
        self.is_running = False
        self._latch = False

    def _set_state(self, state: RunState) -> None:
        if state is not self._state:
            logger.debug(
                "Run state changed",
                context={"from": self._state.value, "to": state.value},
            )
            self._state = state
