"""Session-wide handle on the one live sandbox."""

from typing import Any

from workbench_core.exceptions import BootError, MountError
from workbench_core.observability import Timer, emit_counter, emit_timer, get_logger
from workbench_core.protocols import (
    SandboxContainer,
    SandboxFileSystem,
    SandboxRuntime,
    ServerReadyListener,
)
from workbench_core.singleflight import SingleFlight

logger = get_logger(__name__)

_BOOT_KEY = "boot"
_MOUNT_KEY = "mount"


class SandboxHandle:
    """Lazily boots and then reuses a single sandbox container.

    The container survives stop/run cycles. It is only replaced when boot
    or mount fails (``discard``) or the workspace closes.

    Example:
        handle = SandboxHandle(runtime)
        container = await handle.boot()
        await handle.mount(mount_payload(files))
    """

    def __init__(self, runtime: SandboxRuntime) -> None:
        self._runtime = runtime
        self._container: SandboxContainer | None = None
        self._mounted = False
        self._discards = 0
        self._listener: ServerReadyListener | None = None
        self._single_flight = SingleFlight()

    @property
    def container(self) -> SandboxContainer | None:
        return self._container

    @property
    def is_booted(self) -> bool:
        return self._container is not None

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def fs(self) -> SandboxFileSystem | None:
        """Live filesystem, or None before boot."""
        return self._container.fs if self._container is not None else None

    async def boot(self) -> SandboxContainer:
        """Return the live container, booting it on first use.

        Concurrent callers share a single underlying boot.

        Raises:
            BootError: If the runtime fails to boot
        """
        if self._container is not None:
            return self._container
        return await self._single_flight.do(_BOOT_KEY, self._boot)

    async def _boot(self) -> SandboxContainer:
        if self._container is not None:
            return self._container

        discards = self._discards
        with Timer() as timer:
            logger.info("Booting sandbox")
            try:
                container = await self._runtime.boot()
            except Exception as e:
                logger.error("Sandbox boot failed", error=e)
                emit_counter("sandbox.boot.failed")
                raise BootError(f"Failed to boot sandbox: {e}") from e

        if discards != self._discards:
            # Discarded mid-boot
            await _teardown(container)
            raise BootError("Sandbox was discarded while booting")

        container.on_server_ready(self._dispatch_server_ready)
        self._container = container
        self._mounted = False
        logger.info("Sandbox booted", duration_ms=timer.duration_ms)
        emit_timer("sandbox.boot.duration", timer.duration_ms)
        return container

    async def mount(self, tree: dict[str, Any]) -> bool:
        """Mount the project tree, once per container lifetime.

        Returns:
            True if the tree was written, False if already mounted

        Raises:
            BootError: If no container is booted
            MountError: If the container rejected the tree
        """
        if self._container is None:
            raise BootError("Sandbox is not booted")
        if self._mounted:
            return False
        return await self._single_flight.do(_MOUNT_KEY, lambda: self._mount(tree))

    async def _mount(self, tree: dict[str, Any]) -> bool:
        container = self._container
        if container is None:
            raise BootError("Sandbox is not booted")
        if self._mounted:
            return False

        with Timer() as timer:
            try:
                await container.mount(tree)
            except Exception as e:
                logger.error("Mount failed", error=e)
                raise MountError(f"Failed to mount project files: {e}") from e

        self._mounted = True
        logger.info(
            "Project files mounted",
            context={"top_level_entries": len(tree)},
            duration_ms=timer.duration_ms,
        )
        return True

    async def discard(self) -> None:
        """Drop the container so the next boot starts fresh."""
        container = self._container
        self._container = None
        self._mounted = False
        self._discards += 1
        if container is None:
            return

        container.on_server_ready(None)
        await _teardown(container)
        logger.info("Sandbox discarded")

    def on_server_ready(self, listener: ServerReadyListener | None) -> None:
        """Set the single readiness listener; a new one replaces the old."""
        self._listener = listener

    def _dispatch_server_ready(self, port: int, url: str) -> None:
        logger.info("Server ready", context={"port": port, "url": url})
        if self._listener is not None:
            self._listener(port, url)


async def _teardown(container: SandboxContainer) -> None:
    try:
        await container.teardown()
    except Exception as e:
        logger.warning("Sandbox teardown failed", error=e)
