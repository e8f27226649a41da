"""Structured logging and run metrics.

Every log line is a JSON object carrying the workspace and run identifiers
of the code that emitted it, so a single run can be followed from boot to
stop across the supervisor, the sync worker and the output pumps.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable

workspace_id_var: ContextVar[str | None] = ContextVar("workspace_id", default=None)
run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)


def current_context() -> dict[str, str]:
    """Identifiers bound in the current task, without unset ones."""
    context = {"workspace_id": workspace_id_var.get(), "run_id": run_id_var.get()}
    return {key: value for key, value in context.items() if value}


class StructuredFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logger": record.name,
        }

        context = current_context()
        if isinstance(getattr(record, "context", None), dict):
            context.update(record.context)
        if context:
            data["context"] = context

        if record.exc_info and record.exc_info[1] is not None:
            data["error"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        duration_ms = getattr(record, "duration_ms", None)
        if duration_ms is not None:
            data["duration_ms"] = duration_ms
        return json.dumps(data, default=str)


class StructuredLogger:
    """Wrapper around Python logging with structured output.

    Example:
        logger = StructuredLogger("workbench_core.supervisor")
        logger.info("Install finished", context={"exit_code": 0})
        logger.error("Boot failed", error=exception)
    """

    def __init__(self, name: str) -> None:
        """Initialize structured logger.

        Records propagate to the ``workbench_core`` logger, which
        ``configure_logging`` equips with a handler.
        """
        self.logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        message: str,
        context: dict[str, Any] | None = None,
        error: Exception | None = None,
        duration_ms: float | None = None,
    ) -> None:
        extra: dict[str, Any] = {}
        if context:
            extra["context"] = context
        if duration_ms is not None:
            extra["duration_ms"] = duration_ms

        exc_info = (type(error), error, error.__traceback__) if error else None
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, context: dict[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, message, context)

    def info(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(logging.INFO, message, context, duration_ms=duration_ms)

    def warning(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._log(logging.WARNING, message, context, error)

    def error(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: Exception | None = None,
        duration_ms: float | None = None,
    ) -> None:
        self._log(logging.ERROR, message, context, error, duration_ms)


class RunContext:
    """Context manager binding a run id (and optionally a workspace id).

    Tasks created inside the block inherit the identifiers, so output pumps
    and the dev-process watcher log under the run that spawned them.

    Example:
        with RunContext(workspace_id="ws-1"):
            logger.info("Booting sandbox")
    """

    def __init__(self, workspace_id: str | None = None, run_id: str | None = None) -> None:
        self.workspace_id = workspace_id
        self.run_id = run_id or f"run-{uuid.uuid4().hex[:8]}"
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> "RunContext":
        """Set context variables."""
        self._tokens.append((run_id_var, run_id_var.set(self.run_id)))
        if self.workspace_id:
            self._tokens.append((workspace_id_var, workspace_id_var.set(self.workspace_id)))
        return self

    def __exit__(self, *args: Any) -> None:
        """Reset context variables to their previous values."""
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer() as t:
            await handle.boot()
        logger.info("Sandbox booted", duration_ms=t.duration_ms)
    """

    def __init__(self) -> None:
        self.start_time: float = 0
        self.end_time: float = 0

    @property
    def duration_ms(self) -> float:
        """Get duration in milliseconds."""
        end = self.end_time or time.perf_counter()
        return (end - self.start_time) * 1000

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_time = time.perf_counter()


# Metric collection hook type
MetricCallback = Callable[[str, float, dict[str, Any]], None]

_metric_callbacks: list[MetricCallback] = []


def register_metric_callback(callback: MetricCallback) -> None:
    """Register a callback to receive metric events.

    Args:
        callback: Function(name, value, labels) to call on metrics
    """
    _metric_callbacks.append(callback)


def unregister_metric_callback(callback: MetricCallback) -> None:
    """Remove a previously registered metric callback."""
    if callback in _metric_callbacks:
        _metric_callbacks.remove(callback)


def emit_metric(name: str, value: float, labels: dict[str, Any] | None = None) -> None:
    """Emit a metric to all registered callbacks.

    Args:
        name: Metric name
        value: Metric value
        labels: Optional labels/dimensions
    """
    labels = labels or {}

    workspace_id = workspace_id_var.get()
    if workspace_id:
        labels.setdefault("workspace_id", workspace_id)

    for callback in _metric_callbacks:
        try:
            callback(name, value, labels)
        except Exception:
            pass  # Metric sinks never affect the run pipeline


def emit_counter(name: str, labels: dict[str, Any] | None = None) -> None:
    """Emit a counter metric (increment by 1)."""
    emit_metric(name, 1.0, labels)


def emit_timer(name: str, duration_ms: float, labels: dict[str, Any] | None = None) -> None:
    """Emit a timer metric."""
    emit_metric(name, duration_ms, labels)


def configure_logging(
    level: str = "INFO",
    format: str = "json",
) -> None:
    """Configure the package logger.

    Args:
        level: Minimum log level name, in any case
        format: Output format ("json" or "text")
    """
    root_logger = logging.getLogger("workbench_core")
    root_logger.setLevel(level.upper())
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))

    root_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structured logger
    """
    return StructuredLogger(name)
