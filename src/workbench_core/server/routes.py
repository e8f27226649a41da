"""HTTP route handlers for the workspace UI.

Process output is streamed as NDJSON (newline-delimited JSON) over chunked
HTTP: one ``{"type": "output", "data": ...}`` object per terminal chunk.
"""

import asyncio
import functools
import json
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING, Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from workbench_core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
    WorkbenchError,
)
from workbench_core.observability import get_logger
from workbench_core.output import BufferedTerminal

if TYPE_CHECKING:
    from workbench_core.orchestrator import WorkspaceOrchestrator

logger = get_logger(__name__)

# Seconds between keepalive lines on an idle terminal stream
KEEPALIVE_SECONDS = 15.0

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
}


def error_response(error: WorkbenchError) -> JSONResponse:
    """Map a workbench error to a JSON error response."""
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return JSONResponse({"error": str(error)}, status_code=status_code)
    return JSONResponse({"error": str(error)}, status_code=500)


def translate_errors(
    handler: Callable[[Request], Awaitable[Response]],
) -> Callable[[Request], Awaitable[Response]]:
    """Decorator turning WorkbenchError into JSON error responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except WorkbenchError as e:
            return error_response(e)

    return wrapper


class NDJSONResponse(StreamingResponse):
    """Newline-delimited JSON streaming response."""

    media_type = "application/x-ndjson"

    def __init__(
        self,
        content: AsyncIterator[str],
        status_code: int = 200,
        headers: dict | None = None,
    ) -> None:
        ndjson_headers = {
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        }
        if headers:
            ndjson_headers.update(headers)

        super().__init__(
            content=content,
            status_code=status_code,
            headers=ndjson_headers,
            media_type=self.media_type,
        )


def format_ndjson(data: dict) -> str:
    """Format data as NDJSON line.

    Args:
        data: Data to serialize

    Returns:
        JSON string followed by newline
    """
    return json.dumps(data) + "\n"


async def read_json(request: Request) -> dict[str, Any]:
    """Parse a JSON object body.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise ValidationError("JSON body must be an object")
    return body


def require_field(body: dict[str, Any], name: str) -> str:
    """Get a required string field from a request body."""
    value = body.get(name)
    if not isinstance(value, str):
        raise ValidationError(f"Missing required field: {name}")
    return value


def _workspace(request: Request) -> "WorkspaceOrchestrator":
    return request.app.state.workspace


def create_routes() -> list[Route]:
    """Create HTTP routes for the workspace held in ``app.state.workspace``.

    Returns:
        List of Starlette routes
    """

    async def health(request: Request) -> Response:
        """Health check endpoint."""
        return JSONResponse({"status": "ok", "timestamp": time.time()})

    async def files_list(request: Request) -> Response:
        """Flat mapping of every file."""
        return JSONResponse({"files": _workspace(request).files.snapshot()})

    @translate_errors
    async def file_get(request: Request) -> Response:
        path = request.path_params["path"]
        content = _workspace(request).files.read(path)
        return JSONResponse({"path": path, "content": content})

    @translate_errors
    async def file_put(request: Request) -> Response:
        path = request.path_params["path"]
        body = await read_json(request)
        _workspace(request).write_file(path, require_field(body, "content"))
        return JSONResponse({"path": path})

    @translate_errors
    async def file_delete(request: Request) -> Response:
        path = request.path_params["path"]
        removed = _workspace(request).delete_path(path)
        if not removed:
            raise NotFoundError(f"Path not found: {path}")
        return JSONResponse({"removed": removed})

    @translate_errors
    async def file_create(request: Request) -> Response:
        body = await read_json(request)
        path = _workspace(request).create_file(
            body.get("dir", "."),
            require_field(body, "name"),
        )
        return JSONResponse({"path": path}, status_code=201)

    @translate_errors
    async def folder_create(request: Request) -> Response:
        body = await read_json(request)
        path = _workspace(request).create_folder(
            body.get("dir", "."),
            require_field(body, "name"),
        )
        return JSONResponse({"path": path}, status_code=201)

    @translate_errors
    async def file_rename(request: Request) -> Response:
        body = await read_json(request)
        new_path = _workspace(request).rename_path(
            require_field(body, "path"),
            require_field(body, "name"),
        )
        return JSONResponse({"path": new_path})

    async def tree(request: Request) -> Response:
        """Display tree of the project."""
        nodes = _workspace(request).tree()
        return JSONResponse({"tree": [node.to_dict() for node in nodes]})

    def editor_payload(request: Request) -> dict[str, Any]:
        workspace = _workspace(request)
        return {
            "open_files": workspace.open_files,
            "active_file": workspace.active_file,
            "content": workspace.active_content,
        }

    async def editor(request: Request) -> Response:
        return JSONResponse(editor_payload(request))

    @translate_errors
    async def editor_select(request: Request) -> Response:
        body = await read_json(request)
        _workspace(request).select_file(require_field(body, "path"))
        return JSONResponse(editor_payload(request))

    @translate_errors
    async def editor_close(request: Request) -> Response:
        body = await read_json(request)
        _workspace(request).close_file(require_field(body, "path"))
        return JSONResponse(editor_payload(request))

    @translate_errors
    async def editor_content(request: Request) -> Response:
        body = await read_json(request)
        _workspace(request).update_content(require_field(body, "content"))
        return JSONResponse(editor_payload(request))

    async def run(request: Request) -> Response:
        """Start the run pipeline.

        With ``{"wait": true}`` the response is sent once the pipeline
        settles; otherwise it runs in the background.
        """
        workspace = _workspace(request)
        wait = False
        if await request.body():
            try:
                wait = bool((await read_json(request)).get("wait", False))
            except ValidationError as e:
                return error_response(e)

        if wait:
            await workspace.run()
            return JSONResponse(workspace.status())

        task = asyncio.create_task(workspace.run())
        request.app.state.run_tasks.add(task)
        task.add_done_callback(request.app.state.run_tasks.discard)
        return JSONResponse(workspace.status(), status_code=202)

    async def stop(request: Request) -> Response:
        workspace = _workspace(request)
        stopped = workspace.stop()
        return JSONResponse({"stopped": stopped, **workspace.status()})

    async def status(request: Request) -> Response:
        return JSONResponse(_workspace(request).status())

    async def notifications(request: Request) -> Response:
        items = _workspace(request).notifications
        return JSONResponse({"notifications": [item.to_dict() for item in items]})

    async def terminal(request: Request) -> Response:
        """Retained terminal output."""
        sink = _workspace(request).terminal
        output = sink.text() if isinstance(sink, BufferedTerminal) else ""
        return JSONResponse({"output": output})

    async def terminal_stream(request: Request) -> Response:
        """Terminal output as NDJSON: history first, then live chunks.

        Lines:
            {"type": "output", "data": "..."}
            {"type": "ping"}
        """
        sink = _workspace(request).terminal
        if not isinstance(sink, BufferedTerminal):
            return JSONResponse({"error": "Terminal does not support streaming"}, status_code=404)

        queue = sink.subscribe()

        async def generate() -> AsyncIterator[str]:
            try:
                while True:
                    try:
                        chunk = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                    except asyncio.TimeoutError:
                        if await request.is_disconnected():
                            return
                        yield format_ndjson({"type": "ping"})
                        continue
                    yield format_ndjson({"type": "output", "data": chunk})
            finally:
                sink.unsubscribe(queue)

        return NDJSONResponse(generate())

    async def export(request: Request) -> Response:
        """Download the project as a zip archive."""
        workspace = _workspace(request)
        return Response(
            content=workspace.export_archive(),
            media_type="application/zip",
            headers={"Content-Disposition": f'attachment; filename="{workspace.archive_name}"'},
        )

    async def fork(request: Request) -> Response:
        """Replace the served workspace with a fork of it.

        The previous workspace is closed, so its sandbox is released.
        """
        current = _workspace(request)
        forked = current.fork()
        request.app.state.workspace = forked
        await current.close()
        return JSONResponse(
            {"workspace_id": forked.workspace_id, "files": forked.files.snapshot()},
            status_code=201,
        )

    return [
        Route("/health", health, methods=["GET"]),
        Route("/ping", health, methods=["GET"]),  # Alias
        # Files
        Route("/files", files_list, methods=["GET"]),
        Route("/files", file_create, methods=["POST"]),
        Route("/files/rename", file_rename, methods=["POST"]),
        Route("/files/{path:path}", file_get, methods=["GET"]),
        Route("/files/{path:path}", file_put, methods=["PUT"]),
        Route("/files/{path:path}", file_delete, methods=["DELETE"]),
        Route("/folders", folder_create, methods=["POST"]),
        Route("/tree", tree, methods=["GET"]),
        # Editor
        Route("/editor", editor, methods=["GET"]),
        Route("/editor/select", editor_select, methods=["POST"]),
        Route("/editor/close", editor_close, methods=["POST"]),
        Route("/editor/content", editor_content, methods=["PUT"]),
        # Run lifecycle
        Route("/run", run, methods=["POST"]),
        Route("/stop", stop, methods=["POST"]),
        Route("/status", status, methods=["GET"]),
        Route("/notifications", notifications, methods=["GET"]),
        Route("/terminal", terminal, methods=["GET"]),
        Route("/terminal/stream", terminal_stream, methods=["GET"]),
        # Export / fork
        Route("/export", export, methods=["GET"]),
        Route("/fork", fork, methods=["POST"]),
    ]
