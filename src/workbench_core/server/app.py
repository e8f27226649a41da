"""ASGI application serving a workspace to a browser UI."""

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from workbench_core.server.routes import create_routes

if TYPE_CHECKING:
    from workbench_core.orchestrator import WorkspaceOrchestrator


def create_app(workspace: "WorkspaceOrchestrator") -> Starlette:
    """Create the ASGI application.

    Args:
        workspace: The workspace to serve (replaced in place by ``/fork``)

    Returns:
        Starlette application
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        yield
        for task in list(app.state.run_tasks):
            task.cancel()
        await app.state.workspace.close()

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=workspace.config.server.cors_origins or ["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(
        routes=create_routes(),
        middleware=middleware,
        lifespan=lifespan,
    )
    app.state.workspace = workspace
    app.state.run_tasks = set()
    return app
