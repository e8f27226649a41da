"""HTTP Server module."""

from workbench_core.server.app import create_app
from workbench_core.server.routes import NDJSONResponse, create_routes, format_ndjson

__all__ = [
    "NDJSONResponse",
    "create_app",
    "create_routes",
    "format_ndjson",
]
