"""Transport adapters (HTTP and stdio)."""

from .http import create_app, run_http_server
from .stdio import StdioServer

__all__ = ["create_app", "run_http_server", "StdioServer"]
