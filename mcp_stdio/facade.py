"""Optional process-wide server for small scripts.

    from mcp_stdio import facade

    facade.initialize_server("weather")

    @facade.tool("forecast", input_schema={...})
    def forecast(args):
        ...

    facade.run()

Nothing happens implicitly: the server is created by ``initialize_server``,
served by ``run`` and dropped by ``shutdown_server``.
"""

from typing import Any, Optional
import structlog

from .config import ServerConfig
from .logs import setup_logging
from .protocol.server import MCPServer

logger = structlog.get_logger()

_server: Optional[MCPServer] = None


def initialize_server(name: str, **options: Any) -> MCPServer:
    """Create the process-wide server, or return it if it already exists."""
    global _server
    if _server is None:
        if not structlog.is_configured():
            config = options.get("config") or ServerConfig()
            setup_logging(config.log_level, config.debug)
        _server = MCPServer(name=name, **options)
        logger.debug("Process-wide server created", name=name)
    return _server


def get_server() -> MCPServer:
    if _server is None:
        raise RuntimeError("Server not initialized; call initialize_server() first")
    return _server


def shutdown_server() -> None:
    """Forget the process-wide server."""
    global _server
    if _server is not None and _server.running:
        raise RuntimeError("Cannot shut down a server that is still serving")
    _server = None


def tool(name: str, handler=None, **options: Any):
    return get_server().tool(name, handler, **options)


def resource(uri: str, handler=None, **options: Any):
    return get_server().resource(uri, handler, **options)


def resource_template(uri_template: str, handler=None, **options: Any):
    return get_server().resource_template(uri_template, handler, **options)


def run() -> None:
    get_server().run()
