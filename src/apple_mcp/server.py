"""Entrypoint for the Apple MCP server.

``stdio`` mode serves the tool registry through FastMCP; ``http`` mode serves
the same registry through the Starlette JSON-RPC app under uvicorn.
"""

from __future__ import annotations

import ipaddress
import logging
import threading

from apple_mcp import __version__
from apple_mcp.config import Settings, load_settings
from apple_mcp.logging_utils import configure_logging
from apple_mcp.mcp_runtime import MCPServer
from apple_mcp.tools import register_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "apple-mcp"


def build_server() -> MCPServer:
    """Create the stdio server and register every tool on it."""
    settings = load_settings()
    server = MCPServer(
        name=SERVER_NAME,
        version=__version__,
        instructions=settings.server.instructions,
    )

    # FastMCP installs its own handlers; configure ours afterwards so they win.
    configure_logging()
    logger.info("Starting %s v%s over stdio", SERVER_NAME, __version__)
    if settings.logging.file:
        logger.info("Also logging to %s", settings.logging.file)

    register_tools(server)
    return server


def run_entrypoint() -> None:
    if load_settings().server.transport_mode == "http":
        _run_http()
    else:
        get_server().run()


def _is_loopback(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def _warn_if_exposed(settings: Settings) -> None:
    if settings.security.auth_token is None and not _is_loopback(settings.server.host):
        logger.warning(
            "Listening on %s without MCP_AUTH_TOKEN; any host that can reach it can send mail",
            settings.server.host,
        )


def _run_http() -> None:
    import uvicorn

    from apple_mcp.transport.http_server import create_http_app

    settings = load_settings()
    configure_logging()
    _warn_if_exposed(settings)

    # Plain HTTP only; there are no websocket routes.
    uvicorn.run(
        create_http_app(),
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


_server: MCPServer | None = None
_server_lock = threading.Lock()


def get_server() -> MCPServer:
    """Build the stdio server on first use; later calls return the same one."""
    global _server
    with _server_lock:
        if _server is None:
            _server = build_server()
    return _server


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
