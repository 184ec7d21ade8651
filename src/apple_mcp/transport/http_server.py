"""Starlette application serving the JSON-RPC endpoint over HTTP."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from pydantic import SecretStr
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from apple_mcp.config import load_settings
from apple_mcp.security.auth import check_authentication

logger = logging.getLogger(__name__)

PROBE_PATHS = frozenset({"/health", "/ready"})
_BEARER_PREFIX = "bearer "


def presented_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    return header[len(_BEARER_PREFIX) :].strip()


def _unauthorized() -> JSONResponse:
    return JSONResponse(
        {
            "error": "authentication_failed",
            "message": "Authorization header with a valid Bearer token required",
        },
        status_code=401,
        headers={"WWW-Authenticate": 'Bearer realm="apple-mcp"'},
    )


class BearerTokenMiddleware(BaseHTTPMiddleware):
    """Gate every non-probe request on the configured bearer token.

    Runs before any operation logic. With no token configured every request
    passes; preflight ``OPTIONS`` requests are never gated.
    """

    def __init__(self, app: Any, auth_token: SecretStr | None) -> None:
        super().__init__(app)
        self.auth_token = auth_token

    def _is_open(self, request: Request) -> bool:
        return request.method == "OPTIONS" or request.url.path in PROBE_PATHS

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        if self._is_open(request) or check_authentication(self.auth_token, presented_token(request)):
            return await call_next(request)
        logger.warning(
            "Rejected unauthenticated request to %s from %s",
            request.url.path,
            request.client.host if request.client else "-",
        )
        return _unauthorized()


async def mcp_endpoint(request: Request) -> Response:
    from apple_mcp.transport.mcp_handler import handle_mcp_request

    return await handle_mcp_request(request)


async def health_endpoint(request: Request) -> Response:
    return JSONResponse({"status": "healthy"})


async def ready_endpoint(request: Request) -> Response:
    return JSONResponse({"status": "ready"})


@asynccontextmanager
async def _lifespan(app: Starlette):
    logger.info("HTTP transport up (authentication %s)", app.state.auth_mode)
    yield
    logger.info("HTTP transport down")


def create_http_app() -> Starlette:
    token = load_settings().security.auth_token
    app = Starlette(
        routes=[
            Route("/mcp", endpoint=mcp_endpoint, methods=["POST", "OPTIONS"]),
            Route("/health", endpoint=health_endpoint, methods=["GET"]),
            Route("/ready", endpoint=ready_endpoint, methods=["GET"]),
        ],
        middleware=[Middleware(BearerTokenMiddleware, auth_token=token)],
        lifespan=_lifespan,
    )
    app.state.auth_mode = "enabled" if token is not None else "disabled"
    return app
