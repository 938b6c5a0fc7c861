"""Protected Starlette application and its uvicorn lifecycle."""

from __future__ import annotations

import logging
import time as _time
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from ldap_basic_auth.auth.middleware import AuthMiddleware, StatusMapping, auth_identity_var
from ldap_basic_auth.auth.protocol import Authenticator
from ldap_basic_auth.config import BrowserChallenge
from ldap_basic_auth.constants import UNAUTHORIZED_BODY

logger = logging.getLogger(__name__)


def create_app(
    authenticator: Authenticator,
    *,
    browser_challenge: BrowserChallenge | None = None,
    exempt_paths: set[str] | None = None,
    status_mapping: StatusMapping | None = None,
) -> Starlette:
    """Build an app exposing ``/health`` (open) and ``/whoami`` (protected).

    ``/whoami`` echoes the identity attached by the middleware, which makes
    the app a quick way to check directory settings with ``curl -u``.
    """
    start_time = _time.monotonic()

    async def _health(request: Any) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "uptime_seconds": round(_time.monotonic() - start_time, 1),
            }
        )

    async def _whoami(request: Any) -> Response:
        identity = auth_identity_var.get()
        if identity is None:
            return PlainTextResponse(UNAUTHORIZED_BODY, status_code=401)
        return JSONResponse(
            {
                "scheme": identity.attrs.get("scheme"),
                "principal": identity.id,
                "groups": list(identity.roles),
            }
        )

    return Starlette(
        routes=[
            Route("/health", endpoint=_health, methods=["GET"]),
            Route("/whoami", endpoint=_whoami, methods=["GET"]),
        ],
        middleware=[
            Middleware(
                AuthMiddleware,
                authenticator=authenticator,
                browser_challenge=browser_challenge,
                exempt_paths=exempt_paths if exempt_paths is not None else {"/health"},
                status_mapping=status_mapping,
            )
        ],
    )


async def run_http(app: Starlette, host: str = "127.0.0.1", port: int = 8000) -> None:
    """Serve ``app`` with uvicorn until shutdown."""
    _validate_host_port(host, port)
    logger.info("Starting HTTP server on %s:%d", host, port)
    config = uvicorn.Config(app, host=host, port=port, log_level="info")
    uv_server = uvicorn.Server(config)
    await uv_server.serve()


def _validate_host_port(host: str, port: int) -> None:
    """Validate host and port parameters."""
    if not host:
        raise ValueError("Host must not be empty")
    if not isinstance(port, int) or port < 1 or port > 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
