"""ASGI middleware that turns authentication decisions into HTTP responses."""

from __future__ import annotations

import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

import anyio.to_thread
from apcore import Identity

from ldap_basic_auth.auth.decision import Allowed, Unauthenticated
from ldap_basic_auth.auth.protocol import Authenticator
from ldap_basic_auth.config import BrowserChallenge
from ldap_basic_auth.constants import FORBIDDEN_BODY, UNAUTHORIZED_BODY

logger = logging.getLogger(__name__)

# Bridge between ASGI middleware and downstream handlers
auth_identity_var: ContextVar[Identity | None] = ContextVar("auth_identity", default=None)


@dataclass(frozen=True)
class StatusMapping:
    """HTTP status codes used for each kind of denial."""

    unauthenticated: int = 401
    forbidden: int = 403


def extract_headers(scope: dict[str, Any]) -> dict[str, str]:
    """Extract headers from ASGI scope as a lowercase-key dict."""
    result: dict[str, str] = {}
    for key_bytes, value_bytes in scope.get("headers", []):
        result[key_bytes.decode("latin-1").lower()] = value_bytes.decode("latin-1")
    return result


class AuthMiddleware:
    """ASGI middleware that authenticates requests with Basic credentials.

    The authenticator runs in a worker thread so directory round-trips do
    not block the event loop. On success the identity is published through
    ``auth_identity_var`` and ``scope["auth"]``.

    Args:
        app: The ASGI application to wrap.
        authenticator: An ``Authenticator`` implementation.
        browser_challenge: Realm sent in ``WWW-Authenticate`` on 401
            responses. No challenge header is sent when None.
        exempt_paths: Exact paths that bypass authentication.
        exempt_prefixes: Path prefixes that bypass authentication.
        status_mapping: Status codes for unauthenticated and forbidden requests.
    """

    def __init__(
        self,
        app: Any,
        authenticator: Authenticator,
        *,
        browser_challenge: BrowserChallenge | None = None,
        exempt_paths: set[str] | None = None,
        exempt_prefixes: set[str] | None = None,
        status_mapping: StatusMapping | None = None,
    ) -> None:
        self._app = app
        self._authenticator = authenticator
        self._browser_challenge = browser_challenge
        self._exempt_paths = exempt_paths if exempt_paths is not None else {"/health"}
        self._exempt_prefixes = exempt_prefixes or set()
        self._status_mapping = status_mapping or StatusMapping()

    def _is_exempt(self, path: str) -> bool:
        """Check if a path is exempt from authentication."""
        if path in self._exempt_paths:
            return True
        return any(path.startswith(prefix) for prefix in self._exempt_prefixes)

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self._app(scope, receive, send)
            return

        path = scope.get("path", "")
        if self._is_exempt(path):
            await self._app(scope, receive, send)
            return

        headers = extract_headers(scope)
        decision = await anyio.to_thread.run_sync(self._authenticator.authenticate, headers)

        if not isinstance(decision, Allowed):
            logger.warning("Authentication failed for %s: %s", path, decision.reason)
            if isinstance(decision, Unauthenticated):
                await self._send_unauthenticated(send)
            else:
                await self._send_forbidden(send)
            return

        identity = decision.to_identity()
        scope["auth"] = identity
        token = auth_identity_var.set(identity)
        try:
            await self._app(scope, receive, send)
        finally:
            auth_identity_var.reset(token)

    async def _send_unauthenticated(self, send: Any) -> None:
        extra: list[list[bytes]] = []
        if self._browser_challenge is not None:
            extra.append([b"www-authenticate", self._browser_challenge.header_value.encode("latin-1")])
        await self._send_text(send, self._status_mapping.unauthenticated, UNAUTHORIZED_BODY, extra)

    async def _send_forbidden(self, send: Any) -> None:
        await self._send_text(send, self._status_mapping.forbidden, FORBIDDEN_BODY, [])

    @staticmethod
    async def _send_text(send: Any, status: int, text: str, extra_headers: list[list[bytes]]) -> None:
        """Send a terminal plain-text response."""
        body = text.encode()
        await send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": [
                    [b"content-type", b"text/plain; charset=utf-8"],
                    [b"content-length", str(len(body)).encode()],
                    *extra_headers,
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
