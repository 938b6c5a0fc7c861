"""Authenticator protocol for pluggable authentication backends."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ldap_basic_auth.auth.decision import AuthorizationDecision


@runtime_checkable
class Authenticator(Protocol):
    """Protocol for authentication backends.

    Implementations extract credentials from HTTP headers and always return
    an ``AuthorizationDecision``; they never raise for a bad request.
    """

    def authenticate(self, headers: dict[str, str]) -> AuthorizationDecision:
        """Authenticate a request from its headers.

        Args:
            headers: Header names mapped to their values.

        Returns:
            ``Allowed``, ``Unauthenticated`` or ``Forbidden``.
        """
        ...
