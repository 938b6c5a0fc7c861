"""ldap-basic-auth: HTTP Basic authentication verified against an LDAP directory."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ldap_basic_auth.auth import (
    Allowed,
    Authenticator,
    AuthMiddleware,
    AuthorizationDecision,
    Forbidden,
    LDAPBasicAuthenticator,
    StatusMapping,
    Unauthenticated,
    auth_identity_var,
)
from ldap_basic_auth.cache import CredentialCache
from ldap_basic_auth.config import AuthConfig, BrowserChallenge, DirectoryConfig
from ldap_basic_auth.directory import (
    DirectoryClient,
    DirectoryVerifier,
    GroupMembershipVerifier,
    Ldap3DirectoryClient,
    ServiceSearchVerifier,
    create_verifier,
)
from ldap_basic_auth.server import create_app, run_http

__all__ = [
    # Public API
    "build_authenticator",
    "serve",
    # Configuration
    "AuthConfig",
    "DirectoryConfig",
    "BrowserChallenge",
    "CredentialCache",
    # Authentication
    "Authenticator",
    "LDAPBasicAuthenticator",
    "AuthMiddleware",
    "StatusMapping",
    "auth_identity_var",
    "Allowed",
    "Unauthenticated",
    "Forbidden",
    "AuthorizationDecision",
    # Directory
    "DirectoryClient",
    "Ldap3DirectoryClient",
    "DirectoryVerifier",
    "GroupMembershipVerifier",
    "ServiceSearchVerifier",
    "create_verifier",
]

__version__ = "0.1.0"

logger = logging.getLogger(__name__)


def build_authenticator(
    config: AuthConfig,
    *,
    client: DirectoryClient | None = None,
) -> LDAPBasicAuthenticator:
    """Assemble an authenticator from configuration.

    Args:
        config: Directory, cache and challenge settings.
        client: Directory transport. Defaults to ``Ldap3DirectoryClient``.
    """
    directory = config.directory
    verifier = create_verifier(directory)
    if client is None:
        client = Ldap3DirectoryClient(directory)
    logger.debug("Using %s topology against %s", directory.topology, directory.url)
    return LDAPBasicAuthenticator(verifier, client, cache=config.cache)


def serve(
    config: AuthConfig,
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    exempt_paths: set[str] | None = None,
    log_level: str | None = None,
    on_startup: Callable[[], None] | None = None,
    on_shutdown: Callable[[], None] | None = None,
) -> None:
    """Launch an HTTP server whose routes sit behind LDAP Basic authentication.

    Args:
        config: Authenticator configuration.
        host: Host address to bind.
        port: Port number to bind.
        exempt_paths: Paths served without authentication (default: /health).
        log_level: Set the log level for the ldap_basic_auth logger (e.g. "DEBUG").
        on_startup: Optional callback invoked after setup, before serving.
        on_shutdown: Optional callback invoked after the server stops.
    """
    if log_level is not None:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level.upper() not in valid_levels:
            raise ValueError(f"Unknown log level: {log_level!r}. Valid: {sorted(valid_levels)}")
        logging.getLogger("ldap_basic_auth").setLevel(getattr(logging, log_level.upper()))

    authenticator = build_authenticator(config)
    app = create_app(
        authenticator,
        browser_challenge=config.browser_challenge,
        exempt_paths=exempt_paths,
    )

    logger.info(
        "Serving with %s topology against %s (cache: %s)",
        config.directory.topology,
        config.directory.url,
        "on" if config.cache is not None else "off",
    )

    if on_startup is not None:
        on_startup()

    try:
        asyncio.run(run_http(app, host=host, port=port))
    finally:
        if on_shutdown is not None:
            on_shutdown()
