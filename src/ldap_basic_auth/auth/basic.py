"""HTTP Basic authentication verified against an LDAP directory."""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from ldap_basic_auth.auth.decision import Allowed, AuthorizationDecision, Forbidden, Unauthenticated
from ldap_basic_auth.auth.protocol import Authenticator
from ldap_basic_auth.cache import CredentialCache
from ldap_basic_auth.constants import AUTHORIZATION_HEADER, BASIC_SCHEME
from ldap_basic_auth.directory.client import DirectoryClient
from ldap_basic_auth.directory.verifiers import DirectoryVerifier
from ldap_basic_auth.errors import (
    DirectoryConnectionError,
    DirectoryError,
    DirectoryTimeoutError,
    MalformedCredentialsError,
    MissingCredentialsError,
    UnsupportedSchemeError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BasicCredentials:
    principal: str
    secret: str = field(repr=False)


def parse_basic_authorization(headers: Mapping[str, str]) -> BasicCredentials:
    """Extract Basic credentials from request headers.

    Raises:
        MissingCredentialsError: No ``Authorization`` header.
        UnsupportedSchemeError: The scheme is not ``Basic``.
        MalformedCredentialsError: The payload does not decode to a
            non-empty ``principal:secret`` pair.
    """
    value = _header(headers, AUTHORIZATION_HEADER)
    if not value or not value.strip():
        raise MissingCredentialsError()

    scheme, _, payload = value.strip().partition(" ")
    if scheme.lower() != BASIC_SCHEME:
        raise UnsupportedSchemeError()

    try:
        decoded = base64.b64decode(payload.strip(), validate=True).decode("utf-8")
    # binascii.Error, UnicodeDecodeError and non-ASCII input are all ValueErrors
    except ValueError as exc:
        raise MalformedCredentialsError() from exc

    principal, _, secret = decoded.partition(":")
    if not principal or not secret:
        raise MalformedCredentialsError()
    return BasicCredentials(principal=principal, secret=secret)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup."""
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


class LDAPBasicAuthenticator:
    """Cache-first Basic authenticator backed by a directory verifier.

    A request is allowed straight from the cache when the supplied secret
    matches the cached one. Otherwise the verifier runs end to end and only
    a successful verification writes the cache. Every directory failure is
    turned into a deny; nothing from the directory layer is raised.

    Args:
        verifier: Topology used to prove credentials.
        client: Directory transport handed to the verifier.
        cache: Shared credential cache, or None to disable caching.
    """

    def __init__(
        self,
        verifier: DirectoryVerifier,
        client: DirectoryClient,
        *,
        cache: CredentialCache | None = None,
    ) -> None:
        self._verifier = verifier
        self._client = client
        self._cache = cache

    @property
    def cache(self) -> CredentialCache | None:
        return self._cache

    def authenticate(self, headers: dict[str, str]) -> AuthorizationDecision:
        try:
            credentials = parse_basic_authorization(headers)
        except (MissingCredentialsError, UnsupportedSchemeError) as exc:
            return Unauthenticated(exc.message)
        except MalformedCredentialsError as exc:
            return Forbidden(exc.message)

        principal, secret = credentials.principal, credentials.secret

        if self._cache is not None:
            if self._cache.matches(principal, secret):
                logger.debug("Cache hit for %s", principal)
                return Allowed(principal, cached=True)
            if self._cache.invalidate(principal):
                logger.debug("Cached secret mismatch for %s, verifying against directory", principal)

        try:
            grants = self._verifier.verify(self._client, principal, secret)
        except (DirectoryConnectionError, DirectoryTimeoutError) as exc:
            logger.warning("Directory unavailable while verifying %s: %s", principal, exc.message)
            return Forbidden(exc.reason)
        except DirectoryError as exc:
            logger.debug("Directory denied %s: %s", principal, exc.message)
            return Forbidden(exc.reason)

        if self._cache is not None:
            self._cache.set(principal, secret)
        logger.info("Verified %s against directory", principal)
        return Allowed(principal, grants=grants)


# Verify protocol compliance at import time
assert isinstance(LDAPBasicAuthenticator.__new__(LDAPBasicAuthenticator), Authenticator)
