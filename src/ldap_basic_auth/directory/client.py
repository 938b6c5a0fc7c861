"""DirectoryClient: bind/search/unbind against an LDAP directory."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ldap3 import AUTO_BIND_NONE, BASE, LEVEL, NONE, SUBTREE, SYNC, Connection, Server
from ldap3.core.exceptions import (
    LDAPCommunicationError,
    LDAPException,
    LDAPPasswordIsMandatoryError,
    LDAPResponseTimeoutError,
)

from ldap_basic_auth.config import DirectoryConfig
from ldap_basic_auth.constants import LDAP_INVALID_CREDENTIALS, LDAP_SUCCESS
from ldap_basic_auth.errors import (
    DirectoryConnectionError,
    DirectoryError,
    DirectoryProtocolError,
    DirectoryTimeoutError,
    InvalidCredentialsError,
)

logger = logging.getLogger(__name__)

_SCOPES = {"base": BASE, "one": LEVEL, "sub": SUBTREE}


@dataclass(frozen=True)
class DirectoryEntry:
    """One materialized search result."""

    dn: str
    attributes: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class DirectoryClient(Protocol):
    """Protocol for the directory transport.

    A session returned by ``connect`` is owned by a single verification
    attempt. Implementations raise ``DirectoryError`` subclasses only.
    """

    def connect(self) -> Any:
        """Open a new unbound session. Raises ``DirectoryConnectionError``."""
        ...

    def bind(self, session: Any, dn: str, secret: str) -> None:
        """Authenticate ``session`` as ``dn``. Raises ``InvalidCredentialsError`` on rejection."""
        ...

    def search(
        self,
        session: Any,
        base: str,
        search_filter: str,
        attributes: Sequence[str] = (),
        scope: str = "sub",
    ) -> list[DirectoryEntry]:
        """Return every entry under ``base`` matching ``search_filter``."""
        ...

    def unbind(self, session: Any) -> None:
        """Release ``session``."""
        ...


@contextmanager
def directory_session(client: DirectoryClient, retries: int = 0) -> Iterator[Any]:
    """Acquire a session from ``client`` and release it exactly once.

    Connection failures while opening are retried up to ``retries`` times,
    each with a fresh session. An error raised by ``unbind`` is logged and
    the session is dropped; it never replaces the outcome of the block.
    """
    attempt = 0
    while True:
        try:
            session = client.connect()
            break
        except DirectoryConnectionError:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("Directory connection failed, retrying (%d/%d)", attempt, retries)

    try:
        yield session
    finally:
        try:
            client.unbind(session)
        except DirectoryError:
            logger.debug("Directory unbind failed; session discarded", exc_info=True)


class Ldap3DirectoryClient:
    """``DirectoryClient`` backed by ldap3, one connection per session.

    Args:
        config: Directory settings (URL, TLS, timeouts).
        server: Pre-built ``ldap3.Server``; built from ``config`` if omitted.
        client_strategy: ldap3 client strategy. Tests use ``MOCK_SYNC``.
    """

    def __init__(
        self,
        config: DirectoryConfig,
        *,
        server: Server | None = None,
        client_strategy: str = SYNC,
    ) -> None:
        self._config = config
        self._server = server or Server(
            config.url,
            use_ssl=config.use_ssl,
            connect_timeout=config.timeout,
            get_info=NONE,
        )
        self._client_strategy = client_strategy

    def connect(self) -> Connection:
        connection = Connection(
            self._server,
            auto_bind=AUTO_BIND_NONE,
            client_strategy=self._client_strategy,
            receive_timeout=self._config.timeout,
            raise_exceptions=False,
            read_only=True,
        )
        try:
            connection.open(read_server_info=False)
        except LDAPException as exc:
            raise _translate(exc, "connect") from exc
        return connection

    def bind(self, session: Connection, dn: str, secret: str) -> None:
        try:
            bound = session.rebind(user=dn, password=secret, read_server_info=False)
        except LDAPException as exc:
            raise _translate(exc, "bind") from exc
        if bound:
            logger.debug("Bind succeeded for %s", dn)
            return

        code = _result_code(session)
        if code == LDAP_INVALID_CREDENTIALS:
            logger.debug("Bind rejected for %s", dn)
            raise InvalidCredentialsError()
        raise DirectoryProtocolError(f"bind failed with result {code}", result_code=code)

    def search(
        self,
        session: Connection,
        base: str,
        search_filter: str,
        attributes: Sequence[str] = (),
        scope: str = "sub",
    ) -> list[DirectoryEntry]:
        try:
            session.search(
                search_base=base,
                search_filter=search_filter,
                search_scope=_SCOPES[scope],
                attributes=list(attributes) or None,
                time_limit=max(1, int(self._config.timeout)),
            )
        except LDAPException as exc:
            raise _translate(exc, "search") from exc

        code = _result_code(session)
        if code != LDAP_SUCCESS:
            raise DirectoryProtocolError(f"search failed with result {code}", result_code=code)

        entries = [
            DirectoryEntry(dn=item["dn"], attributes=dict(item.get("attributes") or {}))
            for item in session.response or []
            if item.get("type") == "searchResEntry"
        ]
        logger.debug("Search under %s with %s returned %d entries", base, search_filter, len(entries))
        return entries

    def unbind(self, session: Connection) -> None:
        try:
            session.unbind()
        except LDAPException as exc:
            raise _translate(exc, "unbind") from exc


def _result_code(session: Connection) -> int | None:
    result = session.result
    if isinstance(result, dict):
        return result.get("result")
    return None


def _translate(exc: LDAPException, operation: str) -> DirectoryError:
    """Map an ldap3 exception onto the directory error taxonomy.

    Socket errors raised by the sync strategy subclass both
    ``LDAPSocketReceiveError`` and the original socket error type, so a
    receive timeout is also a ``TimeoutError``.
    """
    if isinstance(exc, (LDAPResponseTimeoutError, TimeoutError)):
        return DirectoryTimeoutError(f"{operation} timed out")
    if isinstance(exc, LDAPCommunicationError):
        return DirectoryConnectionError(f"{operation} failed: {exc}")
    if isinstance(exc, LDAPPasswordIsMandatoryError):
        return InvalidCredentialsError()
    return DirectoryProtocolError(f"{operation} failed: {exc}")
