"""DirectoryVerifier strategies: the two bind/search topologies."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from ldap_basic_auth.config import DirectoryConfig
from ldap_basic_auth.constants import TOPOLOGY_SERVICE_BIND
from ldap_basic_auth.directory.client import DirectoryClient, directory_session
from ldap_basic_auth.errors import (
    DirectoryProtocolError,
    InvalidCredentialsError,
    NotAMemberError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class DirectoryVerifier(Protocol):
    """Proves a principal/secret pair against the directory.

    ``verify`` returns the DNs that granted access, or raises a
    ``DirectoryError`` subclass describing why it did not. Each call owns
    its session from connect to unbind.
    """

    def verify(self, client: DirectoryClient, principal: str, secret: str) -> tuple[str, ...]: ...


class GroupMembershipVerifier:
    """Bind as the user, then require a group entry listing the user as member.

    The user DN is ``<user_attribute>=<principal>,<user_base>``. The group
    search runs under ``group_base`` with ``(<member_attribute>=<user DN>)``.
    """

    def __init__(self, config: DirectoryConfig) -> None:
        self._config = config

    def user_dn(self, principal: str) -> str:
        return f"{self._config.user_attribute}={escape_rdn(principal)},{self._config.user_base}"

    def verify(self, client: DirectoryClient, principal: str, secret: str) -> tuple[str, ...]:
        config = self._config
        dn = self.user_dn(principal)
        member_filter = f"({config.member_attribute}={escape_filter_chars(dn)})"

        with directory_session(client, retries=config.connect_retries) as session:
            client.bind(session, dn, secret)
            groups = client.search(
                session,
                config.group_base,
                member_filter,
                attributes=config.attributes or (config.member_attribute,),
                scope=config.search_scope,
            )

        if not groups:
            raise NotAMemberError()
        return tuple(entry.dn for entry in groups)


class ServiceSearchVerifier:
    """Bind as a service principal, look the user up, then rebind as the user."""

    def __init__(self, config: DirectoryConfig) -> None:
        self._config = config

    def user_filter(self, principal: str) -> str:
        return self._config.search_filter % escape_filter_chars(principal)

    def verify(self, client: DirectoryClient, principal: str, secret: str) -> tuple[str, ...]:
        config = self._config

        with directory_session(client, retries=config.connect_retries) as session:
            try:
                client.bind(session, config.service_bind_dn, config.service_bind_password)
            except InvalidCredentialsError as exc:
                logger.error("Service bind rejected for %s", config.service_bind_dn)
                raise DirectoryProtocolError("service bind rejected") from exc
            entries = client.search(
                session,
                config.search_base,
                self.user_filter(principal),
                attributes=config.attributes,
                scope=config.search_scope,
            )
            if not entries:
                raise NotFoundError()
            if len(entries) > 1:
                logger.warning("Search for %s matched %d entries, using the first", principal, len(entries))
            dn = entries[0].dn
            client.bind(session, dn, secret)

        return (dn,)


def create_verifier(config: DirectoryConfig) -> DirectoryVerifier:
    """Select the verifier matching ``config.topology``."""
    if config.topology == TOPOLOGY_SERVICE_BIND:
        return ServiceSearchVerifier(config)
    return GroupMembershipVerifier(config)
