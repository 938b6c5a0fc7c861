"""Configuration surface for the LDAP Basic-Auth authenticator."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ldap_basic_auth.cache import CredentialCache
from ldap_basic_auth.constants import (
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_MEMBER_ATTRIBUTE,
    DEFAULT_SEARCH_FILTER,
    DEFAULT_SEARCH_SCOPE,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_ATTRIBUTE,
    SEARCH_SCOPES,
    TOPOLOGIES,
    TOPOLOGY_SERVICE_BIND,
    TOPOLOGY_USER_BIND,
)


@dataclass(frozen=True)
class BrowserChallenge:
    """Emit ``WWW-Authenticate: Basic realm="<realm>"`` on 401 responses."""

    realm: str

    def __post_init__(self) -> None:
        try:
            self.realm.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise ValueError(f"realm must be latin-1 encodable: {self.realm!r}") from exc
        if any(ch in '"\\' or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in self.realm):
            raise ValueError(f"realm must not contain quotes, backslashes or control characters: {self.realm!r}")

    @property
    def header_value(self) -> str:
        return f'Basic realm="{self.realm}"'


@dataclass(frozen=True)
class DirectoryConfig:
    """Connection and lookup settings for the directory service.

    Attributes:
        url: Directory endpoint, e.g. ``ldap://ldap.example.com:389``.
        topology: ``"user-bind"`` binds as the end user then searches a
            group entry for membership. ``"service-bind"`` binds as a
            service principal, searches for the user, then rebinds as them.
            Inferred from ``service_bind_dn`` when left empty.
        user_base: Parent DN of user entries (user-bind).
        user_attribute: RDN attribute of user entries (user-bind).
        group_base: Group or application entry holding members (user-bind).
        member_attribute: Membership attribute on the group entry (user-bind).
        service_bind_dn: DN of the service principal (service-bind).
        service_bind_password: Secret of the service principal (service-bind).
        search_base: Base DN for the user search (service-bind).
        search_filter: Filter template, ``%s`` is replaced by the escaped principal.
        search_scope: ``"base"``, ``"one"`` or ``"sub"``.
        attributes: Attributes requested from searches.
        timeout: Seconds allowed for connect and for each directory operation.
        connect_retries: Extra attempts after a connection failure.
        use_ssl: Use LDAPS for the transport.
    """

    url: str
    topology: str = ""
    user_base: str = ""
    user_attribute: str = DEFAULT_USER_ATTRIBUTE
    group_base: str = ""
    member_attribute: str = DEFAULT_MEMBER_ATTRIBUTE
    service_bind_dn: str = ""
    service_bind_password: str = field(default="", repr=False)
    search_base: str = ""
    search_filter: str = DEFAULT_SEARCH_FILTER
    search_scope: str = DEFAULT_SEARCH_SCOPE
    attributes: tuple[str, ...] = ()
    timeout: float = DEFAULT_TIMEOUT
    connect_retries: int = DEFAULT_CONNECT_RETRIES
    use_ssl: bool = False

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("directory url must not be empty")
        if not self.topology:
            inferred = TOPOLOGY_SERVICE_BIND if self.service_bind_dn else TOPOLOGY_USER_BIND
            object.__setattr__(self, "topology", inferred)
        if self.topology not in TOPOLOGIES:
            raise ValueError(f"Unknown topology: {self.topology!r}. Expected one of {list(TOPOLOGIES)}")
        if self.search_scope not in SEARCH_SCOPES:
            raise ValueError(f"Unknown search scope: {self.search_scope!r}. Expected one of {list(SEARCH_SCOPES)}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.connect_retries < 0:
            raise ValueError(f"connect_retries must not be negative, got {self.connect_retries}")
        if self.topology == TOPOLOGY_USER_BIND:
            if not self.user_base or not self.group_base:
                raise ValueError("user-bind topology requires user_base and group_base")
        else:
            if not self.service_bind_dn or not self.search_base:
                raise ValueError("service-bind topology requires service_bind_dn and search_base")
            if "%s" not in self.search_filter:
                raise ValueError(f"search_filter must contain '%s': {self.search_filter!r}")
            try:
                self.search_filter % "principal"
            except (TypeError, ValueError) as exc:
                raise ValueError(
                    f"search_filter must take exactly one '%s' (use '%%' for a literal percent): "
                    f"{self.search_filter!r}"
                ) from exc
        object.__setattr__(self, "attributes", tuple(self.attributes))

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> DirectoryConfig:
        """Build from a mapping, accepting camelCase or snake_case keys."""
        kwargs: dict[str, Any] = {}
        for key, value in options.items():
            name = _ALIASES.get(key, key)
            if name not in _FIELDS:
                raise ValueError(f"Unknown directory option: {key!r}")
            kwargs[name] = value
        if "attributes" in kwargs:
            kwargs["attributes"] = tuple(kwargs["attributes"])
        return cls(**kwargs)


_FIELDS = frozenset(DirectoryConfig.__dataclass_fields__)

_ALIASES = {
    "endpoint": "url",
    "userBase": "user_base",
    "userAttribute": "user_attribute",
    "groupBase": "group_base",
    "memberAttribute": "member_attribute",
    "serviceBindPrincipal": "service_bind_dn",
    "serviceBindSecret": "service_bind_password",
    "searchBase": "search_base",
    "searchFilterTemplate": "search_filter",
    "searchScope": "search_scope",
    "requestedAttributes": "attributes",
    "connectRetries": "connect_retries",
    "useSsl": "use_ssl",
}


@dataclass(frozen=True)
class AuthConfig:
    """Top-level options for building an authenticator.

    Attributes:
        directory: Directory settings.
        cache: Shared credential cache, or None to always ask the directory.
        browser_challenge: Realm for the 401 challenge header, or None to omit it.
    """

    directory: DirectoryConfig
    cache: CredentialCache | None = None
    browser_challenge: BrowserChallenge | None = None

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> AuthConfig:
        """Build from ``{cache, useBrowserChallenge: {realm}, directory: {...}}``."""
        if "directory" not in options:
            raise ValueError("directory options are required")
        directory = options["directory"]
        if not isinstance(directory, DirectoryConfig):
            directory = DirectoryConfig.from_dict(directory)

        challenge = options.get("useBrowserChallenge", options.get("use_browser_challenge"))
        if challenge is not None and not isinstance(challenge, BrowserChallenge):
            challenge = BrowserChallenge(realm=challenge["realm"])

        return cls(directory=directory, cache=options.get("cache"), browser_challenge=challenge)
