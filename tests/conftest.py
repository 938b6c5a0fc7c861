"""Shared test fixtures for ldap-basic-auth tests."""

from __future__ import annotations

import base64
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field

import pytest
from ldap3 import MOCK_SYNC, Connection, Server

from ldap_basic_auth.config import DirectoryConfig
from ldap_basic_auth.directory.client import DirectoryEntry
from ldap_basic_auth.errors import DirectoryConnectionError, DirectoryError, InvalidCredentialsError

# ---------------------------------------------------------------------------
# Directory layout shared by the fake client and the ldap3 mock server
# ---------------------------------------------------------------------------

BASE_DN = "dc=example,dc=com"
PEOPLE_DN = f"ou=people,{BASE_DN}"
GROUPS_DN = f"ou=groups,{BASE_DN}"
APP_GROUP_DN = f"cn=app,{GROUPS_DN}"
SERVICE_DN = f"cn=svc,{BASE_DN}"
SERVICE_PASSWORD = "svc-secret"


def user_dn(uid: str) -> str:
    return f"uid={uid},{PEOPLE_DN}"


def basic_header(principal: str, secret: str) -> dict[str, str]:
    token = base64.b64encode(f"{principal}:{secret}".encode()).decode("ascii")
    return {"authorization": f"Basic {token}"}


# ---------------------------------------------------------------------------
# In-memory DirectoryClient double
# ---------------------------------------------------------------------------


@dataclass
class FakeSession:
    id: int
    bound_as: str | None = None
    unbound: bool = False


@dataclass
class FakeDirectoryClient:
    """DirectoryClient double that counts every call.

    Attributes:
        passwords: DN -> secret accepted by ``bind``.
        results: search filter -> entries returned by ``search``.
        connect_failures: Number of leading ``connect`` calls that fail.
        search_error: Raised by every ``search`` when set.
        unbind_error: Raised by every ``unbind`` when set.
    """

    passwords: dict[str, str] = field(default_factory=dict)
    results: dict[str, list[DirectoryEntry]] = field(default_factory=dict)
    connect_failures: int = 0
    search_error: DirectoryError | None = None
    unbind_error: DirectoryError | None = None
    connects: int = 0
    unbinds: int = 0
    binds: list[tuple[str, str]] = field(default_factory=list)
    searches: list[tuple[str, str, tuple[str, ...], str]] = field(default_factory=list)
    sessions: list[FakeSession] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def connect(self) -> FakeSession:
        with self._lock:
            self.connects += 1
            if self.connects <= self.connect_failures:
                raise DirectoryConnectionError("connection refused")
            session = FakeSession(id=len(self.sessions))
            self.sessions.append(session)
            return session

    def bind(self, session: FakeSession, dn: str, secret: str) -> None:
        with self._lock:
            self.binds.append((dn, secret))
        if self.passwords.get(dn) != secret:
            raise InvalidCredentialsError()
        session.bound_as = dn

    def search(
        self,
        session: FakeSession,
        base: str,
        search_filter: str,
        attributes: Sequence[str] = (),
        scope: str = "sub",
    ) -> list[DirectoryEntry]:
        with self._lock:
            self.searches.append((base, search_filter, tuple(attributes), scope))
        if self.search_error is not None:
            raise self.search_error
        return list(self.results.get(search_filter, []))

    def unbind(self, session: FakeSession) -> None:
        with self._lock:
            self.unbinds += 1
        session.unbound = True
        if self.unbind_error is not None:
            raise self.unbind_error

    def add_user(self, uid: str, secret: str) -> str:
        dn = user_dn(uid)
        self.passwords[dn] = secret
        return dn

    def add_member(self, uid: str, group_dn: str = APP_GROUP_DN) -> None:
        member_filter = f"(member={user_dn(uid)})"
        self.results.setdefault(member_filter, []).append(DirectoryEntry(dn=group_dn))

    def add_searchable(self, uid: str) -> None:
        self.results[f"(uid={uid})"] = [DirectoryEntry(dn=user_dn(uid), attributes={"uid": [uid]})]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_client() -> FakeDirectoryClient:
    return FakeDirectoryClient()


@pytest.fixture
def user_bind_config() -> DirectoryConfig:
    return DirectoryConfig(
        url="ldap://directory.test",
        user_base=PEOPLE_DN,
        group_base=APP_GROUP_DN,
        connect_retries=0,
    )


@pytest.fixture
def service_bind_config() -> DirectoryConfig:
    return DirectoryConfig(
        url="ldap://directory.test",
        service_bind_dn=SERVICE_DN,
        service_bind_password=SERVICE_PASSWORD,
        search_base=PEOPLE_DN,
        connect_retries=0,
    )


@pytest.fixture
def mock_ldap_server() -> Server:
    """An ldap3 MOCK_SYNC server seeded with users, a group and a service account."""
    server = Server("directory.test")
    seed = Connection(server, client_strategy=MOCK_SYNC)
    seed.strategy.add_entry(BASE_DN, {"objectClass": ["domain"], "dc": "example"})
    seed.strategy.add_entry(PEOPLE_DN, {"objectClass": ["organizationalUnit"], "ou": "people"})
    seed.strategy.add_entry(GROUPS_DN, {"objectClass": ["organizationalUnit"], "ou": "groups"})
    seed.strategy.add_entry(
        SERVICE_DN,
        {"objectClass": ["person"], "cn": "svc", "sn": "svc", "userPassword": SERVICE_PASSWORD},
    )
    for uid, secret in (("jerome", "secret"), ("alice", "wonderland")):
        seed.strategy.add_entry(
            user_dn(uid),
            {"objectClass": ["inetOrgPerson"], "uid": uid, "cn": uid, "sn": uid, "userPassword": secret},
        )
    seed.strategy.add_entry(
        APP_GROUP_DN,
        {"objectClass": ["groupOfNames"], "cn": "app", "member": [user_dn("jerome")]},
    )
    return server
