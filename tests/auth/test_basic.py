"""Tests for Basic header parsing and LDAPBasicAuthenticator."""

from __future__ import annotations

import base64
import logging
import threading

import pytest
from apcore import Identity

from ldap_basic_auth.auth.basic import BasicCredentials, LDAPBasicAuthenticator, parse_basic_authorization
from ldap_basic_auth.auth.decision import Allowed, Forbidden, Unauthenticated
from ldap_basic_auth.auth.protocol import Authenticator
from ldap_basic_auth.cache import CredentialCache
from ldap_basic_auth.config import DirectoryConfig
from ldap_basic_auth.directory.verifiers import GroupMembershipVerifier, ServiceSearchVerifier
from ldap_basic_auth.errors import (
    DirectoryConnectionError,
    DirectoryProtocolError,
    DirectoryTimeoutError,
    MalformedCredentialsError,
    MissingCredentialsError,
    UnsupportedSchemeError,
)
from tests.conftest import APP_GROUP_DN, SERVICE_DN, SERVICE_PASSWORD, FakeDirectoryClient, basic_header, user_dn


def _raw_basic(payload: bytes) -> dict[str, str]:
    return {"authorization": "Basic " + base64.b64encode(payload).decode("ascii")}


class TestParseBasicAuthorization:
    def test_valid_header(self):
        credentials = parse_basic_authorization(basic_header("jerome", "secret"))
        assert credentials == BasicCredentials(principal="jerome", secret="secret")

    def test_secret_may_contain_colons(self):
        credentials = parse_basic_authorization(basic_header("jerome", "a:b:c"))
        assert credentials.secret == "a:b:c"

    def test_header_name_is_case_insensitive(self):
        header = basic_header("jerome", "secret")["authorization"]
        assert parse_basic_authorization({"Authorization": header}).principal == "jerome"

    def test_scheme_is_case_insensitive(self):
        header = basic_header("jerome", "secret")["authorization"].replace("Basic", "BASIC")
        assert parse_basic_authorization({"authorization": header}).principal == "jerome"

    def test_missing_header(self):
        with pytest.raises(MissingCredentialsError):
            parse_basic_authorization({})

    def test_blank_header(self):
        with pytest.raises(MissingCredentialsError):
            parse_basic_authorization({"authorization": "   "})

    def test_bearer_scheme(self):
        with pytest.raises(UnsupportedSchemeError):
            parse_basic_authorization({"authorization": "Bearer plop"})

    @pytest.mark.parametrize(
        "headers",
        [
            _raw_basic(b":pass"),
            _raw_basic(b"user:"),
            _raw_basic(b"userpass"),
            _raw_basic(b"\xff\xfe:x"),
            {"authorization": "Basic"},
            {"authorization": "Basic not-base64!"},
            {"authorization": "Basic \u00e9\u00e9\u00e9\u00e9"},
        ],
        ids=["empty-user", "empty-pass", "no-colon", "not-utf8", "no-payload", "bad-base64", "non-ascii"],
    )
    def test_malformed(self, headers):
        with pytest.raises(MalformedCredentialsError):
            parse_basic_authorization(headers)

    def test_repr_hides_secret(self):
        assert "secret" not in repr(BasicCredentials(principal="jerome", secret="secret"))


@pytest.fixture
def member_client(fake_client: FakeDirectoryClient) -> FakeDirectoryClient:
    fake_client.add_user("jerome", "secret")
    fake_client.add_member("jerome")
    fake_client.add_user("alice", "wonderland")
    return fake_client


@pytest.fixture
def cache() -> CredentialCache:
    return CredentialCache(maxsize=100, ttl=60)


@pytest.fixture
def authenticator(
    user_bind_config: DirectoryConfig, member_client: FakeDirectoryClient, cache: CredentialCache
) -> LDAPBasicAuthenticator:
    return LDAPBasicAuthenticator(GroupMembershipVerifier(user_bind_config), member_client, cache=cache)


class TestProtocol:
    def test_implements_authenticator_protocol(self, authenticator: LDAPBasicAuthenticator):
        assert isinstance(authenticator, Authenticator)


class TestHeaderDecisions:
    def test_missing_header_is_unauthenticated(self, authenticator, member_client):
        assert authenticator.authenticate({}) == Unauthenticated("missing credentials")
        assert member_client.connects == 0

    def test_other_scheme_is_unauthenticated(self, authenticator):
        assert authenticator.authenticate({"authorization": "Bearer plop"}) == Unauthenticated("unsupported scheme")

    def test_non_ascii_payload_is_forbidden(self, authenticator, member_client):
        decision = authenticator.authenticate({"authorization": "Basic \u00e9\u00e9\u00e9\u00e9"})
        assert decision == Forbidden("malformed credentials")
        assert member_client.connects == 0

    @pytest.mark.parametrize("payload", [b":pass", b"user:", b"user"])
    def test_empty_fields_are_forbidden(self, authenticator, member_client, payload):
        assert authenticator.authenticate(_raw_basic(payload)) == Forbidden("malformed credentials")
        assert member_client.connects == 0


class TestCache:
    def test_primed_cache_allows_without_directory(self, authenticator, member_client, cache):
        cache.set("carol", "pw")

        decision = authenticator.authenticate(basic_header("carol", "pw"))

        assert decision == Allowed("carol", cached=True)
        assert member_client.connects == 0

    def test_cached_principal_with_wrong_secret_is_denied(self, authenticator, member_client, cache):
        cache.set("jerome", "secret")

        decision = authenticator.authenticate(basic_header("jerome", "guess"))

        assert isinstance(decision, Forbidden)
        assert member_client.connects == 1
        assert "jerome" not in cache

    def test_rotated_password_is_relearned(self, authenticator, member_client, cache):
        cache.set("jerome", "old-secret")

        decision = authenticator.authenticate(basic_header("jerome", "secret"))

        assert isinstance(decision, Allowed)
        assert cache.get("jerome") == "secret"

    def test_second_request_served_from_cache(self, authenticator, member_client):
        first = authenticator.authenticate(basic_header("jerome", "secret"))
        second = authenticator.authenticate(basic_header("jerome", "secret"))

        assert first == Allowed("jerome", grants=(APP_GROUP_DN,))
        assert second == Allowed("jerome", cached=True)
        assert member_client.connects == 1

    def test_without_cache_always_asks_directory(self, user_bind_config, member_client):
        authenticator = LDAPBasicAuthenticator(GroupMembershipVerifier(user_bind_config), member_client)
        assert authenticator.cache is None

        for _ in range(3):
            assert isinstance(authenticator.authenticate(basic_header("jerome", "secret")), Allowed)
        assert member_client.connects == 3


class TestUserBindTopology:
    def test_member_is_allowed_and_cached(self, authenticator, member_client, cache):
        decision = authenticator.authenticate(basic_header("jerome", "secret"))

        assert decision == Allowed("jerome", grants=(APP_GROUP_DN,))
        assert cache.get("jerome") == "secret"
        assert member_client.connects == 1
        assert member_client.unbinds == 1

    def test_non_member_is_forbidden_and_not_cached(self, authenticator, member_client, cache):
        decision = authenticator.authenticate(basic_header("alice", "wonderland"))

        assert decision == Forbidden("principal is not a member")
        assert len(cache) == 0
        assert member_client.unbinds == 1

    def test_wrong_secret_is_forbidden(self, authenticator, member_client, cache):
        decision = authenticator.authenticate(basic_header("jerome", "wrong"))

        assert decision == Forbidden("invalid credentials")
        assert len(cache) == 0
        assert member_client.unbinds == 1


class TestServiceBindTopology:
    @pytest.fixture
    def service_client(self, fake_client: FakeDirectoryClient) -> FakeDirectoryClient:
        fake_client.passwords[SERVICE_DN] = SERVICE_PASSWORD
        fake_client.add_user("jerome", "secret")
        fake_client.add_searchable("jerome")
        return fake_client

    @pytest.fixture
    def service_authenticator(self, service_bind_config, service_client, cache) -> LDAPBasicAuthenticator:
        return LDAPBasicAuthenticator(ServiceSearchVerifier(service_bind_config), service_client, cache=cache)

    def test_found_user_is_allowed(self, service_authenticator, service_client, cache):
        decision = service_authenticator.authenticate(basic_header("jerome", "secret"))

        assert decision == Allowed("jerome", grants=(user_dn("jerome"),))
        assert cache.get("jerome") == "secret"
        assert service_client.unbinds == 1

    def test_unknown_user_is_forbidden(self, service_authenticator, service_client, cache):
        decision = service_authenticator.authenticate(basic_header("nobody", "secret"))

        assert decision == Forbidden("principal not found")
        assert len(cache) == 0
        assert service_client.unbinds == 1

    def test_rebind_failure_is_forbidden(self, service_authenticator, service_client, cache):
        decision = service_authenticator.authenticate(basic_header("jerome", "wrong"))

        assert decision == Forbidden("invalid credentials")
        assert len(cache) == 0
        assert service_client.unbinds == 1


class TestDirectoryFailures:
    def test_connection_failure_fails_closed(self, authenticator, member_client, cache, caplog):
        member_client.connect_failures = 5

        with caplog.at_level(logging.WARNING, logger="ldap_basic_auth.auth.basic"):
            decision = authenticator.authenticate(basic_header("jerome", "secret"))

        assert decision == Forbidden("directory connection failure")
        assert len(cache) == 0
        assert member_client.unbinds == 0
        assert any("Directory unavailable" in r.message for r in caplog.records)

    def test_timeout_fails_closed(self, authenticator, member_client, cache):
        member_client.search_error = DirectoryTimeoutError()

        decision = authenticator.authenticate(basic_header("jerome", "secret"))

        assert decision == Forbidden("directory timeout")
        assert len(cache) == 0
        assert member_client.unbinds == 1

    def test_protocol_error_fails_closed(self, authenticator, member_client, cache):
        member_client.search_error = DirectoryProtocolError("search failed", result_code=32)

        decision = authenticator.authenticate(basic_header("jerome", "secret"))

        assert isinstance(decision, Forbidden)
        assert len(cache) == 0

    def test_unbind_failure_keeps_allow(self, authenticator, member_client, cache):
        member_client.unbind_error = DirectoryConnectionError("socket closed")

        decision = authenticator.authenticate(basic_header("jerome", "secret"))

        assert isinstance(decision, Allowed)
        assert member_client.unbinds == 1

    def test_secret_never_logged(self, authenticator, caplog):
        with caplog.at_level(logging.DEBUG, logger="ldap_basic_auth"):
            authenticator.authenticate(basic_header("jerome", "secret"))
            authenticator.authenticate(basic_header("jerome", "hunter2"))

        assert not any("hunter2" in r.getMessage() for r in caplog.records)


class TestConcurrency:
    def test_distinct_principals_all_cached(self, user_bind_config, fake_client, cache):
        principals = [f"user{i}" for i in range(40)]
        for principal in principals:
            fake_client.add_user(principal, f"pw-{principal}")
            fake_client.add_member(principal)
        authenticator = LDAPBasicAuthenticator(GroupMembershipVerifier(user_bind_config), fake_client, cache=cache)

        decisions: dict[str, object] = {}
        barrier = threading.Barrier(len(principals))

        def run(principal: str) -> None:
            barrier.wait()
            decisions[principal] = authenticator.authenticate(basic_header(principal, f"pw-{principal}"))

        threads = [threading.Thread(target=run, args=(p,)) for p in principals]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(isinstance(decisions[p], Allowed) for p in principals)
        assert len(cache) == len(principals)
        assert all(cache.get(p) == f"pw-{p}" for p in principals)
        assert fake_client.connects == fake_client.unbinds == len(principals)


class TestIdentity:
    def test_allowed_to_identity(self):
        identity = Allowed("jerome", grants=(APP_GROUP_DN,)).to_identity()
        assert isinstance(identity, Identity)
        assert identity.id == "jerome"
        assert identity.type == "user"
        assert identity.roles == (APP_GROUP_DN,)
        assert identity.attrs["scheme"] == "basic"
