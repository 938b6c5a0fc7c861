"""Authentication support for ldap-basic-auth."""

from ldap_basic_auth.auth.basic import BasicCredentials, LDAPBasicAuthenticator, parse_basic_authorization
from ldap_basic_auth.auth.decision import Allowed, AuthorizationDecision, Forbidden, Unauthenticated
from ldap_basic_auth.auth.middleware import AuthMiddleware, StatusMapping, auth_identity_var, extract_headers
from ldap_basic_auth.auth.protocol import Authenticator

__all__ = [
    "Authenticator",
    "LDAPBasicAuthenticator",
    "BasicCredentials",
    "parse_basic_authorization",
    "Allowed",
    "Unauthenticated",
    "Forbidden",
    "AuthorizationDecision",
    "AuthMiddleware",
    "StatusMapping",
    "auth_identity_var",
    "extract_headers",
]
