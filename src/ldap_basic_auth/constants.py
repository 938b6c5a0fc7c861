"""Constants for ldap-basic-auth."""

from __future__ import annotations

# Header and scheme names
AUTHORIZATION_HEADER = "authorization"
BASIC_SCHEME = "basic"
DEFAULT_REALM = "Basic realm"

# Verification topologies
TOPOLOGY_USER_BIND = "user-bind"
TOPOLOGY_SERVICE_BIND = "service-bind"
TOPOLOGIES = (TOPOLOGY_USER_BIND, TOPOLOGY_SERVICE_BIND)

# Directory defaults
DEFAULT_USER_ATTRIBUTE = "uid"
DEFAULT_MEMBER_ATTRIBUTE = "member"
DEFAULT_SEARCH_FILTER = "(uid=%s)"
DEFAULT_SEARCH_SCOPE = "sub"
SEARCH_SCOPES = ("base", "one", "sub")
DEFAULT_TIMEOUT = 5.0
DEFAULT_CONNECT_RETRIES = 1

# Credential cache defaults
DEFAULT_CACHE_SIZE = 1000
DEFAULT_CACHE_TTL = 300.0

# LDAP result codes (RFC 4511 section 4.1.9)
LDAP_SUCCESS = 0
LDAP_NO_SUCH_OBJECT = 32
LDAP_INVALID_CREDENTIALS = 49

# Terminal response bodies
UNAUTHORIZED_BODY = "Unauthorized"
FORBIDDEN_BODY = "Forbidden"
