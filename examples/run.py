"""Launch a Basic-auth protected endpoint backed by an LDAP directory.

Usage (from the project root):
    LDAP_URL=ldap://localhost:389 \
    LDAP_USER_BASE=ou=People,dc=example,dc=com \
    LDAP_GROUP_BASE=cn=app,ou=Groups,dc=example,dc=com \
    python examples/run.py

Use the service-bind topology instead by setting LDAP_BIND_DN,
LDAP_BIND_PASSWORD and LDAP_SEARCH_BASE.

Then test with curl:
    curl http://localhost:8000/health                       # 200 (exempt)
    curl http://localhost:8000/whoami                       # 401 + challenge
    curl -u jerome:secret http://localhost:8000/whoami      # 200 or 403
"""

import os

from ldap_basic_auth import AuthConfig, BrowserChallenge, CredentialCache, DirectoryConfig, serve

directory = DirectoryConfig(
    url=os.environ.get("LDAP_URL", "ldap://localhost:389"),
    user_base=os.environ.get("LDAP_USER_BASE", ""),
    group_base=os.environ.get("LDAP_GROUP_BASE", ""),
    service_bind_dn=os.environ.get("LDAP_BIND_DN", ""),
    service_bind_password=os.environ.get("LDAP_BIND_PASSWORD", ""),
    search_base=os.environ.get("LDAP_SEARCH_BASE", ""),
)

print(f"Directory:  {directory.url}")
print(f"Topology:   {directory.topology}")

serve(
    AuthConfig(
        directory=directory,
        cache=CredentialCache(maxsize=1000, ttl=300),
        browser_challenge=BrowserChallenge(realm="example"),
    ),
    host="127.0.0.1",
    port=8000,
    log_level="DEBUG",
)
