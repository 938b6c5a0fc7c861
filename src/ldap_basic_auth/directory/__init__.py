"""Directory access: the ldap3 client and the verification topologies."""

from ldap_basic_auth.directory.client import (
    DirectoryClient,
    DirectoryEntry,
    Ldap3DirectoryClient,
    directory_session,
)
from ldap_basic_auth.directory.verifiers import (
    DirectoryVerifier,
    GroupMembershipVerifier,
    ServiceSearchVerifier,
    create_verifier,
)

__all__ = [
    "DirectoryClient",
    "DirectoryEntry",
    "Ldap3DirectoryClient",
    "directory_session",
    "DirectoryVerifier",
    "GroupMembershipVerifier",
    "ServiceSearchVerifier",
    "create_verifier",
]
