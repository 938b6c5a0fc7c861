"""AuthorizationDecision: the only result the authenticator hands back."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from apcore import Identity

from ldap_basic_auth.constants import BASIC_SCHEME


@dataclass(frozen=True)
class Allowed:
    """The request may proceed as ``principal``.

    Attributes:
        principal: The authenticated user name.
        grants: DNs that granted access (group entries or the user entry).
            Empty when the decision came from the credential cache.
        cached: True if the decision was served from the credential cache.
    """

    principal: str
    grants: tuple[str, ...] = ()
    cached: bool = False

    def to_identity(self) -> Identity:
        """Identity record attached to the request downstream."""
        return Identity(
            id=self.principal,
            type="user",
            roles=self.grants,
            attrs={"scheme": BASIC_SCHEME, "principal": self.principal},
        )


@dataclass(frozen=True)
class Unauthenticated:
    """No usable credentials were presented."""

    reason: str


@dataclass(frozen=True)
class Forbidden:
    """Credentials were presented but rejected."""

    reason: str


AuthorizationDecision = Union[Allowed, Unauthenticated, Forbidden]
