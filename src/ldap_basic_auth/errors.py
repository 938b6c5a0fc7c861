"""Error hierarchy for ldap-basic-auth.

Header-level errors describe what was wrong with the request itself.
Directory-level errors describe how a verification attempt ended. None of
them leave ``LDAPBasicAuthenticator.authenticate``: each one is translated
into an ``AuthorizationDecision`` before it reaches the HTTP layer.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every authentication failure."""

    reason = "authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.reason)
        self.message = message or self.reason


class MissingCredentialsError(AuthError):
    reason = "missing credentials"


class UnsupportedSchemeError(AuthError):
    reason = "unsupported scheme"


class MalformedCredentialsError(AuthError):
    reason = "malformed credentials"


class DirectoryError(AuthError):
    """Base class for failures raised by the directory layer."""

    reason = "directory error"


class DirectoryConnectionError(DirectoryError):
    """The transport to the directory could not be established or was lost."""

    reason = "directory connection failure"


class DirectoryTimeoutError(DirectoryError):
    reason = "directory timeout"


class DirectoryProtocolError(DirectoryError):
    """The directory answered with a non-success result other than a rejection."""

    reason = "directory protocol error"

    def __init__(self, message: str | None = None, result_code: int | None = None) -> None:
        super().__init__(message)
        self.result_code = result_code


class InvalidCredentialsError(DirectoryError):
    """The directory rejected a bind. Definitive; never retried."""

    reason = "invalid credentials"


class NotFoundError(DirectoryError):
    reason = "principal not found"


class NotAMemberError(DirectoryError):
    reason = "principal is not a member"
