"""CLI entry point: python -m ldap_basic_auth."""

from __future__ import annotations

import argparse
import logging
import os
import sys

from ldap_basic_auth import serve
from ldap_basic_auth.cache import CredentialCache
from ldap_basic_auth.config import AuthConfig, BrowserChallenge, DirectoryConfig
from ldap_basic_auth.constants import (
    DEFAULT_CACHE_SIZE,
    DEFAULT_CACHE_TTL,
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_MEMBER_ATTRIBUTE,
    DEFAULT_REALM,
    DEFAULT_SEARCH_FILTER,
    DEFAULT_SEARCH_SCOPE,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_ATTRIBUTE,
    SEARCH_SCOPES,
    TOPOLOGIES,
)

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the ldap-basic-auth CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m ldap_basic_auth",
        description="Serve an HTTP endpoint protected by Basic auth verified against LDAP.",
    )

    # Directory connection
    parser.add_argument("--ldap-url", required=True, help="Directory URL, e.g. ldap://ldap.example.com:389.")
    parser.add_argument(
        "--topology",
        choices=TOPOLOGIES,
        default=None,
        help="Verification topology (default: service-bind if --service-bind-dn is given, else user-bind).",
    )
    parser.add_argument("--use-ssl", action="store_true", default=False, help="Connect with LDAPS.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Seconds allowed per directory operation (default: {DEFAULT_TIMEOUT}).",
    )
    parser.add_argument(
        "--connect-retries",
        type=int,
        default=DEFAULT_CONNECT_RETRIES,
        help=f"Extra connection attempts after a transport failure (default: {DEFAULT_CONNECT_RETRIES}).",
    )

    # User-bind topology
    parser.add_argument("--user-base", default="", help="Parent DN of user entries (user-bind).")
    parser.add_argument(
        "--user-attribute",
        default=DEFAULT_USER_ATTRIBUTE,
        help=f'RDN attribute of user entries (default: "{DEFAULT_USER_ATTRIBUTE}").',
    )
    parser.add_argument("--group-base", default="", help="Group entry that must list the user (user-bind).")
    parser.add_argument(
        "--member-attribute",
        default=DEFAULT_MEMBER_ATTRIBUTE,
        help=f'Membership attribute (default: "{DEFAULT_MEMBER_ATTRIBUTE}").',
    )

    # Service-bind topology
    parser.add_argument("--service-bind-dn", default="", help="Service principal DN (service-bind).")
    parser.add_argument(
        "--service-bind-password",
        default=None,
        help="Service principal secret (default: LDAP_BIND_PASSWORD env var).",
    )
    parser.add_argument("--search-base", default="", help="Base DN for the user search (service-bind).")
    parser.add_argument(
        "--search-filter",
        default=DEFAULT_SEARCH_FILTER,
        help="User search filter, %%s is the principal (default: \"%(default)s\").",
    )
    parser.add_argument(
        "--search-scope",
        choices=SEARCH_SCOPES,
        default=DEFAULT_SEARCH_SCOPE,
        help=f"Search scope (default: {DEFAULT_SEARCH_SCOPE}).",
    )
    parser.add_argument("--attributes", default=None, help="Comma-separated attributes to request.")

    # Credential cache
    parser.add_argument(
        "--cache-size",
        type=int,
        default=DEFAULT_CACHE_SIZE,
        help=f"Maximum cached principals (default: {DEFAULT_CACHE_SIZE}).",
    )
    parser.add_argument(
        "--cache-ttl",
        type=float,
        default=DEFAULT_CACHE_TTL,
        help=f"Seconds a verified secret stays cached, 0 disables caching (default: {DEFAULT_CACHE_TTL}).",
    )

    # Challenge
    parser.add_argument("--realm", default=DEFAULT_REALM, help=f'Challenge realm (default: "{DEFAULT_REALM}").')
    parser.add_argument(
        "--no-challenge",
        action="store_true",
        default=False,
        help="Do not send WWW-Authenticate on 401 responses.",
    )

    # HTTP server
    parser.add_argument("--host", default="127.0.0.1", help="Host address (default: 127.0.0.1).")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000, range: 1-65535).")
    parser.add_argument(
        "--exempt-paths",
        default=None,
        help="Comma-separated paths exempt from auth (default: /health).",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="INFO",
        help="Logging level (default: INFO).",
    )

    return parser


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _build_config(args: argparse.Namespace) -> AuthConfig:
    """Translate parsed arguments into an ``AuthConfig``. Raises ValueError."""
    service_password = args.service_bind_password
    if service_password is None:
        service_password = os.environ.get("LDAP_BIND_PASSWORD", "")

    directory = DirectoryConfig(
        url=args.ldap_url,
        topology=args.topology or "",
        user_base=args.user_base,
        user_attribute=args.user_attribute,
        group_base=args.group_base,
        member_attribute=args.member_attribute,
        service_bind_dn=args.service_bind_dn,
        service_bind_password=service_password,
        search_base=args.search_base,
        search_filter=args.search_filter,
        search_scope=args.search_scope,
        attributes=tuple(_split(args.attributes)),
        timeout=args.timeout,
        connect_retries=args.connect_retries,
        use_ssl=args.use_ssl,
    )

    cache = None
    if args.cache_ttl > 0:
        cache = CredentialCache(maxsize=args.cache_size, ttl=args.cache_ttl)

    challenge = None if args.no_challenge else BrowserChallenge(realm=args.realm)
    return AuthConfig(directory=directory, cache=cache, browser_challenge=challenge)


def main() -> None:
    """CLI entry point.

    Exit codes:
        0 - Normal shutdown
        1 - Invalid arguments (bad port, inconsistent directory settings)
        2 - Startup failure (argparse error, serve() exception)
    """
    parser = _build_parser()
    args = parser.parse_args()

    if args.port < 1 or args.port > 65535:
        parser.error(f"--port must be in range 1-65535, got {args.port}")

    try:
        config = _build_config(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    exempt_paths = set(_split(args.exempt_paths)) if args.exempt_paths else None

    try:
        serve(config, host=args.host, port=args.port, exempt_paths=exempt_paths)
    except Exception:
        logger.exception("Server startup failed.")
        sys.exit(2)


if __name__ == "__main__":
    main()
