"""HTTP server pieces: the protected Starlette app and its uvicorn runner."""

from ldap_basic_auth.server.app import create_app, run_http

__all__ = ["create_app", "run_http"]
