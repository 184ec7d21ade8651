"""Bearer token check for the protocol surface."""

from __future__ import annotations

from pydantic import SecretStr

from apple_mcp.errors import AuthenticationError


def check_authentication(configured_token: SecretStr | None, presented_token: str | None) -> bool:
    """Return True when no token is configured, else require an exact match.

    Plain equality, not a constant-time comparison; see DESIGN.md.
    """
    if configured_token is None or not configured_token.get_secret_value():
        return True
    return presented_token == configured_token.get_secret_value()


def require_authentication(
    configured_token: SecretStr | None,
    presented_token: str | None,
) -> None:
    if not check_authentication(configured_token, presented_token):
        # Never echo either token back.
        raise AuthenticationError("Invalid or missing bearer token")
