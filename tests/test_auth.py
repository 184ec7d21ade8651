from __future__ import annotations

import pytest
from pydantic import SecretStr

from apple_mcp.errors import AuthenticationError
from apple_mcp.security.auth import check_authentication, require_authentication


@pytest.mark.parametrize("configured", [None, SecretStr("")])
def test_no_configured_token_allows_everything(configured: SecretStr | None) -> None:
    assert check_authentication(configured, None)
    assert check_authentication(configured, "anything")


def test_configured_token_requires_exact_match() -> None:
    token = SecretStr("s3cret")

    assert check_authentication(token, "s3cret")
    assert not check_authentication(token, None)
    assert not check_authentication(token, "")
    assert not check_authentication(token, "S3CRET")
    assert not check_authentication(token, "s3cret ")


def test_require_authentication_does_not_echo_tokens() -> None:
    with pytest.raises(AuthenticationError) as exc_info:
        require_authentication(SecretStr("s3cret"), "guess")

    assert "s3cret" not in str(exc_info.value)
    assert "guess" not in str(exc_info.value)
    assert exc_info.value.to_dict()["error"]["type"] == "authentication_failed"
