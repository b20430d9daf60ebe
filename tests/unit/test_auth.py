from datetime import UTC, datetime, timedelta

import pytest
from portal.core.auth import (
    Role,
    SessionTokenError,
    create_access_token,
    decode_access_token,
)


def test_create_and_decode_token_roundtrip() -> None:
    token = create_access_token("user-123", role="student", email="user@example.com")

    payload = decode_access_token(token)

    assert payload["sub"] == "user-123"
    assert payload["role"] == "student"
    assert payload["email"] == "user@example.com"
    assert payload["exp"] > payload["iat"]


def test_token_carries_a_single_role() -> None:
    payload = decode_access_token(create_access_token("user-1", role=Role.TRAINER.value))

    assert payload["role"] == "trainer"
    assert "roles" not in payload


def test_expired_token_is_rejected() -> None:
    issued_at = datetime.now(UTC) - timedelta(hours=2)
    token = create_access_token(
        "user-123", role="student", issued_at=issued_at, expires_delta=timedelta(hours=1)
    )

    with pytest.raises(SessionTokenError):
        decode_access_token(token)


def test_tampered_token_is_rejected() -> None:
    token = create_access_token("user-123", role="student")

    with pytest.raises(SessionTokenError):
        decode_access_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))


def test_unsupported_role_cannot_be_issued() -> None:
    with pytest.raises(SessionTokenError, match="Unsupported role"):
        create_access_token("user-123", role="superuser")
