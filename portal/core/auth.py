from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import Enum

import jwt
from portal.core.config import get_settings


class SessionTokenError(Exception):
    """Raised when a session token cannot be decoded or validated."""


class Role(str, Enum):
    STUDENT = "student"
    RECRUITER = "recruiter"
    TRAINER = "trainer"
    ADMIN = "admin"

    @classmethod
    def contains(cls, value: str) -> bool:
        return value in {role.value for role in cls}


def create_access_token(
    subject: str,
    *,
    role: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
    issued_at: datetime | None = None,
) -> str:
    """Generate a signed JWT session token carrying a single role claim."""
    settings = get_settings()

    if role not in settings.allowed_roles:
        raise SessionTokenError(f"Unsupported role: {role}")

    now = issued_at or datetime.now(UTC)
    ttl = expires_delta or timedelta(seconds=settings.session_ttl_seconds)
    payload = {
        "sub": subject,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        "iss": settings.app_name,
    }

    if email:
        payload["email"] = email

    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    """Decode and validate a JWT session token, enforcing expiry."""
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.app_name,
            options={"require": ["sub", "role", "exp"]},
        )
    except jwt.PyJWTError as exc:
        raise SessionTokenError("Invalid or expired token") from exc

    if not Role.contains(payload["role"]):
        raise SessionTokenError(f"Unsupported role: {payload['role']}")
    return payload
