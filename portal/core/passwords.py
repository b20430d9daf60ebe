"""Password hashing helpers (bcrypt through passlib)."""

from __future__ import annotations

import asyncio
from functools import lru_cache

from passlib.context import CryptContext
from portal.core.config import get_settings


@lru_cache
def get_password_context() -> CryptContext:
    """Return the bcrypt context, with cost taken from settings."""
    settings = get_settings()
    return CryptContext(
        schemes=["bcrypt"],
        deprecated="auto",
        bcrypt__rounds=settings.bcrypt_rounds,
    )


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return get_password_context().hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return get_password_context().verify(plain_password, hashed_password)


def dummy_verify() -> None:
    """Spend the same time as a real verification against no stored hash."""
    get_password_context().dummy_verify()


async def hash_password_async(password: str) -> str:
    # bcrypt is CPU bound; keep it off the event loop but always await it
    return await asyncio.to_thread(hash_password, password)


async def verify_password_async(plain_password: str, hashed_password: str) -> bool:
    return await asyncio.to_thread(verify_password, plain_password, hashed_password)


async def dummy_verify_async() -> None:
    await asyncio.to_thread(dummy_verify)
