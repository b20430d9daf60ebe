"""Issuance, lookup and single-use consumption of account setup tokens."""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog
from portal.core.time import as_utc, utcnow
from portal.domain.errors import SetupTokenError, TokenFailure
from portal.domain.models import ApplicantView, IssuedSetupToken
from portal.infrastructure.db.models import (
    ApplicationModel,
    ApplicationStatus,
    SetupTokenModel,
)
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger(__name__)

# 32 random bytes -> 256 bits of entropy, 43 url-safe characters
TOKEN_BYTES = 32

Clock = Callable[[], datetime]


def hash_token(value: str) -> str:
    """Digest under which a token value is stored and looked up."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


class SetupTokenStore:
    """Persistence-backed store for one-time setup tokens.

    The store never commits; callers own the transaction (see ``UnitOfWork``).
    """

    def __init__(self, session: AsyncSession, clock: Clock = utcnow) -> None:
        self.session = session
        self.clock = clock

    async def issue(self, application_id: str, ttl: timedelta) -> IssuedSetupToken:
        """Create a fresh token for ``application_id`` valid for ``ttl``."""
        value = secrets.token_urlsafe(TOKEN_BYTES)
        issued_at = self.clock()
        expires_at = issued_at + ttl

        self.session.add(
            SetupTokenModel(
                token_hash=hash_token(value),
                application_id=application_id,
                issued_at=issued_at,
                expires_at=expires_at,
            )
        )
        await self.session.flush()

        await logger.ainfo(
            "setup_token_issued",
            application_id=application_id,
            expires_at=expires_at.isoformat(),
        )
        return IssuedSetupToken(
            value=value,
            application_id=application_id,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    async def resolve(self, token_value: str) -> ApplicantView:
        """Return the applicant a usable token was issued for.

        Raises:
            SetupTokenError: with reason NOT_FOUND, EXPIRED or ALREADY_CONSUMED.
        """
        stmt = (
            select(SetupTokenModel, ApplicationModel)
            .join(ApplicationModel, SetupTokenModel.application_id == ApplicationModel.id)
            .where(SetupTokenModel.token_hash == hash_token(token_value))
            .execution_options(populate_existing=True)
        )
        row = (await self.session.execute(stmt)).one_or_none()
        if row is None:
            raise SetupTokenError(TokenFailure.NOT_FOUND)

        token, application = row
        if token.consumed_at is not None or application.status == ApplicationStatus.PROVISIONED:
            raise SetupTokenError(TokenFailure.ALREADY_CONSUMED)
        if as_utc(token.expires_at) <= self.clock():
            raise SetupTokenError(TokenFailure.EXPIRED)
        # A rejected applicant's outstanding links stop working
        if application.status != ApplicationStatus.APPROVED:
            raise SetupTokenError(TokenFailure.NOT_FOUND)

        return ApplicantView(
            application_id=application.id,
            full_name=application.full_name,
            email=application.email,
        )

    async def consume(self, token_value: str) -> None:
        """Atomically mark a token consumed.

        A single conditional UPDATE acts as the compare-and-set: of any number
        of concurrent callers presenting the same value, exactly one sees a
        matched row.
        """
        token_hash = hash_token(token_value)
        now = self.clock()
        result = await self.session.execute(
            update(SetupTokenModel)
            .where(
                SetupTokenModel.token_hash == token_hash,
                SetupTokenModel.consumed_at.is_(None),
                SetupTokenModel.expires_at > now,
            )
            .values(consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            await logger.ainfo("setup_token_consumed")
            return

        reason = await self._failure_reason(token_hash)
        await logger.awarning("setup_token_consume_rejected", reason=reason.value)
        raise SetupTokenError(reason)

    async def revoke_outstanding(self, application_id: str) -> int:
        """Expire every unconsumed token of an applicant; returns how many."""
        now = self.clock()
        result = await self.session.execute(
            update(SetupTokenModel)
            .where(
                SetupTokenModel.application_id == application_id,
                SetupTokenModel.consumed_at.is_(None),
                SetupTokenModel.expires_at > now,
            )
            .values(expires_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def _failure_reason(self, token_hash: str) -> TokenFailure:
        row = (
            await self.session.execute(
                select(SetupTokenModel.id, SetupTokenModel.consumed_at).where(
                    SetupTokenModel.token_hash == token_hash
                )
            )
        ).one_or_none()
        if row is None:
            return TokenFailure.NOT_FOUND
        if row.consumed_at is not None:
            return TokenFailure.ALREADY_CONSUMED
        return TokenFailure.EXPIRED
