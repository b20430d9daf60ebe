"""Unit tests for account provisioning."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from portal.core.passwords import hash_password, verify_password
from portal.domain.errors import (
    AlreadyProvisionedError,
    PasswordPolicyError,
    SetupTokenError,
    TokenFailure,
)
from portal.domain.password_policy import PolicyRule
from portal.domain.services.applications import ApplicationService
from portal.domain.services.auth_service import AuthService
from portal.domain.services.provisioning import ProvisioningService
from portal.domain.services.setup_tokens import SetupTokenStore, hash_token
from portal.infrastructure.db.models import (
    ApplicationModel,
    ApplicationStatus,
    SetupTokenModel,
    UserModel,
    UserRole,
    UserStatus,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tests.utils import STRONG_PASSWORD, FrozenClock, approved_applicant


async def _user_count(session: AsyncSession) -> int:
    return await session.scalar(select(func.count()).select_from(UserModel))


async def test_provision_then_authenticate_round_trip(db: AsyncSession) -> None:
    issued = await approved_applicant(db, email="a@x.com", full_name="A")

    user = await ProvisioningService(db).provision(
        token=issued.value, password="Abcd123!", confirmation="Abcd123!"
    )

    assert user.email == "a@x.com"
    assert user.full_name == "A"
    assert user.role == UserRole.STUDENT

    session = await AuthService(db).authenticate(
        email="a@x.com", password="Abcd123!", role=user.role.value
    )
    assert session.role == user.role.value
    assert session.user_id == user.id


async def test_provision_stores_only_a_hash(db: AsyncSession) -> None:
    issued = await approved_applicant(db)

    user = await ProvisioningService(db).provision(
        token=issued.value, password=STRONG_PASSWORD, confirmation=STRONG_PASSWORD
    )

    assert STRONG_PASSWORD not in user.hashed_password
    assert verify_password(STRONG_PASSWORD, user.hashed_password)


async def test_provision_consumes_token_and_marks_applicant(db: AsyncSession) -> None:
    issued = await approved_applicant(db)

    await ProvisioningService(db).provision(
        token=issued.value, password=STRONG_PASSWORD, confirmation=STRONG_PASSWORD
    )

    consumed_at = await db.scalar(
        select(SetupTokenModel.consumed_at).where(
            SetupTokenModel.token_hash == hash_token(issued.value)
        )
    )
    status, provisioned_at = (
        await db.execute(
            select(ApplicationModel.status, ApplicationModel.provisioned_at).where(
                ApplicationModel.id == issued.application_id
            )
        )
    ).one()
    assert consumed_at is not None
    assert status == ApplicationStatus.PROVISIONED
    assert provisioned_at is not None


async def test_setup_scenario_weak_then_strong_then_replay(db: AsyncSession) -> None:
    issued = await approved_applicant(db, email="s@x.com", ttl=timedelta(hours=1))
    service = ProvisioningService(db)

    view = await SetupTokenStore(db).resolve(issued.value)
    assert view.email == "s@x.com"

    with pytest.raises(PasswordPolicyError) as weak:
        await service.provision(token=issued.value, password="Weak1", confirmation="Weak1")
    assert weak.value.violation.rule == PolicyRule.LENGTH

    user = await service.provision(
        token=issued.value, password=STRONG_PASSWORD, confirmation=STRONG_PASSWORD
    )
    assert user.email == "s@x.com"

    with pytest.raises(SetupTokenError) as replay:
        await service.provision(
            token=issued.value, password=STRONG_PASSWORD, confirmation=STRONG_PASSWORD
        )
    assert replay.value.reason == TokenFailure.ALREADY_CONSUMED
    assert await _user_count(db) == 1


async def test_policy_violation_leaves_token_usable(db: AsyncSession) -> None:
    issued = await approved_applicant(db)

    with pytest.raises(PasswordPolicyError):
        await ProvisioningService(db).provision(
            token=issued.value, password=STRONG_PASSWORD, confirmation="Different1!"
        )

    view = await SetupTokenStore(db).resolve(issued.value)
    assert view.application_id == issued.application_id
    assert await _user_count(db) == 0


async def test_expired_token_is_rejected_before_password_checks(
    db: AsyncSession, clock: FrozenClock
) -> None:
    issued = await approved_applicant(db, clock=clock, ttl=timedelta(minutes=30))
    clock.advance(hours=1)

    with pytest.raises(SetupTokenError) as exc_info:
        await ProvisioningService(db, clock).provision(
            token=issued.value, password="weak", confirmation="weak"
        )

    assert exc_info.value.reason == TokenFailure.EXPIRED


async def test_existing_credential_reports_already_provisioned(db: AsyncSession) -> None:
    issued = await approved_applicant(db, email="dup@x.com")
    db.add(
        UserModel(
            email="dup@x.com",
            hashed_password=hash_password(STRONG_PASSWORD),
            role=UserRole.STUDENT,
            status=UserStatus.ACTIVE,
        )
    )
    await db.commit()

    with pytest.raises(AlreadyProvisionedError):
        await ProvisioningService(db).provision(
            token=issued.value, password=STRONG_PASSWORD, confirmation=STRONG_PASSWORD
        )

    # Nothing was consumed, so the failure is recoverable
    consumed_at = await db.scalar(
        select(SetupTokenModel.consumed_at).where(
            SetupTokenModel.token_hash == hash_token(issued.value)
        )
    )
    assert consumed_at is None


async def test_reissued_link_cannot_provision_twice(db: AsyncSession) -> None:
    first = await approved_applicant(db)
    _, second = await ApplicationService(db).reissue_setup_token(first.application_id)

    with pytest.raises(SetupTokenError):
        await SetupTokenStore(db).resolve(first.value)

    await ProvisioningService(db).provision(
        token=second.value, password=STRONG_PASSWORD, confirmation=STRONG_PASSWORD
    )
    assert await _user_count(db) == 1


async def test_concurrent_provisioning_creates_one_account(
    db: AsyncSession, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    issued = await approved_applicant(db)

    async def attempt() -> str:
        async with session_factory() as session:
            try:
                await ProvisioningService(session).provision(
                    token=issued.value, password=STRONG_PASSWORD, confirmation=STRONG_PASSWORD
                )
            except (SetupTokenError, AlreadyProvisionedError) as exc:
                return type(exc).__name__
            return "ok"

    results = await asyncio.gather(attempt(), attempt(), attempt())

    assert results.count("ok") == 1
    assert await _user_count(db) == 1
