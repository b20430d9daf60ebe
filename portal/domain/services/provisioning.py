"""Account provisioning: turn an approved applicant into a credentialed user."""

from __future__ import annotations

import structlog
from portal.core.passwords import hash_password_async
from portal.core.time import utcnow
from portal.domain.errors import AlreadyProvisionedError, SetupTokenError
from portal.domain.password_policy import check_password
from portal.domain.services.setup_tokens import Clock, SetupTokenStore
from portal.infrastructure.db.models import (
    ApplicationModel,
    ApplicationStatus,
    UserModel,
    UserRole,
    UserStatus,
)
from portal.infrastructure.repositories import UnitOfWork
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger(__name__)


class ProvisioningService:
    """Creates user credentials from setup tokens."""

    def __init__(self, session: AsyncSession, clock: Clock = utcnow) -> None:
        self.session = session
        self.clock = clock
        self.tokens = SetupTokenStore(session, clock)

    async def provision(
        self,
        *,
        token: str,
        password: str,
        confirmation: str,
        role: UserRole = UserRole.STUDENT,
    ) -> UserModel:
        """
        Exchange a setup token and a policy-compliant password for an account.

        The user row, the token consumption and the applicant status change
        are written in one transaction, so a failure part way leaves the token
        usable and no credential behind.

        Raises:
            SetupTokenError: token unknown, expired or already used
            PasswordPolicyError: password rejected by the policy
            AlreadyProvisionedError: an account already exists for the email
        """
        try:
            async with UnitOfWork(self.session):
                applicant = await self.tokens.resolve(token)
                check_password(password, confirmation)

                email = applicant.email.lower()
                existing = await self.session.scalar(
                    select(UserModel.id).where(UserModel.email == email)
                )
                if existing is not None:
                    await logger.awarning(
                        "provision_already_provisioned",
                        application_id=applicant.application_id,
                    )
                    raise AlreadyProvisionedError("An account already exists for this email")

                hashed_password = await hash_password_async(password)

                user = UserModel(
                    email=email,
                    hashed_password=hashed_password,
                    full_name=applicant.full_name,
                    role=role,
                    status=UserStatus.ACTIVE,
                    application_id=applicant.application_id,
                )
                self.session.add(user)
                await self.session.flush()

                await self.tokens.consume(token)
                await self.session.execute(
                    update(ApplicationModel)
                    .where(ApplicationModel.id == applicant.application_id)
                    .values(status=ApplicationStatus.PROVISIONED, provisioned_at=self.clock())
                    .execution_options(synchronize_session=False)
                )
                await self.session.refresh(user)
        except IntegrityError as exc:
            # Lost a race with a concurrent provisioning for the same email
            await logger.awarning("provision_integrity_conflict")
            raise AlreadyProvisionedError("An account already exists for this email") from exc
        except SetupTokenError as exc:
            await logger.awarning("provision_token_rejected", reason=exc.reason.value)
            raise

        await logger.ainfo(
            "provision_success",
            user_id=user.id,
            application_id=applicant.application_id,
            role=role.value,
        )
        return user
