"""Application intake and approval workflow."""

from __future__ import annotations

from datetime import timedelta

import structlog
from portal.core.config import get_settings
from portal.core.time import utcnow
from portal.domain.errors import (
    ApplicationNotFoundError,
    ApplicationStateError,
    EmailInUseError,
)
from portal.domain.models import IssuedSetupToken
from portal.domain.services.setup_tokens import Clock, SetupTokenStore
from portal.infrastructure.db.models import ApplicationModel, ApplicationStatus, UserModel
from portal.infrastructure.repositories import UnitOfWork
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger(__name__)


class ApplicationService:
    """Creates applicants and moves them through approval."""

    def __init__(self, session: AsyncSession, clock: Clock = utcnow) -> None:
        self.session = session
        self.clock = clock
        self.tokens = SetupTokenStore(session, clock)

    async def submit(
        self,
        *,
        full_name: str,
        email: str,
        phone: str | None = None,
        about_me: str | None = None,
    ) -> ApplicationModel:
        """Record a new application in ``pending`` status."""
        normalized = email.strip().lower()
        application = ApplicationModel(
            full_name=full_name.strip(),
            email=normalized,
            phone=phone,
            about_me=about_me,
            status=ApplicationStatus.PENDING,
        )

        try:
            async with UnitOfWork(self.session):
                existing_user = await self.session.scalar(
                    select(UserModel.id).where(UserModel.email == normalized)
                )
                if existing_user is not None:
                    raise EmailInUseError("Email already exists")
                self.session.add(application)
                await self.session.flush()
                await self.session.refresh(application)
        except IntegrityError as exc:
            raise EmailInUseError("Email already exists") from exc
        except EmailInUseError:
            await logger.awarning("application_duplicate_email", email=normalized)
            raise
        await logger.ainfo("application_submitted", application_id=application.id)
        return application

    async def list_applications(
        self, status: ApplicationStatus | None = None
    ) -> list[ApplicationModel]:
        stmt = select(ApplicationModel).order_by(ApplicationModel.created_at.desc())
        if status is not None:
            stmt = stmt.where(ApplicationModel.status == status)
        async with UnitOfWork(self.session):
            result = await self.session.scalars(stmt)
            return list(result.all())

    async def approve(
        self,
        application_id: str,
        *,
        approved_by: str,
        ttl: timedelta | None = None,
    ) -> tuple[ApplicationModel, IssuedSetupToken]:
        """Approve a pending application and issue its first setup token."""
        async with UnitOfWork(self.session):
            application = await self._get_for_update(application_id)
            if application.status != ApplicationStatus.PENDING:
                raise ApplicationStateError(
                    f"Cannot approve an application that is {application.status.value}"
                )

            application.status = ApplicationStatus.APPROVED
            application.approved_by = approved_by
            application.approved_at = self.clock()
            issued = await self.tokens.issue(application.id, ttl or self._default_ttl())

        await logger.ainfo(
            "application_approved", application_id=application_id, approved_by=approved_by
        )
        return application, issued

    async def reissue_setup_token(
        self, application_id: str, *, ttl: timedelta | None = None
    ) -> tuple[ApplicationModel, IssuedSetupToken]:
        """Issue a replacement setup token, expiring any outstanding one."""
        async with UnitOfWork(self.session):
            application = await self._get_for_update(application_id)
            if application.status != ApplicationStatus.APPROVED:
                raise ApplicationStateError(
                    f"Cannot issue a setup link for an application that is "
                    f"{application.status.value}"
                )
            revoked = await self.tokens.revoke_outstanding(application.id)
            issued = await self.tokens.issue(application.id, ttl or self._default_ttl())

        await logger.ainfo("setup_token_reissued", application_id=application_id, revoked=revoked)
        return application, issued

    async def reject(self, application_id: str) -> ApplicationModel:
        async with UnitOfWork(self.session):
            application = await self._get_for_update(application_id)
            if application.status not in (ApplicationStatus.PENDING, ApplicationStatus.APPROVED):
                raise ApplicationStateError(
                    f"Cannot reject an application that is {application.status.value}"
                )
            application.status = ApplicationStatus.REJECTED
            await self.tokens.revoke_outstanding(application.id)

        await logger.ainfo("application_rejected", application_id=application_id)
        return application

    async def _get_for_update(self, application_id: str) -> ApplicationModel:
        application = await self.session.scalar(
            select(ApplicationModel)
            .where(ApplicationModel.id == application_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if application is None:
            raise ApplicationNotFoundError(f"Application {application_id} not found")
        return application

    @staticmethod
    def _default_ttl() -> timedelta:
        return timedelta(seconds=get_settings().setup_token_ttl_seconds)
