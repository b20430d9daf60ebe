"""Authentication service: credential checks, sessions and user management."""

from __future__ import annotations

from datetime import timedelta

import structlog
from portal.core.auth import create_access_token
from portal.core.config import get_settings
from portal.core.passwords import (
    dummy_verify_async,
    hash_password_async,
    verify_password_async,
)
from portal.core.time import utcnow
from portal.domain.errors import (
    EmailInUseError,
    InvalidCredentialsError,
    UserNotFoundError,
    UserStateError,
)
from portal.domain.models import Session
from portal.domain.password_policy import check_password
from portal.domain.services.setup_tokens import Clock
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

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid email or password"
OPEN_APPLICATION_STATUSES = (ApplicationStatus.PENDING, ApplicationStatus.APPROVED)


class AuthService:
    """Service for authentication operations."""

    def __init__(self, session: AsyncSession, clock: Clock = utcnow) -> None:
        self.session = session
        self.clock = clock

    async def authenticate(self, *, email: str, password: str, role: str) -> Session:
        """
        Verify email, password and claimed role, then issue a session.

        Unknown email, wrong password, role mismatch and inactive accounts all
        raise the same ``InvalidCredentialsError``; only the log event tells
        them apart.
        """
        await logger.ainfo("login_attempt", email=email, claimed_role=role)

        stmt = (
            select(UserModel)
            .where(UserModel.email == email.strip().lower())
            .execution_options(populate_existing=True)
        )
        async with UnitOfWork(self.session):
            user = await self.session.scalar(stmt)

            if user is None:
                await dummy_verify_async()
                await logger.awarning("login_user_not_found", email=email)
                raise InvalidCredentialsError(INVALID_CREDENTIALS)

            if not await verify_password_async(password, user.hashed_password):
                await logger.awarning("login_invalid_password", email=email)
                raise InvalidCredentialsError(INVALID_CREDENTIALS)

            if user.role.value != role:
                await logger.awarning(
                    "login_role_mismatch",
                    email=email,
                    claimed_role=role,
                    actual_role=user.role.value,
                )
                raise InvalidCredentialsError(INVALID_CREDENTIALS)

            if user.status != UserStatus.ACTIVE:
                await logger.awarning("login_inactive_user", email=email, status=user.status.value)
                raise InvalidCredentialsError(INVALID_CREDENTIALS)

            now = self.clock()
            await self.session.execute(
                update(UserModel)
                .where(UserModel.id == user.id)
                .values(last_login_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.session.refresh(user)

        session = self._issue_session(user)
        await logger.ainfo("login_success", user_id=user.id, role=session.role)
        return session

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        full_name: str | None = None,
        role: UserRole = UserRole.STUDENT,
        confirmation: str | None = None,
    ) -> UserModel:
        """Create a credential directly: admin-created accounts and seeded admins."""
        check_password(password, password if confirmation is None else confirmation)
        normalized = email.strip().lower()
        hashed_password = await hash_password_async(password)
        user = UserModel(
            email=normalized,
            hashed_password=hashed_password,
            full_name=full_name,
            role=role,
            status=UserStatus.ACTIVE,
        )

        try:
            async with UnitOfWork(self.session):
                # An applicant still waiting on a setup link owns this email
                open_application = await self.session.scalar(
                    select(ApplicationModel.id).where(
                        ApplicationModel.email == normalized,
                        ApplicationModel.status.in_(OPEN_APPLICATION_STATUSES),
                    )
                )
                if open_application is not None:
                    raise EmailInUseError(f"An application for {normalized} is in progress")
                self.session.add(user)
                await self.session.flush()
                await self.session.refresh(user)
        except IntegrityError as exc:
            await logger.awarning("create_user_duplicate_email", email=normalized)
            raise EmailInUseError(f"User with email {normalized} already exists") from exc
        except EmailInUseError:
            await logger.awarning("create_user_open_application", email=normalized)
            raise

        await logger.ainfo("create_user_success", user_id=user.id, role=role.value)
        return user

    async def get_user_by_id(self, user_id: str) -> dict:
        """Get user by ID."""
        user = await self._load_user(user_id)
        return self.user_to_dict(user)

    async def list_users(self, role: UserRole | None = None) -> list[dict]:
        stmt = select(UserModel).order_by(UserModel.created_at.desc())
        if role is not None:
            stmt = stmt.where(UserModel.role == role)
        async with UnitOfWork(self.session):
            users = (await self.session.scalars(stmt)).all()
        return [self.user_to_dict(user) for user in users]

    async def set_blocked(self, user_id: str, *, blocked: bool, acting_user_id: str) -> dict:
        """Suspend or reactivate an account. Suspended accounts cannot log in."""
        if user_id == acting_user_id:
            raise UserStateError("Cannot change the status of your own account")

        new_status = UserStatus.SUSPENDED if blocked else UserStatus.ACTIVE
        async with UnitOfWork(self.session):
            result = await self.session.execute(
                update(UserModel)
                .where(UserModel.id == user_id)
                .values(status=new_status)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise UserNotFoundError(f"User {user_id} not found")

        await logger.ainfo(
            "user_status_changed",
            user_id=user_id,
            status=new_status.value,
            changed_by=acting_user_id,
        )
        return await self.get_user_by_id(user_id)

    async def delete_user(self, user_id: str, *, acting_user_id: str) -> dict:
        if user_id == acting_user_id:
            raise UserStateError("Cannot delete your own account")

        user = await self._load_user(user_id)
        removed = self.user_to_dict(user)
        async with UnitOfWork(self.session):
            await self.session.delete(user)

        await logger.ainfo("user_deleted", user_id=user_id, deleted_by=acting_user_id)
        return removed

    async def change_password(
        self,
        *,
        user_id: str,
        current_password: str,
        new_password: str,
        confirmation: str,
    ) -> dict:
        """Change a user's password after re-checking the current one."""
        user = await self._load_user(user_id)

        if not await verify_password_async(current_password, user.hashed_password):
            await logger.awarning("change_password_invalid_current", user_id=user_id)
            raise InvalidCredentialsError("Current password is incorrect")

        check_password(new_password, confirmation)

        new_hashed = await hash_password_async(new_password)
        async with UnitOfWork(self.session):
            await self.session.execute(
                update(UserModel)
                .where(UserModel.id == user_id)
                .values(hashed_password=new_hashed)
                .execution_options(synchronize_session=False)
            )

        await logger.ainfo("password_changed", user_id=user_id)

        return {"message": "Password changed successfully"}

    async def _load_user(self, user_id: str) -> UserModel:
        async with UnitOfWork(self.session):
            user = await self.session.scalar(
                select(UserModel)
                .where(UserModel.id == user_id)
                .execution_options(populate_existing=True)
            )
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def _issue_session(self, user: UserModel) -> Session:
        settings = get_settings()
        issued_at = self.clock()
        ttl = timedelta(seconds=settings.session_ttl_seconds)
        token = create_access_token(
            user.id,
            role=user.role.value,
            email=user.email,
            expires_delta=ttl,
            issued_at=issued_at,
        )
        return Session(
            token=token,
            user_id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role.value,
            issued_at=issued_at,
            expires_at=issued_at + ttl,
        )

    @staticmethod
    def user_to_dict(user: UserModel) -> dict:
        """Convert UserModel to dict for response."""
        return {
            "id": user.id,
            "email": user.email,
            "full_name": user.full_name,
            "role": user.role.value,
            "status": user.status.value,
            "created_at": user.created_at,
            "last_login_at": user.last_login_at,
        }
