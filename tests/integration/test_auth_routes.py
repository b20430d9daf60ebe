"""Integration tests for account setup and authentication endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import timedelta

import pytest
from fastapi import status
from httpx import AsyncClient
from portal.api.deps import get_db_session
from portal.api.errors import ALREADY_PROVISIONED, CONNECTION_ERROR, INVALID_SETUP_LINK
from portal.api.main import app
from portal.core.auth import Role
from portal.core.passwords import hash_password
from portal.domain.services.auth_service import INVALID_CREDENTIALS, AuthService
from portal.infrastructure.db.models import UserModel, UserRole, UserStatus
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tests.utils import STRONG_PASSWORD, approved_applicant, auth_headers


class TestVerifySetupToken:
    """Tests for POST /auth/verify-setup-token."""

    async def test_valid_token_reveals_applicant(
        self, async_client: AsyncClient, db: AsyncSession
    ) -> None:
        issued = await approved_applicant(db, email="s@x.com", full_name="Sam Student")

        response = await async_client.post(
            "/auth/verify-setup-token", json={"token": issued.value}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"fullName": "Sam Student", "email": "s@x.com"}

    async def test_unknown_token(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/auth/verify-setup-token", json={"token": "nope"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": INVALID_SETUP_LINK}

    async def test_missing_token_is_a_validation_error(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/auth/verify-setup-token", json={"token": ""})

        assert response.status_code == 422
        assert response.json()["error"].startswith("token:")
        assert response.json()["fields"] == ["token"]

    async def test_expired_token_uses_same_message(
        self, async_client: AsyncClient, db: AsyncSession
    ) -> None:
        issued = await approved_applicant(db, ttl=timedelta(seconds=-1))

        response = await async_client.post(
            "/auth/verify-setup-token", json={"token": issued.value}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {"error": INVALID_SETUP_LINK}


class TestCreateAccountFromToken:
    """Tests for POST /auth/create-account-from-token."""

    async def test_weak_password_then_success_then_replay(
        self, async_client: AsyncClient, db: AsyncSession
    ) -> None:
        issued = await approved_applicant(db, email="s@x.com")

        weak = await async_client.post(
            "/auth/create-account-from-token",
            json={"token": issued.value, "password": "Weak1", "confirmPassword": "Weak1"},
        )
        assert weak.status_code == status.HTTP_400_BAD_REQUEST
        assert weak.json() == {"error": "At least 8 characters", "rule": "length"}

        created = await async_client.post(
            "/auth/create-account-from-token",
            json={
                "token": issued.value,
                "password": STRONG_PASSWORD,
                "confirmPassword": STRONG_PASSWORD,
            },
        )
        assert created.status_code == status.HTTP_200_OK
        assert created.json() == {"message": "Account created successfully", "email": "s@x.com"}

        replay = await async_client.post(
            "/auth/create-account-from-token",
            json={"token": issued.value, "password": STRONG_PASSWORD},
        )
        assert replay.status_code == status.HTTP_400_BAD_REQUEST
        assert replay.json() == {"error": INVALID_SETUP_LINK}

    async def test_confirmation_defaults_to_password(
        self, async_client: AsyncClient, db: AsyncSession
    ) -> None:
        issued = await approved_applicant(db)

        response = await async_client.post(
            "/auth/create-account-from-token",
            json={"token": issued.value, "password": STRONG_PASSWORD},
        )

        assert response.status_code == status.HTTP_200_OK

    async def test_mismatched_confirmation(
        self, async_client: AsyncClient, db: AsyncSession
    ) -> None:
        issued = await approved_applicant(db)

        response = await async_client.post(
            "/auth/create-account-from-token",
            json={
                "token": issued.value,
                "password": STRONG_PASSWORD,
                "confirmPassword": "Str0ng!pwe",
            },
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["rule"] == "match"

    async def test_existing_account_is_conflict(
        self, async_client: AsyncClient, db: AsyncSession
    ) -> None:
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

        response = await async_client.post(
            "/auth/create-account-from-token",
            json={"token": issued.value, "password": STRONG_PASSWORD},
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json() == {"error": ALREADY_PROVISIONED}


class TestLogin:
    """Tests for POST /auth/login."""

    @pytest.fixture
    async def student(self, async_client: AsyncClient, db: AsyncSession) -> dict:
        issued = await approved_applicant(db, email="s@x.com", full_name="Sam Student")
        response = await async_client.post(
            "/auth/create-account-from-token",
            json={"token": issued.value, "password": STRONG_PASSWORD},
        )
        assert response.status_code == status.HTTP_200_OK
        return {"email": "s@x.com", "password": STRONG_PASSWORD, "role": "student"}

    async def test_login_success(self, async_client: AsyncClient, student: dict) -> None:
        response = await async_client.post("/auth/login", json=student)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["message"] == "Login successful"
        assert data["token"]
        assert data["tokenType"] == "bearer"
        assert data["expiresIn"] > 0
        assert data["user"]["email"] == "s@x.com"
        assert data["user"]["fullName"] == "Sam Student"
        assert data["user"]["role"] == "student"

    @pytest.mark.parametrize(
        "override",
        [
            {"password": "Wr0ng!pass"},
            {"role": "recruiter"},
            {"email": "ghost@x.com"},
        ],
        ids=["wrong-password", "wrong-role", "unknown-email"],
    )
    async def test_login_failures_share_one_response(
        self, async_client: AsyncClient, student: dict, override: dict
    ) -> None:
        response = await async_client.post("/auth/login", json={**student, **override})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"message": INVALID_CREDENTIALS}

    async def test_login_invalid_email(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/auth/login",
            json={"email": "not-an-email", "password": STRONG_PASSWORD, "role": "student"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"message": INVALID_CREDENTIALS}

    async def test_seeded_admin_with_local_domain_can_log_in(
        self, async_client: AsyncClient, db: AsyncSession
    ) -> None:
        await AuthService(db).create_user(
            email="admin@portal.local", password=STRONG_PASSWORD, role=UserRole.ADMIN
        )

        response = await async_client.post(
            "/auth/login",
            json={"email": "admin@portal.local", "password": STRONG_PASSWORD, "role": "admin"},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["role"] == "admin"

    async def test_session_token_opens_profile(
        self, async_client: AsyncClient, student: dict
    ) -> None:
        token = (await async_client.post("/auth/login", json=student)).json()["token"]

        response = await async_client.get(
            "/auth/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == status.HTTP_200_OK
        user = response.json()["user"]
        assert user["email"] == "s@x.com"
        assert user["status"] == "active"
        assert user["lastLoginAt"] is not None


class TestMe:
    async def test_requires_token(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/auth/me")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_rejects_garbage_token(self, async_client: AsyncClient) -> None:
        response = await async_client.get(
            "/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    async def test_unknown_user_is_not_found(self, async_client: AsyncClient) -> None:
        response = await async_client.get(
            "/auth/me", headers=auth_headers(user_id="ghost", role=Role.STUDENT)
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestChangePassword:
    async def test_change_password_flow(self, async_client: AsyncClient, db: AsyncSession) -> None:
        user = await AuthService(db).create_user(
            email="t@x.com", password=STRONG_PASSWORD, role=UserRole.TRAINER
        )
        headers = auth_headers(user_id=user.id, role=Role.TRAINER, email="t@x.com")

        wrong = await async_client.post(
            "/auth/change-password",
            headers=headers,
            json={"currentPassword": "Wr0ng!pass", "newPassword": "N3w!Secret"},
        )
        assert wrong.status_code == status.HTTP_400_BAD_REQUEST
        assert wrong.json()["detail"] == "Current password is incorrect"

        weak = await async_client.post(
            "/auth/change-password",
            headers=headers,
            json={"currentPassword": STRONG_PASSWORD, "newPassword": "nouppercase1!"},
        )
        assert weak.status_code == status.HTTP_400_BAD_REQUEST
        assert weak.json()["rule"] == "uppercase"

        changed = await async_client.post(
            "/auth/change-password",
            headers=headers,
            json={
                "currentPassword": STRONG_PASSWORD,
                "newPassword": "N3w!Secret",
                "confirmPassword": "N3w!Secret",
            },
        )
        assert changed.status_code == status.HTTP_200_OK
        assert changed.json() == {"message": "Password changed successfully"}

        login = await async_client.post(
            "/auth/login", json={"email": "t@x.com", "password": "N3w!Secret", "role": "trainer"}
        )
        assert login.status_code == status.HTTP_200_OK


class TestStoreUnavailable:
    @pytest.fixture
    async def broken_store(self, async_client: AsyncClient, tmp_path) -> AsyncIterator[None]:
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'portal.db'}", poolclass=NullPool
        )
        factory = async_sessionmaker(engine, expire_on_commit=False)

        async def override_db_session() -> AsyncIterator[AsyncSession]:
            async with factory() as session:
                yield session

        app.dependency_overrides[get_db_session] = override_db_session
        yield
        await engine.dispose()

    @pytest.mark.parametrize(
        ("path", "body"),
        [
            ("/auth/verify-setup-token", {"token": "abc"}),
            ("/auth/create-account-from-token", {"token": "abc", "password": STRONG_PASSWORD}),
            ("/auth/login", {"email": "s@x.com", "password": STRONG_PASSWORD, "role": "student"}),
        ],
    )
    async def test_database_failure_is_a_connection_error(
        self, async_client: AsyncClient, broken_store: None, path: str, body: dict
    ) -> None:
        response = await async_client.post(path, json=body)

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json() == {"error": CONNECTION_ERROR}
