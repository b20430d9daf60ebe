"""Authentication routes - setup token exchange, login, profile, password change."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from portal.api.deps import get_current_user, get_db_session
from portal.api.schemas.auth import (
    ChangePasswordRequest,
    CreateAccountRequest,
    CreateAccountResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    SetupTokenApplicantResponse,
    UserResponse,
    VerifySetupTokenRequest,
)
from portal.domain import User
from portal.domain.errors import InvalidCredentialsError
from portal.domain.services.auth_service import AuthService
from portal.domain.services.provisioning import ProvisioningService
from portal.domain.services.setup_tokens import SetupTokenStore
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/verify-setup-token",
    response_model=SetupTokenApplicantResponse,
    summary="Verify account setup token",
    description="Return the applicant's name and email for a valid, unused setup token.",
)
async def verify_setup_token(
    payload: VerifySetupTokenRequest,
    session: AsyncSession = Depends(get_db_session),
) -> SetupTokenApplicantResponse:
    applicant = await SetupTokenStore(session).resolve(payload.token)
    return SetupTokenApplicantResponse(full_name=applicant.full_name, email=applicant.email)


@router.post(
    "/create-account-from-token",
    response_model=CreateAccountResponse,
    summary="Create account from setup token",
    description="Set a password for an approved applicant and consume the setup token.",
)
async def create_account_from_token(
    payload: CreateAccountRequest,
    session: AsyncSession = Depends(get_db_session),
) -> CreateAccountResponse:
    confirmation = (
        payload.confirm_password if payload.confirm_password is not None else payload.password
    )
    user = await ProvisioningService(session).provision(
        token=payload.token,
        password=payload.password,
        confirmation=confirmation,
    )
    return CreateAccountResponse(message="Account created successfully", email=user.email)


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="User login",
    description="Authenticate with email, password and role; returns a bearer session token.",
)
async def login(
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    grant = await AuthService(session).authenticate(
        email=payload.email,
        password=payload.password,
        role=payload.role,
    )
    return LoginResponse(
        message="Login successful",
        token=grant.token,
        expires_in=grant.expires_in,
        user=UserResponse(
            id=grant.user_id,
            email=grant.email,
            full_name=grant.full_name,
            role=grant.role,
        ),
    )


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get current user",
    description="Get the currently authenticated user's profile.",
)
async def get_me(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> MeResponse:
    """Get current authenticated user's profile."""
    user_data = await AuthService(session).get_user_by_id(user.user_id)
    return MeResponse(user=UserResponse(**user_data))


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password",
    description="Change the current user's password; the new password must satisfy the policy.",
)
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    """Change current user's password."""
    confirmation = (
        payload.confirm_password if payload.confirm_password is not None else payload.new_password
    )

    try:
        result = await AuthService(session).change_password(
            user_id=user.user_id,
            current_password=payload.current_password,
            new_password=payload.new_password,
            confirmation=confirmation,
        )
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return MessageResponse(**result)
