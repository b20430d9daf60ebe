"""Pydantic schemas for authentication and account setup endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names, as the web client expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Request Schemas ---


class VerifySetupTokenRequest(CamelModel):
    """Request schema for setup token verification."""

    token: str = Field(..., min_length=1, max_length=256, description="Setup token from the email link")


class CreateAccountRequest(CamelModel):
    """Request schema for creating an account from a setup token."""

    token: str = Field(..., min_length=1, max_length=256, description="Setup token")
    password: str = Field(..., max_length=128, description="New password")
    confirm_password: str | None = Field(
        None,
        max_length=128,
        description="Password confirmation; defaults to the password when omitted",
    )


class LoginRequest(CamelModel):
    """Request schema for user login."""

    # Plain string: a malformed address just fails the credential check
    email: str = Field(..., max_length=255, description="User email address")
    password: str = Field(..., max_length=128, description="User password")
    role: str = Field(..., max_length=32, description="Role the user is signing in as")


class ChangePasswordRequest(CamelModel):
    """Request schema for password change."""

    current_password: str = Field(..., max_length=128, description="Current password")
    new_password: str = Field(..., max_length=128, description="New password")
    confirm_password: str | None = Field(None, max_length=128)


# --- Response Schemas ---


class SetupTokenApplicantResponse(CamelModel):
    """Identity revealed by a valid setup token."""

    full_name: str
    email: str


class CreateAccountResponse(CamelModel):
    message: str = Field(default="Account created successfully")
    email: str


class UserResponse(CamelModel):
    """Response schema for user data."""

    id: str = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    full_name: str | None = Field(None, description="User's full name")
    role: str = Field(..., description="User role")
    status: str | None = Field(None, description="Account status")
    created_at: datetime | None = Field(None, description="Account creation timestamp")
    last_login_at: datetime | None = Field(None, description="Last login timestamp")


class LoginResponse(CamelModel):
    """Response schema for user login."""

    message: str = Field(default="Login successful")
    token: str = Field(..., description="Bearer session token")
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Session TTL in seconds")
    user: UserResponse


class MeResponse(CamelModel):
    """Response schema for current user info."""

    user: UserResponse


class MessageResponse(CamelModel):
    message: str
