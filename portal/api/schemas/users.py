"""Pydantic schemas for admin user management."""

from __future__ import annotations

from portal.api.schemas.auth import CamelModel, UserResponse
from portal.infrastructure.db.models import UserRole
from pydantic import EmailStr, Field


class UserCreateRequest(CamelModel):
    """Admin-created account; the password is set by the admin and hashed on receipt."""

    full_name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    role: UserRole
    password: str = Field(..., max_length=128)
    confirm_password: str | None = Field(None, max_length=128)


class BlockUserRequest(CamelModel):
    blocked: bool = True


class UserListResponse(CamelModel):
    users: list[UserResponse]


class UserActionResponse(CamelModel):
    message: str
    user: UserResponse
