"""Admin user management - list, create, block and delete accounts."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Body, Depends, Query, status
from portal.api.deps import get_db_session, require_admin
from portal.api.schemas.auth import UserResponse
from portal.api.schemas.users import (
    BlockUserRequest,
    UserActionResponse,
    UserCreateRequest,
    UserListResponse,
)
from portal.domain import User
from portal.domain.services.auth_service import AuthService
from portal.infrastructure.db.models import UserRole
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()
router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListResponse, summary="List users")
async def list_users(
    role: UserRole | None = Query(None),  # noqa: B008
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> UserListResponse:
    users = await AuthService(session).list_users(role)
    return UserListResponse(users=[UserResponse(**user) for user in users])


@router.post(
    "",
    response_model=UserActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
    description="Create an account with any role. The password must satisfy the policy.",
)
async def create_user(
    payload: UserCreateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> UserActionResponse:
    service = AuthService(session)
    user = await service.create_user(
        email=payload.email,
        password=payload.password,
        full_name=payload.full_name,
        role=payload.role,
        confirmation=payload.confirm_password,
    )
    await logger.ainfo("admin_created_user", user_id=user.id, created_by=admin.user_id)
    return UserActionResponse(
        message="User created successfully", user=UserResponse(**service.user_to_dict(user))
    )


@router.post("/{user_id}/block", response_model=UserActionResponse, summary="Block or unblock user")
async def block_user(
    user_id: str,
    payload: BlockUserRequest | None = Body(None),  # noqa: B008
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> UserActionResponse:
    blocked = payload.blocked if payload else True
    user = await AuthService(session).set_blocked(
        user_id, blocked=blocked, acting_user_id=admin.user_id
    )
    message = "User blocked successfully" if blocked else "User unblocked successfully"
    return UserActionResponse(message=message, user=UserResponse(**user))


@router.delete("/{user_id}", response_model=UserActionResponse, summary="Delete user")
async def delete_user(
    user_id: str,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> UserActionResponse:
    user = await AuthService(session).delete_user(user_id, acting_user_id=admin.user_id)
    return UserActionResponse(message="User deleted successfully", user=UserResponse(**user))
