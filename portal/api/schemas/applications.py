"""Pydantic schemas for application intake and approval endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from portal.api.schemas.auth import CamelModel
from pydantic import EmailStr, Field

if TYPE_CHECKING:
    from portal.infrastructure.db.models import ApplicationModel


class ApplicationCreateRequest(CamelModel):
    full_name: str = Field(..., min_length=1, max_length=128)
    email: EmailStr
    phone: str | None = Field(None, max_length=32)
    about_me: str | None = Field(None, max_length=4000)


class ApproveApplicationRequest(CamelModel):
    approved_by: str | None = Field(
        None, max_length=255, description="Defaults to the approving admin's email"
    )


class ApplicationResponse(CamelModel):
    id: str
    full_name: str
    email: str
    phone: str | None = None
    about_me: str | None = None
    status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    provisioned_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_model(cls, application: ApplicationModel) -> ApplicationResponse:
        return cls(
            id=application.id,
            full_name=application.full_name,
            email=application.email,
            phone=application.phone,
            about_me=application.about_me,
            status=application.status.value,
            approved_by=application.approved_by,
            approved_at=application.approved_at,
            provisioned_at=application.provisioned_at,
            created_at=application.created_at,
        )


class SetupLinkResponse(CamelModel):
    """Returned to admins only; carries the raw setup token once."""

    message: str
    application: ApplicationResponse
    setup_token: str
    setup_url: str | None = None
    expires_at: datetime
