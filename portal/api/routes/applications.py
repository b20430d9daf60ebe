"""Application routes - public intake plus admin approval workflow."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, status
from portal.api.deps import get_db_session, get_setup_email_service, require_admin
from portal.api.schemas.applications import (
    ApplicationCreateRequest,
    ApplicationResponse,
    ApproveApplicationRequest,
    SetupLinkResponse,
)
from portal.domain import IssuedSetupToken, User
from portal.domain.services.applications import ApplicationService
from portal.domain.services.setup_email import SetupEmailService, build_setup_url
from portal.infrastructure.db.models import ApplicationModel, ApplicationStatus
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()
router = APIRouter(prefix="/applications", tags=["applications"])


@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit application",
)
async def submit_application(
    payload: ApplicationCreateRequest,
    session: AsyncSession = Depends(get_db_session),
) -> ApplicationResponse:
    application = await ApplicationService(session).submit(
        full_name=payload.full_name,
        email=payload.email,
        phone=payload.phone,
        about_me=payload.about_me,
    )
    return ApplicationResponse.from_model(application)


@router.get(
    "",
    response_model=list[ApplicationResponse],
    summary="List applications",
)
async def list_applications(
    status_filter: ApplicationStatus | None = Query(None, alias="status"),  # noqa: B008
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> list[ApplicationResponse]:
    applications = await ApplicationService(session).list_applications(status_filter)
    return [ApplicationResponse.from_model(application) for application in applications]


@router.post(
    "/{application_id}/approve",
    response_model=SetupLinkResponse,
    summary="Approve application",
    description="Approve a pending application, issue a setup token and email the setup link.",
)
async def approve_application(
    application_id: str,
    background_tasks: BackgroundTasks,
    payload: ApproveApplicationRequest | None = Body(None),  # noqa: B008
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    mailer: SetupEmailService = Depends(get_setup_email_service),
) -> SetupLinkResponse:
    approved_by = (payload.approved_by if payload else None) or admin.email or admin.user_id
    application, issued = await ApplicationService(session).approve(
        application_id, approved_by=approved_by
    )
    _queue_setup_email(background_tasks, mailer, application, issued)
    return _setup_link_response("Application approved", application, issued)


@router.post(
    "/{application_id}/setup-link",
    response_model=SetupLinkResponse,
    summary="Reissue setup link",
    description="Expire any outstanding setup token and email a fresh one.",
)
async def reissue_setup_link(
    application_id: str,
    background_tasks: BackgroundTasks,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
    mailer: SetupEmailService = Depends(get_setup_email_service),
) -> SetupLinkResponse:
    application, issued = await ApplicationService(session).reissue_setup_token(application_id)
    _queue_setup_email(background_tasks, mailer, application, issued)
    return _setup_link_response("Setup link generated", application, issued)


@router.post(
    "/{application_id}/reject",
    response_model=ApplicationResponse,
    summary="Reject application",
)
async def reject_application(
    application_id: str,
    _: User = Depends(require_admin),
    session: AsyncSession = Depends(get_db_session),
) -> ApplicationResponse:
    application = await ApplicationService(session).reject(application_id)
    return ApplicationResponse.from_model(application)


def _queue_setup_email(
    background_tasks: BackgroundTasks,
    mailer: SetupEmailService,
    application: ApplicationModel,
    issued: IssuedSetupToken,
) -> None:
    background_tasks.add_task(
        mailer.deliver,
        email=application.email,
        full_name=application.full_name,
        token=issued.value,
        expires_at=issued.expires_at,
    )


def _setup_link_response(
    message: str, application: ApplicationModel, issued: IssuedSetupToken
) -> SetupLinkResponse:
    return SetupLinkResponse(
        message=message,
        application=ApplicationResponse.from_model(application),
        setup_token=issued.value,
        setup_url=build_setup_url(issued.value),
        expires_at=issued.expires_at,
    )
