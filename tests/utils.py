from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from portal.api.deps import issue_smoke_token
from portal.core.auth import Role
from portal.core.time import utcnow
from portal.domain import IssuedSetupToken
from portal.domain.services.applications import ApplicationService
from portal.libs.resend_client import ResendClientError, ResendEmailResponse
from sqlalchemy.ext.asyncio import AsyncSession

STRONG_PASSWORD = "Str0ng!pwd"


class FrozenClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class FakeEmailSender:
    """Records outgoing email instead of calling Resend."""

    sent: list[dict] = field(default_factory=list)
    fail: bool = False

    async def send_email(
        self,
        *,
        from_email: str,
        to_emails: list[str],
        subject: str,
        html: str,
        text: str,
    ) -> ResendEmailResponse:
        if self.fail:
            raise ResendClientError("provider down")
        self.sent.append(
            {"from": from_email, "to": to_emails, "subject": subject, "html": html, "text": text}
        )
        return ResendEmailResponse(id=f"email-{len(self.sent)}")


def auth_headers(
    user_id: str = "admin-1", role: Role = Role.ADMIN, email: str = "admin@example.com"
) -> dict[str, str]:
    token = issue_smoke_token(user_id, role=role, email=email)
    return {"Authorization": f"Bearer {token}"}


async def approved_applicant(
    session: AsyncSession,
    *,
    email: str = "s@x.com",
    full_name: str = "Sam Student",
    clock: FrozenClock | None = None,
    ttl: timedelta = timedelta(hours=1),
) -> IssuedSetupToken:
    """Submit and approve an application, returning its setup token."""
    service = ApplicationService(session, clock or utcnow)
    application = await service.submit(full_name=full_name, email=email)
    _, issued = await service.approve(application.id, approved_by="admin@example.com", ttl=ttl)
    return issued
