"""
Account setup email: delivers the one-time setup link to an approved applicant.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape
from urllib.parse import urlencode

import structlog
from portal.core.config import get_settings
from portal.libs.resend_client import EmailSender, ResendClient, ResendClientError

logger = structlog.get_logger(__name__)

SETUP_PATH = "/account-setup"


class SetupEmailSendError(Exception):
    """Raised when the setup email could not be handed to the provider."""


@dataclass(slots=True)
class SetupEmailResult:
    to_email: str
    resend_id: str


def build_setup_url(token: str, frontend_base_url: str | None = None) -> str | None:
    """Return the client URL embedding ``token``, or None without a configured frontend."""
    base_url = frontend_base_url if frontend_base_url is not None else get_settings().frontend_base_url
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}{SETUP_PATH}?{urlencode({'token': token})}"


class SetupEmailService:
    """Service to send account setup links via Resend."""

    def __init__(self, client: EmailSender | None = None) -> None:
        self.client = client or ResendClient()
        self.settings = get_settings()

    async def send_setup_email(
        self,
        *,
        email: str,
        full_name: str,
        token: str,
        expires_at: datetime,
    ) -> SetupEmailResult:
        from_email = self.settings.resend_from_email
        if not from_email:
            raise SetupEmailSendError("RESEND_FROM_EMAIL not configured")

        setup_url = build_setup_url(token, self.settings.frontend_base_url)
        text_body, html_body = self._build_email_content(
            full_name=full_name, token=token, setup_url=setup_url, expires_at=expires_at
        )

        try:
            response = await self.client.send_email(
                from_email=from_email,
                to_emails=[email],
                subject=f"{self.settings.app_name}: set up your account",
                html=html_body,
                text=text_body,
            )
        except ResendClientError as exc:
            await logger.aerror("setup_email_failed", to_email=email, error=str(exc))
            raise SetupEmailSendError("Failed to send setup email") from exc

        await logger.ainfo("setup_email_sent", to_email=email, resend_id=response.id)
        return SetupEmailResult(to_email=email, resend_id=response.id)

    async def deliver(
        self,
        *,
        email: str,
        full_name: str,
        token: str,
        expires_at: datetime,
    ) -> None:
        """Fire-and-forget variant for background tasks; failures are only logged."""
        try:
            await self.send_setup_email(
                email=email, full_name=full_name, token=token, expires_at=expires_at
            )
        except SetupEmailSendError:
            await logger.awarning("setup_email_not_delivered", to_email=email)

    def _build_email_content(
        self,
        *,
        full_name: str,
        token: str,
        setup_url: str | None,
        expires_at: datetime,
    ) -> tuple[str, str]:
        expiry = expires_at.strftime("%Y-%m-%d %H:%M UTC")
        action_text = setup_url or f"Your setup code: {token}"

        text_body = "\n".join(
            [
                f"Hi {full_name},",
                "",
                "Your application has been approved. Set your password to activate your account:",
                "",
                action_text,
                "",
                f"This link can be used once and expires on {expiry}.",
                "",
                "Thank you,",
                f"{self.settings.app_name} Team",
            ]
        )

        if setup_url:
            url_html = escape(setup_url)
            action_html = f'<p><a href="{url_html}">Set up your account</a></p>'
        else:
            action_html = f"<p>Your setup code: <code>{escape(token)}</code></p>"

        html_body = (
            f"<p>Hi {escape(full_name)},</p>"
            "<p>Your application has been approved. "
            "Set your password to activate your account:</p>"
            f"{action_html}"
            f"<p>This link can be used once and expires on {escape(expiry)}.</p>"
            f"<p>Thank you,<br>{escape(self.settings.app_name)} Team</p>"
        )

        return text_body, html_body
