"""Shared library helpers."""

from portal.libs.resend_client import (
    EmailSender,
    ResendAPIError,
    ResendClient,
    ResendClientError,
    ResendEmailResponse,
)

__all__ = [
    "EmailSender",
    "ResendAPIError",
    "ResendClient",
    "ResendClientError",
    "ResendEmailResponse",
]
