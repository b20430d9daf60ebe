from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class User:
    """Represents an authenticated actor within the system."""

    user_id: str
    email: str = ""
    role: str = ""


@dataclass(frozen=True, slots=True)
class ApplicantView:
    """What a setup token reveals about the applicant it was issued for."""

    application_id: str
    full_name: str
    email: str


@dataclass(frozen=True, slots=True)
class IssuedSetupToken:
    """A freshly issued setup token. ``value`` is only ever available here."""

    value: str
    application_id: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class Session:
    """A signed, time-bounded proof of authentication."""

    token: str
    user_id: str
    email: str
    full_name: str | None
    role: str
    issued_at: datetime
    expires_at: datetime

    @property
    def expires_in(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())
