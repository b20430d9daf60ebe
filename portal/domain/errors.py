"""Domain exceptions raised by the provisioning and authentication services."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from portal.domain.password_policy import PolicyViolation


class PortalError(Exception):
    """Base exception for portal domain errors."""


class PasswordPolicyError(PortalError):
    """Raised when a candidate password fails the password policy."""

    def __init__(self, violation: PolicyViolation) -> None:
        super().__init__(violation.reason)
        self.violation = violation


class TokenFailure(str, enum.Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_CONSUMED = "already_consumed"


class SetupTokenError(PortalError):
    """Raised when a setup token cannot be resolved or consumed."""

    def __init__(self, reason: TokenFailure) -> None:
        super().__init__(f"Setup token rejected: {reason.value}")
        self.reason = reason


class AlreadyProvisionedError(PortalError):
    """Raised when an account already exists for the applicant's email."""


class InvalidCredentialsError(PortalError):
    """Raised for any failed login: unknown email, bad password or role mismatch."""


class StoreUnavailableError(PortalError):
    """Raised when the database cannot be reached or fails mid-operation."""


class EmailInUseError(PortalError):
    """Raised when an application is submitted for an email already on file."""


class ApplicationNotFoundError(PortalError):
    """Raised when an application id does not exist."""


class ApplicationStateError(PortalError):
    """Raised when an application transition is not allowed from its current status."""


class UserNotFoundError(PortalError):
    """Raised when a user is not found."""


class UserStateError(PortalError):
    """Raised when an account change is not allowed, e.g. an admin blocking themselves."""
