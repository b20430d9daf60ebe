"""Domain services."""

from portal.domain.services.applications import ApplicationService
from portal.domain.services.auth_service import AuthService
from portal.domain.services.provisioning import ProvisioningService
from portal.domain.services.setup_email import SetupEmailService
from portal.domain.services.setup_tokens import SetupTokenStore

__all__ = [
    "ApplicationService",
    "AuthService",
    "ProvisioningService",
    "SetupEmailService",
    "SetupTokenStore",
]
