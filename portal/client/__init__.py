"""Python client for the portal's account setup and login flow."""

from portal.client.api import (
    ApplicantInfo,
    ClientSession,
    PortalAPIError,
    PortalClient,
    PortalClientError,
    PortalConnectionError,
)
from portal.client.router import destination_for_role
from portal.client.views import AccountSetupForm, LoginForm

__all__ = [
    "AccountSetupForm",
    "ApplicantInfo",
    "ClientSession",
    "LoginForm",
    "PortalAPIError",
    "PortalClient",
    "PortalClientError",
    "PortalConnectionError",
    "destination_for_role",
]
