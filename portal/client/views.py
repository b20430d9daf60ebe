"""View-models for the account setup and login screens.

Each form owns its own fields and loading/error flags; nothing is shared
between forms. Password checks here mirror the server's policy for instant
feedback only; the server re-validates every submission.
"""

from __future__ import annotations

from dataclasses import dataclass

from portal.client.api import ApplicantInfo, ClientSession, PortalClient, PortalClientError
from portal.client.router import destination_for_role
from portal.domain.password_policy import validate_password

LOGIN_ROUTE = "/login"
MISSING_TOKEN = "No setup token provided. Please check your email for the setup link."


@dataclass
class AccountSetupForm:
    token: str = ""
    password: str = ""
    confirm_password: str = ""
    applicant: ApplicantInfo | None = None
    loading: bool = False
    error: str | None = None
    completed: bool = False

    @property
    def policy_hint(self) -> str | None:
        """First unmet password rule, re-evaluated on every read."""
        violation = validate_password(self.password, self.confirm_password)
        return violation.reason if violation else None

    @property
    def next_route(self) -> str | None:
        return LOGIN_ROUTE if self.completed else None

    async def load(self, client: PortalClient) -> bool:
        """Resolve the token into the applicant's identity."""
        if not self.token:
            self.error = MISSING_TOKEN
            return False

        self.loading = True
        self.error = None
        try:
            self.applicant = await client.verify_setup_token(self.token)
        except PortalClientError as exc:
            self.error = str(exc)
            return False
        finally:
            self.loading = False
        return True

    async def submit(self, client: PortalClient) -> bool:
        hint = self.policy_hint
        if hint is not None:
            self.error = hint
            return False

        self.loading = True
        self.error = None
        try:
            await client.create_account_from_token(
                self.token, self.password, self.confirm_password
            )
        except PortalClientError as exc:
            self.error = str(exc)
            return False
        finally:
            self.loading = False

        self.completed = True
        self.password = ""
        self.confirm_password = ""
        return True


@dataclass
class LoginForm:
    email: str = ""
    password: str = ""
    role: str = "student"
    loading: bool = False
    error: str | None = None
    session: ClientSession | None = None

    @property
    def next_route(self) -> str | None:
        if self.session is None:
            return None
        # Route by the role the server confirmed, not the one selected in the form
        return destination_for_role(self.session.role)

    async def submit(self, client: PortalClient) -> bool:
        if not self.email or not self.password:
            self.error = "Email and password are required"
            return False

        self.loading = True
        self.error = None
        try:
            self.session = await client.login(self.email, self.password, self.role)
        except PortalClientError as exc:
            self.error = str(exc)
            return False
        finally:
            self.loading = False

        self.password = ""
        return True
