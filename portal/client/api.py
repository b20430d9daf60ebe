"""
Async HTTP client for the portal's account setup and login endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)

CONNECTION_ERROR = "Connection error. Please try again."


class PortalClientError(Exception):
    """Base exception for portal client errors."""


class PortalConnectionError(PortalClientError):
    """Raised when the backend cannot be reached."""


class PortalAPIError(PortalClientError):
    """Raised for non-success responses from the backend."""

    def __init__(self, message: str, status_code: int, rule: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.rule = rule


@dataclass(frozen=True, slots=True)
class ApplicantInfo:
    full_name: str
    email: str


@dataclass(frozen=True, slots=True)
class ClientSession:
    """Session credential as held by the client: opaque token plus user object."""

    token: str
    user: dict[str, Any] = field(default_factory=dict)

    @property
    def role(self) -> str | None:
        return self.user.get("role")


class PortalClient:
    """Thin async client; the backend base URL is always supplied by the caller."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> PortalClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def verify_setup_token(self, token: str) -> ApplicantInfo:
        data = await self._post("/auth/verify-setup-token", {"token": token})
        return ApplicantInfo(full_name=data["fullName"], email=data["email"])

    async def create_account_from_token(
        self, token: str, password: str, confirmation: str | None = None
    ) -> str:
        """Create the account; returns the email it was created for."""
        payload: dict[str, Any] = {"token": token, "password": password}
        if confirmation is not None:
            payload["confirmPassword"] = confirmation
        data = await self._post("/auth/create-account-from-token", payload)
        return data["email"]

    async def login(self, email: str, password: str, role: str) -> ClientSession:
        data = await self._post(
            "/auth/login", {"email": email, "password": password, "role": role}
        )
        return ClientSession(token=data["token"], user=data.get("user") or {})

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("portal_request_failed", path=path, error=type(exc).__name__)
            raise PortalConnectionError(CONNECTION_ERROR) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_success:
            return data

        raise PortalAPIError(
            _error_message(data, response.status_code),
            status_code=response.status_code,
            rule=data.get("rule") if isinstance(data, dict) else None,
        )


def _error_message(data: Any, status_code: int) -> str:
    if isinstance(data, dict):
        for key in ("error", "message", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Request failed with status {status_code}"
