"""Translation of domain exceptions into HTTP responses.

Token, credential and provisioning failures are deliberately coarse: no
response tells a caller whether an email is registered or whether a token
value exists.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from portal.domain.errors import (
    AlreadyProvisionedError,
    ApplicationNotFoundError,
    ApplicationStateError,
    EmailInUseError,
    InvalidCredentialsError,
    PasswordPolicyError,
    SetupTokenError,
    StoreUnavailableError,
    UserNotFoundError,
    UserStateError,
)
from sqlalchemy.exc import DBAPIError

logger = structlog.get_logger()

INVALID_SETUP_LINK = "Invalid or expired setup link"
ALREADY_PROVISIONED = "Account already exists. Please log in instead."
CONNECTION_ERROR = "Connection error. Please try again."


async def handle_password_policy(_: Request, exc: PasswordPolicyError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": exc.violation.reason, "rule": exc.violation.rule.value},
    )


async def handle_setup_token(_: Request, exc: SetupTokenError) -> JSONResponse:
    # Unknown, expired and already used links share one message
    await logger.ainfo("setup_token_rejected_response", reason=exc.reason.value)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": INVALID_SETUP_LINK},
    )


async def handle_already_provisioned(_: Request, __: AlreadyProvisionedError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": ALREADY_PROVISIONED})


async def handle_invalid_credentials(_: Request, exc: InvalidCredentialsError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"message": str(exc)})


async def handle_email_in_use(_: Request, exc: EmailInUseError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": str(exc)})


async def handle_not_found(_: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})


async def handle_application_state(_: Request, exc: ApplicationStateError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": str(exc)})


async def handle_user_state(_: Request, exc: UserStateError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})


async def handle_request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    return JSONResponse(
        status_code=422,
        content={"error": validation_message(errors), "fields": _error_fields(errors)},
    )


def validation_message(errors: Sequence[Mapping[str, Any]]) -> str:
    """Readable message for the first failing field, e.g. ``email: Field required``."""
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(_location(first))
    message = str(first.get("msg", "Invalid value"))
    return f"{field}: {message}" if field else message


def _location(error: Mapping[str, Any]) -> list[str]:
    # Drop the "body" / "query" prefix FastAPI adds to every location
    return [str(part) for part in error.get("loc", ())[1:]]


def _error_fields(errors: Sequence[Mapping[str, Any]]) -> list[str]:
    return [".".join(_location(error)) for error in errors]


async def handle_store_unavailable(request: Request, exc: Exception) -> JSONResponse:
    await logger.aerror(
        "store_unavailable",
        path=str(request.url.path),
        error=type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": CONNECTION_ERROR},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach domain exception handlers to the application."""
    app.add_exception_handler(PasswordPolicyError, handle_password_policy)
    app.add_exception_handler(SetupTokenError, handle_setup_token)
    app.add_exception_handler(AlreadyProvisionedError, handle_already_provisioned)
    app.add_exception_handler(InvalidCredentialsError, handle_invalid_credentials)
    app.add_exception_handler(EmailInUseError, handle_email_in_use)
    app.add_exception_handler(ApplicationNotFoundError, handle_not_found)
    app.add_exception_handler(UserNotFoundError, handle_not_found)
    app.add_exception_handler(ApplicationStateError, handle_application_state)
    app.add_exception_handler(UserStateError, handle_user_state)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StoreUnavailableError, handle_store_unavailable)
    app.add_exception_handler(DBAPIError, handle_store_unavailable)
