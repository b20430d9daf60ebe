from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

_CONFIGURED = False

# Event keys that must never reach the log stream verbatim
SENSITIVE_KEYS = frozenset(
    {"password", "confirmation", "hashed_password", "token", "setup_token", "access_token"}
)


def redact_secrets(
    _: Any, __: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking credential material in log events."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structlog for JSON output on stdout.

    Request-scoped values bound through ``structlog.contextvars`` (request id,
    path, method) are merged into every event. Only the first call has any
    effect.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="timestamp"),
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True
