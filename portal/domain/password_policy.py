"""Password policy shared by the API and the client.

Rules are evaluated in a fixed order and only the first failing rule is
reported, so interactive forms can re-validate on every keystroke and show a
single actionable hint. The server always re-runs the same rules; a result
computed on the client is advisory only.
"""

from __future__ import annotations

import enum
import string
from collections.abc import Callable
from dataclasses import dataclass

from portal.domain.errors import PasswordPolicyError

MIN_LENGTH = 8
SYMBOLS = frozenset("!@#$%^&*")


class PolicyRule(str, enum.Enum):
    LENGTH = "length"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    DIGIT = "digit"
    SYMBOL = "symbol"
    MATCH = "match"


@dataclass(frozen=True, slots=True)
class PolicyViolation:
    """The first rule a candidate password failed."""

    rule: PolicyRule
    reason: str


_PASSWORD_RULES: tuple[tuple[PolicyRule, Callable[[str], bool], str], ...] = (
    (PolicyRule.LENGTH, lambda pwd: len(pwd) >= MIN_LENGTH, f"At least {MIN_LENGTH} characters"),
    (
        PolicyRule.UPPERCASE,
        lambda pwd: any(ch in string.ascii_uppercase for ch in pwd),
        "At least one uppercase letter",
    ),
    (
        PolicyRule.LOWERCASE,
        lambda pwd: any(ch in string.ascii_lowercase for ch in pwd),
        "At least one lowercase letter",
    ),
    (PolicyRule.DIGIT, lambda pwd: any(ch in string.digits for ch in pwd), "At least one number"),
    (
        PolicyRule.SYMBOL,
        lambda pwd: any(ch in SYMBOLS for ch in pwd),
        "At least one special character (!@#$%^&*)",
    ),
)

MISMATCH_REASON = "Passwords do not match"


def validate_password(password: str, confirmation: str) -> PolicyViolation | None:
    """Return the first violated rule, or ``None`` if the password is acceptable."""
    for rule, check, reason in _PASSWORD_RULES:
        if not check(password):
            return PolicyViolation(rule=rule, reason=reason)
    if password != confirmation:
        return PolicyViolation(rule=PolicyRule.MATCH, reason=MISMATCH_REASON)
    return None


def check_password(password: str, confirmation: str) -> None:
    """Raise ``PasswordPolicyError`` when ``validate_password`` reports a violation."""
    violation = validate_password(password, confirmation)
    if violation is not None:
        raise PasswordPolicyError(violation)
