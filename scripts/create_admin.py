#!/usr/bin/env python3
"""
Seed an administrative account.

The password is read interactively (or from ADMIN_PASSWORD), checked against
the password policy and stored only as a bcrypt hash.

Run with:
    poetry run python scripts/create_admin.py admin@example.com --name "Portal Admin"
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from portal.core.logging import setup_logging
from portal.domain.errors import EmailInUseError, PasswordPolicyError
from portal.domain.services.auth_service import AuthService
from portal.infrastructure.db.models import UserRole
from portal.infrastructure.db.session import dispose_engine, get_session_factory


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("email")
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument(
        "--role",
        choices=[role.value for role in UserRole],
        default=UserRole.ADMIN.value,
    )
    return parser.parse_args()


async def create_admin(email: str, password: str, full_name: str | None, role: UserRole) -> int:
    session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            user = await AuthService(session).create_user(
                email=email, password=password, full_name=full_name, role=role
            )
    except PasswordPolicyError as exc:
        print(f"Password rejected: {exc.violation.reason}", file=sys.stderr)
        return 1
    except EmailInUseError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        await dispose_engine()

    print(f"Created {user.role.value} account {user.email} (id={user.id})")
    return 0


def main() -> int:
    setup_logging()
    args = parse_args()

    password = os.environ.get("ADMIN_PASSWORD")
    if not password:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Confirm password: "):
            print("Passwords do not match", file=sys.stderr)
            return 1

    return asyncio.run(create_admin(args.email, password, args.name, UserRole(args.role)))


if __name__ == "__main__":
    sys.exit(main())
