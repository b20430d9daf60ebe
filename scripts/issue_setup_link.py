#!/usr/bin/env python3
"""
Issue a setup link for an application from the command line.

Pending applications are approved first; approved ones get a fresh link and
any outstanding link is expired.

Run with:
    poetry run python scripts/issue_setup_link.py <application-id> --approved-by ops@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from portal.core.logging import setup_logging
from portal.domain.errors import ApplicationNotFoundError, ApplicationStateError
from portal.domain.services.applications import ApplicationService
from portal.domain.services.setup_email import build_setup_url
from portal.infrastructure.db.models import ApplicationModel, ApplicationStatus
from portal.infrastructure.db.session import dispose_engine, get_session_factory
from sqlalchemy import select


async def issue(application_id: str, approved_by: str) -> int:
    session_factory = get_session_factory()
    try:
        async with session_factory() as session:
            service = ApplicationService(session)
            current = await session.scalar(
                select(ApplicationModel.status).where(ApplicationModel.id == application_id)
            )
            await session.rollback()
            if current == ApplicationStatus.PENDING:
                _, issued = await service.approve(application_id, approved_by=approved_by)
            else:
                _, issued = await service.reissue_setup_token(application_id)
    except (ApplicationNotFoundError, ApplicationStateError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    finally:
        await dispose_engine()

    print(f"Setup token: {issued.value}")
    print(f"Expires at:  {issued.expires_at.isoformat()}")
    url = build_setup_url(issued.value)
    if url:
        print(f"Setup URL:   {url}")
    return 0


def main() -> int:
    setup_logging()
    parser = argparse.ArgumentParser(description="Issue an account setup link")
    parser.add_argument("application_id")
    parser.add_argument("--approved-by", default="operator")
    args = parser.parse_args()
    return asyncio.run(issue(args.application_id, args.approved_by))


if __name__ == "__main__":
    sys.exit(main())
