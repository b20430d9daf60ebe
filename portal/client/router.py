"""Maps an authenticated role to the surface the client should open."""

from __future__ import annotations

from portal.core.auth import Role

STUDENT_DASHBOARD = "/student-dashboard"

ROLE_DESTINATIONS: dict[str, str] = {
    Role.STUDENT.value: STUDENT_DASHBOARD,
    Role.RECRUITER.value: "/recruiter-dashboard",
    Role.TRAINER.value: "/trainer-dashboard",
    Role.ADMIN.value: "/admin",
}


def destination_for_role(role: str | None) -> str:
    """Return the route for ``role``; unknown roles land on the student dashboard."""
    if role is None:
        return STUDENT_DASHBOARD
    return ROLE_DESTINATIONS.get(role, STUDENT_DASHBOARD)
