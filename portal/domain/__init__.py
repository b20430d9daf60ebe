from portal.domain.models import ApplicantView, IssuedSetupToken, Session, User

__all__ = ["ApplicantView", "IssuedSetupToken", "Session", "User"]
