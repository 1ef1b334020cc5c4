# services/identity.py - the authenticated identity handed to the quiz and certificate pipeline
from dataclasses import dataclass

from flask_login import current_user

DEFAULT_NAME = "Participant"
DEFAULT_ORGANIZATION = "Company"


@dataclass(frozen=True)
class Identity:
    name: str
    organization: str
    email: str

    @classmethod
    def from_user(cls, user) -> "Identity":
        return cls(
            name=(user.full_name or "").strip() or DEFAULT_NAME,
            organization=(user.company_name or "").strip() or DEFAULT_ORGANIZATION,
            email=user.email,
        )


def current_identity():
    """Identity of the logged-in user, or None for anonymous requests."""
    if not current_user or not current_user.is_authenticated or not current_user.email:
        return None
    return Identity.from_user(current_user)
