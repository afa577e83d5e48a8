"""Credential check that turns an email/password pair into a ``Principal``."""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from backend.auth.password import verify_password
from backend.models.user import Role
from backend.repositories import users


class BadCredentialsError(Exception):
    """Raised when an email/password pair does not authenticate."""


@dataclass(frozen=True)
class Principal:
    email: str
    role: Role | None = None

    @property
    def authorities(self) -> tuple[str, ...]:
        if self.role is None:
            return ()
        return (self.role.authority,)

    def has_authority(self, authority: str) -> bool:
        return authority in self.authorities


def authenticate(db: Session, email: str, password: str) -> Principal:
    user = users.find_by_email(db, email)
    # Unknown email and wrong password are indistinguishable to the caller.
    if user is None or not verify_password(password, user.hashed_password):
        raise BadCredentialsError("Bad credentials")
    return Principal(email=user.email, role=user.role)
