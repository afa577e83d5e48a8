"""Registration, login, current-user lookup and password reset.

Collaborators are passed in explicitly: the database session, the mail sender
for reset emails and, for ``get_current_user``, the request's principal.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.authentication import BadCredentialsError, Principal, authenticate
from backend.auth.exceptions import (
    DuplicateEmail,
    EmailDeliveryFailed,
    InvalidCredentials,
    InvalidOrExpiredToken,
    Unauthenticated,
    UserNotFound,
)
from backend.auth.password import hash_password
from backend.core import config
from backend.models.user import Role, User, utcnow
from backend.repositories import users
from backend.services.mail import build_password_reset_email

logger = logging.getLogger(__name__)


class MailSender(Protocol):
    def send(self, to: str, subject: str, body: str) -> None: ...


@dataclass(frozen=True)
class AuthResult:
    token: str
    id: int
    name: str
    email: str
    role: Role

    @classmethod
    def for_user(cls, token: str, user: User) -> "AuthResult":
        return cls(token=token, id=user.id, name=user.name, email=user.email, role=user.role)


def register(db: Session, name: str, email: str, password: str, role: Role) -> AuthResult:
    if users.find_by_email(db, email) is not None:
        raise DuplicateEmail()

    user = users.create_user(
        db,
        name=name,
        email=email,
        hashed_password=hash_password(password),
        role=role,
    )
    token = jwt_handler.create_access_token(Principal(email=user.email, role=user.role))
    logger.info('Registered user %s (%s, id=%s)', user.email, user.role.value, user.id)
    return AuthResult.for_user(token, user)


def login(db: Session, email: str, password: str) -> AuthResult:
    try:
        principal = authenticate(db, email, password)
    except BadCredentialsError as exc:
        logger.info('Failed login for %s', email)
        raise InvalidCredentials() from exc

    token = jwt_handler.create_access_token(principal)

    user = users.find_by_email(db, email)
    if user is None:
        raise UserNotFound()

    logger.info('Login: %s (id=%s)', user.email, user.id)
    return AuthResult.for_user(token, user)


def get_current_user(db: Session, principal: Principal | None) -> User:
    if principal is None:
        raise Unauthenticated()

    user = users.find_by_email(db, principal.email)
    if user is None:
        raise UserNotFound()
    return user


def build_reset_url(token: str) -> str:
    return f"{config.APP_URL.rstrip('/')}/reset-password?{urlencode({'token': token})}"


def forgot_password(db: Session, mail_sender: MailSender, email: str) -> None:
    user = users.find_by_email(db, email)

    # Unknown addresses succeed silently so callers cannot tell which addresses have accounts.
    if user is None:
        logger.warning('Password reset requested for non-existent email: %s', email)
        return

    reset_token = str(uuid.uuid4())
    expiry = utcnow() + timedelta(minutes=config.PASSWORD_RESET_EXPIRES_MINUTES)
    users.set_reset_token(db, user, reset_token, expiry)

    subject, body = build_password_reset_email(
        build_reset_url(reset_token),
        config.PASSWORD_RESET_EXPIRES_MINUTES,
    )
    try:
        mail_sender.send(email, subject, body)
    except Exception as exc:
        # A token the user never received is not kept.
        db.rollback()
        logger.exception('Failed to send password reset email to: %s', email)
        raise EmailDeliveryFailed() from exc

    db.commit()
    logger.info('Password reset email sent to: %s', email)


def reset_password(db: Session, token: str, new_password: str) -> None:
    user = users.find_by_reset_token(db, token)
    if user is None:
        logger.warning('Password reset attempted with unknown token')
        raise InvalidOrExpiredToken()

    now = utcnow()
    if user.reset_token_expiry is None or user.reset_token_expiry < now:
        logger.warning('Password reset attempted with expired token for: %s', user.email)
        raise InvalidOrExpiredToken()

    email = user.email
    consumed = users.consume_reset_token(db, user.id, token, hash_password(new_password), now)
    if not consumed:
        logger.warning('Password reset token for %s was consumed concurrently', email)
        raise InvalidOrExpiredToken()

    logger.info('Password reset successful for user: %s', email)
