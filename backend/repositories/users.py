"""Persistence helpers for ``User`` records."""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.auth.exceptions import DuplicateEmail
from backend.models.user import Role, User, utcnow

logger = logging.getLogger(__name__)


def find_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email).first()


def find_by_reset_token(db: Session, token: str) -> User | None:
    if not token:
        return None
    return db.query(User).filter(User.reset_token == token).first()


def create_user(db: Session, *, name: str, email: str, hashed_password: str, role: Role) -> User:
    user = User(name=name, email=email, hashed_password=hashed_password, role=role)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # A concurrent registration won the unique constraint on email.
        db.rollback()
        logger.info('Rejected duplicate registration for %s', email)
        raise DuplicateEmail() from exc
    db.refresh(user)
    return user


def set_reset_token(db: Session, user: User, token: str, expiry: datetime) -> User:
    """Flush a new reset token and expiry; the caller commits or rolls back."""
    user.reset_token = token
    user.reset_token_expiry = expiry
    db.flush()
    return user


def consume_reset_token(db: Session, user_id: int, token: str, hashed_password: str, now: datetime) -> bool:
    """Store a new password and clear the reset token in one conditional update.

    Returns ``False`` when the token was already consumed, replaced or expired
    by the time the update ran.
    """
    result = db.execute(
        update(User)
        .where(
            User.id == user_id,
            User.reset_token == token,
            User.reset_token_expiry.is_not(None),
            User.reset_token_expiry > now,
        )
        .values(
            hashed_password=hashed_password,
            reset_token=None,
            reset_token_expiry=None,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1
