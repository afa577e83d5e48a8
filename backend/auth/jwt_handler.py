from datetime import datetime, timedelta, timezone

import jwt

from backend.auth.authentication import Principal
from backend.core import config
from backend.models.user import Role

def create_access_token(principal: Principal, expires_minutes: int | None = None) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=expire_minutes)
    payload = {
        "sub": principal.email,
        "authorities": list(principal.authorities),
        "exp": expire,
        "iat": now,
    }
    if principal.role is not None:
        payload["role"] = principal.role.value
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def principal_from_token(token: str) -> Principal | None:
    """Return the principal carried by a valid token, or ``None`` if it does not verify."""
    try:
        payload = decode_access_token(token)
    except jwt.PyJWTError:
        return None

    email = payload.get("sub")
    if not email:
        return None

    role = payload.get("role")
    try:
        return Principal(email=email, role=Role(role) if role else None)
    except ValueError:
        return None
