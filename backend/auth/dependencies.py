from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler
from backend.auth.authentication import Principal
from backend.database import SessionLocal

security = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal | None:
    """Principal for the request's bearer token; ``None`` when absent or invalid."""
    if credentials is None:
        return None
    return jwt_handler.principal_from_token(credentials.credentials)
