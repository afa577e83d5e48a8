"""Errors raised by the authentication workflow.

Each error is an ``HTTPException`` so FastAPI renders it with the mapped status
code and a ``{"detail": ...}`` body without extra handlers.
"""

from fastapi import HTTPException, status


class AuthError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Authentication error"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None) -> None:
        super().__init__(
            status_code=type(self).status_code,
            detail=detail or type(self).detail,
            headers=headers,
        )


class DuplicateEmail(AuthError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Email already exists"


class InvalidCredentials(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid email or password"


class Unauthenticated(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "No authenticated user found"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class UserNotFound(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "User not found"


class InvalidOrExpiredToken(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Invalid or expired reset token"


class EmailDeliveryFailed(AuthError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    detail = "Failed to send password reset email"
