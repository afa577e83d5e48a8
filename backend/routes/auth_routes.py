import email_validator
from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from backend.auth.authentication import Principal
from backend.auth.dependencies import get_db, get_principal
from backend.models.user import Role
from backend.services import auth_service
from backend.services.mail import SmtpMailSender, get_mail_sender

router = APIRouter(tags=['auth'])

MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 255
MIN_PASSWORD_LENGTH = 6
# bcrypt only considers the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


def normalize_email(value: str) -> str:
    """Strip and syntax-check an address; it is stored exactly as typed."""
    normalized = value.strip()
    if not normalized:
        raise ValueError('Email is required.')
    if len(normalized) > MAX_EMAIL_LENGTH:
        raise ValueError(f'Email must be {MAX_EMAIL_LENGTH} characters or fewer.')

    try:
        email_validator.validate_email(normalized, check_deliverability=False)
    except email_validator.EmailNotValidError as exc:
        raise ValueError(f'Email must be a valid email address: {exc}') from exc
    return normalized


def validate_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
    if len(value.encode('utf-8')) > MAX_PASSWORD_BYTES:
        raise ValueError(f'Password must be {MAX_PASSWORD_BYTES} bytes or fewer.')
    return value


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    role: Role

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        if len(normalized) > MAX_NAME_LENGTH:
            raise ValueError(f'Name must be {MAX_NAME_LENGTH} characters or fewer.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return validate_password(value)


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class ForgotPasswordRequest(BaseModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    new_password: str = Field(alias='newPassword')

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return validate_password(value)


class LoginResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    token: str
    id: int
    name: str
    email: str
    role: Role


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: Role


@router.post('/register', response_model=LoginResponse)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    result = auth_service.register(db, request.name, request.email, request.password, request.role)
    return LoginResponse.model_validate(result)


@router.post('/login', response_model=LoginResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    result = auth_service.login(db, request.email, request.password)
    return LoginResponse.model_validate(result)


@router.get('/me', response_model=UserResponse)
def me(
    principal: Principal | None = Depends(get_principal),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(auth_service.get_current_user(db, principal))


@router.post('/forgot-password')
def forgot_password(
    request: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mail_sender: SmtpMailSender = Depends(get_mail_sender),
):
    auth_service.forgot_password(db, mail_sender, request.email)
    return Response(status_code=status.HTTP_200_OK)


@router.post('/reset-password')
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    auth_service.reset_password(db, request.token, request.new_password)
    return Response(status_code=status.HTTP_200_OK)


@router.post('/logout')
def logout():
    # Tokens are stateless; the client discards its copy.
    return Response(status_code=status.HTTP_200_OK)
