from typing import Optional
from uuid import UUID

from pydantic import EmailStr

from stepper.api.responses import CamelModel


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str
    display_name: str


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(CamelModel):
    refresh_token: str


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    token: str
    new_password: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


class AuthUserInfo(CamelModel):
    id: UUID
    email: Optional[str] = None
    display_name: Optional[str] = None


class AuthResponse(CamelModel):
    access_token: str = ""
    refresh_token: str = ""
    expires_in: int = 0
    user: AuthUserInfo
    requires_email_confirmation: bool = False
