"""
Authentication, proxied to Supabase Auth.

Credentials never touch this database; on registration we only create
the matching profile row.
"""

import logging
import uuid
from typing import Dict

from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser
from stepper.api.auth.models import (
    RegisterRequest, LoginRequest, ResetPasswordRequest, ChangePasswordRequest,
    AuthResponse, AuthUserInfo
)
from stepper.api.errors import NOT_AUTHENTICATED
from stepper.api.users.queries import ensure_profile
from stepper.api.users.service import validate_display_name
from stepper.clients.supabase import SupabaseClient, SupabaseAuthError
from stepper.exceptions import ValidationError, UnauthorizedError, InvalidOperationError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def validate_password(password: str, label: str = "Password") -> None:
    if not password:
        raise ValidationError(f"{label} cannot be empty.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"{label} must be at least {MIN_PASSWORD_LENGTH} characters long.")


def friendly_registration_error(message: str) -> str:
    message = (message or "").lower()
    if "rate limit" in message or "over_email_send_rate_limit" in message:
        return "Too many attempts. Please wait a minute and try again."
    if "already registered" in message or "user already exists" in message:
        return "An account with this email already exists."
    if "invalid" in message and "email" in message:
        return "Invalid email address."
    if "weak" in message or "password" in message:
        return "Password is too weak. Please use a stronger password."
    return "Registration failed. Please check your information and try again."


def session_to_response(payload: Dict) -> AuthResponse:
    """Map a GoTrue session (or a bare user awaiting confirmation) to AuthResponse."""
    access_token = payload.get("access_token")
    user = payload.get("user") if access_token else payload.get("user", payload)
    if not user or not user.get("id"):
        raise InvalidOperationError("Authentication failed. Please try again.")

    metadata = user.get("user_metadata") or {}
    return AuthResponse(
        access_token=access_token or "",
        refresh_token=payload.get("refresh_token") or "",
        expires_in=int(payload.get("expires_in") or 0),
        user=AuthUserInfo(
            id=uuid.UUID(str(user["id"])),
            email=user.get("email"),
            display_name=metadata.get("display_name"),
        ),
        requires_email_confirmation=not access_token,
    )


class AuthService:
    def __init__(self, session: AsyncSession, supabase: SupabaseClient):
        self.session = session
        self.supabase = supabase

    async def register(self, request: RegisterRequest) -> AuthResponse:
        validate_password(request.password)
        display_name = validate_display_name(request.display_name)

        try:
            payload = await self.supabase.sign_up(request.email, request.password, display_name)
        except SupabaseAuthError as e:
            logger.warning(f"Registration failed for {request.email}: {e.message}")
            raise InvalidOperationError(friendly_registration_error(e.message))

        response = session_to_response(payload or {})
        await ensure_profile(self.session, response.user.id, display_name)
        if response.user.display_name is None:
            response.user.display_name = display_name

        logger.info(
            f"Registered {response.user.id} (email confirmation required: {response.requires_email_confirmation})"
        )
        return response

    async def login(self, request: LoginRequest) -> AuthResponse:
        if not request.password:
            raise ValidationError("Password cannot be empty.")
        try:
            payload = await self.supabase.sign_in_with_password(request.email, request.password)
        except SupabaseAuthError as e:
            logger.warning(f"Login failed for {request.email}: {e.message}")
            raise UnauthorizedError("Invalid email or password.")
        return session_to_response(payload or {})

    async def logout(self, access_token: str) -> None:
        try:
            await self.supabase.sign_out(access_token)
        except SupabaseAuthError as e:
            logger.warning(f"Logout failed: {e.message}")
            raise InvalidOperationError("Failed to logout. Please try again.")

    async def refresh(self, refresh_token: str) -> AuthResponse:
        if not refresh_token or not refresh_token.strip():
            raise ValidationError("Refresh token cannot be empty.")
        try:
            payload = await self.supabase.refresh_session(refresh_token)
        except SupabaseAuthError as e:
            logger.warning(f"Token refresh failed: {e.message}")
            raise UnauthorizedError("Invalid or expired refresh token.")
        return session_to_response(payload or {})

    async def forgot_password(self, email: str) -> None:
        try:
            await self.supabase.send_password_recovery(email)
        except SupabaseAuthError as e:
            # Never reveal whether the address is registered
            logger.warning(f"Password recovery request failed: {e.message}")

    async def reset_password(self, request: ResetPasswordRequest) -> None:
        if not request.token or not request.token.strip():
            raise ValidationError("Reset token cannot be empty.")
        validate_password(request.new_password)
        try:
            await self.supabase.update_password(request.token, request.new_password)
        except SupabaseAuthError as e:
            logger.warning(f"Password reset failed: {e.message}")
            raise InvalidOperationError("Failed to reset password. The link may have expired.")

    async def change_password(self, user: CurrentUser, request: ChangePasswordRequest) -> None:
        if not request.current_password:
            raise ValidationError("Current password cannot be empty.")
        validate_password(request.new_password, "New password")
        if request.new_password == request.current_password:
            raise ValidationError("New password must be different from current password.")
        if not user.email:
            raise UnauthorizedError(NOT_AUTHENTICATED)

        try:
            await self.supabase.sign_in_with_password(user.email, request.current_password)
        except SupabaseAuthError:
            logger.warning(f"Current password check failed for {user.id}")
            raise UnauthorizedError("Current password is incorrect.")

        try:
            await self.supabase.update_password(user.access_token, request.new_password)
        except SupabaseAuthError as e:
            logger.warning(f"Password update failed for {user.id}: {e.message}")
            raise InvalidOperationError("Failed to update password. Please try again.")
        logger.info(f"Password changed for {user.id}")
