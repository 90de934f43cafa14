from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.auth.models import (
    RegisterRequest, LoginRequest, RefreshTokenRequest, ForgotPasswordRequest,
    ResetPasswordRequest, ChangePasswordRequest, AuthResponse
)
from stepper.api.auth.service import AuthService
from stepper.api.responses import ApiResponse, MessageResponse
from stepper.clients.supabase import SupabaseClient, get_supabase_client
from stepper.db import get_db_session

router = APIRouter()


def get_auth_service(
    db: AsyncSession = Depends(get_db_session),
    supabase: SupabaseClient = Depends(get_supabase_client),
) -> AuthService:
    return AuthService(db, supabase)


@router.post("/register", response_model=ApiResponse[AuthResponse])
async def register(request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """Create an account"""
    return ApiResponse.ok(await service.register(request))


@router.post("/login", response_model=ApiResponse[AuthResponse])
async def login(request: LoginRequest, service: AuthService = Depends(get_auth_service)):
    """Login and get access token"""
    return ApiResponse.ok(await service.login(request))


@router.post("/logout", response_model=ApiResponse[MessageResponse])
async def logout(
    user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.logout(user.access_token)
    return ApiResponse.ok(MessageResponse(message="Logged out successfully."))


@router.post("/refresh", response_model=ApiResponse[AuthResponse])
async def refresh(request: RefreshTokenRequest, service: AuthService = Depends(get_auth_service)):
    return ApiResponse.ok(await service.refresh(request.refresh_token))


@router.post("/forgot-password", response_model=ApiResponse[MessageResponse])
async def forgot_password(request: ForgotPasswordRequest, service: AuthService = Depends(get_auth_service)):
    await service.forgot_password(request.email)
    return ApiResponse.ok(MessageResponse(
        message="If an account with that email exists, a password reset link has been sent."
    ))


@router.post("/reset-password", response_model=ApiResponse[MessageResponse])
async def reset_password(request: ResetPasswordRequest, service: AuthService = Depends(get_auth_service)):
    await service.reset_password(request)
    return ApiResponse.ok(MessageResponse(message="Password has been reset successfully."))


@router.post("/change-password", response_model=ApiResponse[MessageResponse])
async def change_password(
    request: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    await service.change_password(user, request)
    return ApiResponse.ok(MessageResponse(message="Password changed successfully."))
