import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.responses import ApiResponse
from stepper.api.users.models import (
    UserProfileResponse, PublicProfileResponse, UpdateProfileRequest, UserPreferencesResponse,
    UpdatePreferencesRequest, AvatarUploadResponse, UserStatsResponse, UserActivityResponse,
    MutualGroupResponse, DataExportResponse
)
from stepper.api.users.service import MAX_AVATAR_BYTES, UserService, to_profile_response
from stepper.clients.supabase import SupabaseClient, get_supabase_client
from stepper.db import get_db_session
from stepper.exceptions import ValidationError

router = APIRouter()


def get_user_service(db: AsyncSession = Depends(get_db_session)) -> UserService:
    return UserService(db)


@router.get("/me", response_model=ApiResponse[UserProfileResponse])
async def get_my_profile(
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Get the caller's profile, creating it on first access"""
    profile = await service.get_profile(user.id)
    return ApiResponse.ok(to_profile_response(profile))


@router.put("/me", response_model=ApiResponse[UserProfileResponse])
async def update_my_profile(
    request: UpdateProfileRequest,
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    profile = await service.update_profile(user.id, request)
    return ApiResponse.ok(to_profile_response(profile))


@router.get("/me/preferences", response_model=ApiResponse[UserPreferencesResponse])
async def get_my_preferences(
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    preferences = await service.get_preferences(user.id)
    return ApiResponse.ok(UserPreferencesResponse.model_validate(preferences))


@router.put("/me/preferences", response_model=ApiResponse[UserPreferencesResponse])
async def update_my_preferences(
    request: UpdatePreferencesRequest,
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    preferences = await service.update_preferences(user.id, request)
    return ApiResponse.ok(UserPreferencesResponse.model_validate(preferences))


@router.get("/me/data-export", response_model=ApiResponse[DataExportResponse])
async def export_my_data(
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Everything stored about the caller, in one document"""
    return ApiResponse.ok(await service.export_data(user.id))


@router.post("/me/avatar", response_model=ApiResponse[AvatarUploadResponse])
async def upload_avatar(
    file: Optional[UploadFile] = File(None),
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    storage: SupabaseClient = Depends(get_supabase_client),
):
    content = b""
    if file is not None:
        if file.size is not None and file.size > MAX_AVATAR_BYTES:
            raise ValidationError("File size must not exceed 5MB.")
        # Read at most one byte past the limit
        content = await file.read(MAX_AVATAR_BYTES + 1)
    avatar_url = await service.upload_avatar(
        user.id,
        file.filename if file is not None else None,
        file.content_type if file is not None else None,
        content,
        storage,
        access_token=user.access_token,
    )
    return ApiResponse.ok(AvatarUploadResponse(avatar_url=avatar_url))


@router.get("/{user_id}", response_model=ApiResponse[PublicProfileResponse])
async def get_user_profile(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    profile = await service.get_public_profile(user_id)
    return ApiResponse.ok(PublicProfileResponse.model_validate(profile))


@router.get("/{user_id}/stats", response_model=ApiResponse[UserStatsResponse])
async def get_user_stats(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(await service.get_user_stats(user_id))


@router.get("/{user_id}/activity", response_model=ApiResponse[UserActivityResponse])
async def get_user_activity(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Last seven days of steps for a user"""
    return ApiResponse.ok(await service.get_user_activity(user.id, user_id))


@router.get("/{user_id}/mutual-groups", response_model=ApiResponse[List[MutualGroupResponse]])
async def get_mutual_groups(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(await service.get_mutual_groups(user.id, user_id))
