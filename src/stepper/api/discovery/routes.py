from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.discovery.models import (
    SearchUsersResponse, QrCodeResponse, UserSearchResult, GenerateInviteLinkRequest,
    InviteLinkResponse, RedeemInviteCodeRequest, RedeemInviteCodeResponse
)
from stepper.api.discovery.service import DiscoveryService
from stepper.api.responses import ApiResponse
from stepper.db import get_db_session

router = APIRouter()


def get_discovery_service(db: AsyncSession = Depends(get_db_session)) -> DiscoveryService:
    return DiscoveryService(db)


@router.get("/search", response_model=ApiResponse[SearchUsersResponse])
async def search_users(
    query: str = Query(""),
    user: CurrentUser = Depends(get_current_user),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Search users by display name"""
    return ApiResponse.ok(await service.search_users(user.id, query))


@router.get("/qr-code", response_model=ApiResponse[QrCodeResponse])
async def get_my_qr_code(
    user: CurrentUser = Depends(get_current_user),
    service: DiscoveryService = Depends(get_discovery_service),
):
    return ApiResponse.ok(await service.get_qr_code(user.id))


@router.get("/qr-code/{qr_code_id}", response_model=ApiResponse[UserSearchResult])
async def get_user_by_qr_code(
    qr_code_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: DiscoveryService = Depends(get_discovery_service),
):
    return ApiResponse.ok(await service.get_user_by_qr_code(user.id, qr_code_id))


@router.post("/invite-links", response_model=ApiResponse[InviteLinkResponse], status_code=status.HTTP_201_CREATED)
async def generate_invite_link(
    request: GenerateInviteLinkRequest,
    user: CurrentUser = Depends(get_current_user),
    service: DiscoveryService = Depends(get_discovery_service),
):
    link = await service.create_invite_link(user.id, request.expiration_hours, request.max_usages)
    return ApiResponse.ok(link)


@router.post("/redeem", response_model=ApiResponse[RedeemInviteCodeResponse])
async def redeem_invite_code(
    request: RedeemInviteCodeRequest,
    user: CurrentUser = Depends(get_current_user),
    service: DiscoveryService = Depends(get_discovery_service),
):
    """Redeem an invite code and send a friend request to its owner"""
    message = await service.redeem_invite_code(user.id, request.code)
    return ApiResponse.ok(RedeemInviteCodeResponse(message=message))
