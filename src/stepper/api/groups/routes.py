import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.groups.models import (
    CreateGroupRequest, UpdateGroupRequest, GroupResponse, GroupListResponse, GroupSearchResponse,
    JoinGroupRequest, JoinByCodeRequest, InviteMemberRequest, UpdateMemberRoleRequest,
    GroupMemberResponse, LeaderboardResponse
)
from stepper.api.groups.service import GroupService
from stepper.api.responses import ApiResponse, MessageResponse
from stepper.db import get_db_session

router = APIRouter()


def get_group_service(db: AsyncSession = Depends(get_db_session)) -> GroupService:
    return GroupService(db)


@router.post("", response_model=ApiResponse[GroupResponse], status_code=status.HTTP_201_CREATED)
async def create_group(
    request: CreateGroupRequest,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    """Create a group; the caller becomes its owner"""
    return ApiResponse.ok(await service.create_group(user.id, request))


@router.get("", response_model=ApiResponse[GroupListResponse])
async def get_my_groups(
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    return ApiResponse.ok(GroupListResponse(groups=await service.get_user_groups(user.id)))


@router.get("/search", response_model=ApiResponse[List[GroupSearchResponse]])
async def search_groups(
    query: str = Query(""),
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    """Search public groups by name"""
    return ApiResponse.ok(await service.search_public_groups(query))


@router.post("/join-by-code", response_model=ApiResponse[GroupResponse])
async def join_by_code(
    request: JoinByCodeRequest,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    return ApiResponse.ok(await service.join_by_code(user.id, request.code))


@router.get("/{group_id}", response_model=ApiResponse[GroupResponse])
async def get_group(
    group_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    return ApiResponse.ok(await service.get_group(user.id, group_id))


@router.put("/{group_id}", response_model=ApiResponse[GroupResponse])
async def update_group(
    group_id: uuid.UUID,
    request: UpdateGroupRequest,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    return ApiResponse.ok(await service.update_group(user.id, group_id, request))


@router.delete("/{group_id}", response_model=ApiResponse[MessageResponse])
async def delete_group(
    group_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    await service.delete_group(user.id, group_id)
    return ApiResponse.ok(MessageResponse(message="Group deleted successfully."))


@router.post("/{group_id}/join", response_model=ApiResponse[GroupResponse])
async def join_group(
    group_id: uuid.UUID,
    request: Optional[JoinGroupRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    join_code = request.join_code if request else None
    return ApiResponse.ok(await service.join_group(user.id, group_id, join_code))


@router.post("/{group_id}/leave", response_model=ApiResponse[MessageResponse])
async def leave_group(
    group_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    await service.leave_group(user.id, group_id)
    return ApiResponse.ok(MessageResponse(message="Left group successfully."))


@router.get("/{group_id}/members", response_model=ApiResponse[List[GroupMemberResponse]])
async def get_members(
    group_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    return ApiResponse.ok(await service.get_members(user.id, group_id))


@router.post("/{group_id}/members", response_model=ApiResponse[GroupMemberResponse])
async def invite_member(
    group_id: uuid.UUID,
    request: InviteMemberRequest,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    return ApiResponse.ok(await service.invite_member(user.id, group_id, request.user_id))


@router.put("/{group_id}/members/{member_id}/role", response_model=ApiResponse[GroupMemberResponse])
async def update_member_role(
    group_id: uuid.UUID,
    member_id: uuid.UUID,
    request: UpdateMemberRoleRequest,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    return ApiResponse.ok(await service.update_member_role(user.id, group_id, member_id, request.role))


@router.delete("/{group_id}/members/{member_id}", response_model=ApiResponse[MessageResponse])
async def remove_member(
    group_id: uuid.UUID,
    member_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    await service.remove_member(user.id, group_id, member_id)
    return ApiResponse.ok(MessageResponse(message="Member removed successfully."))


@router.get("/{group_id}/leaderboard", response_model=ApiResponse[LeaderboardResponse])
async def get_leaderboard(
    group_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    """Step totals of every member for the group's current period"""
    return ApiResponse.ok(await service.get_leaderboard(user.id, group_id))


@router.post("/{group_id}/regenerate-code", response_model=ApiResponse[GroupResponse])
async def regenerate_join_code(
    group_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: GroupService = Depends(get_group_service),
):
    return ApiResponse.ok(await service.regenerate_join_code(user.id, group_id))
