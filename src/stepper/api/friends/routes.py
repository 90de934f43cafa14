import uuid
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.friends.models import (
    SendFriendRequest, FriendRequestResponse, FriendResponse, FriendListResponse
)
from stepper.api.friends.service import FriendService
from stepper.api.responses import ApiResponse
from stepper.db import get_db_session

router = APIRouter()


def get_friend_service(db: AsyncSession = Depends(get_db_session)) -> FriendService:
    return FriendService(db)


@router.post("/requests", response_model=ApiResponse[FriendRequestResponse], status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    request: SendFriendRequest,
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    return ApiResponse.ok(await service.send_request(user.id, request.friend_user_id))


@router.get("/requests/incoming", response_model=ApiResponse[List[FriendRequestResponse]])
async def get_incoming_requests(
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    return ApiResponse.ok(await service.get_incoming_requests(user.id))


@router.get("/requests/outgoing", response_model=ApiResponse[List[FriendRequestResponse]])
async def get_outgoing_requests(
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    return ApiResponse.ok(await service.get_outgoing_requests(user.id))


@router.post("/requests/{request_id}/accept", response_model=ApiResponse[FriendRequestResponse])
async def accept_friend_request(
    request_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    return ApiResponse.ok(await service.accept_request(user.id, request_id))


@router.post("/requests/{request_id}/reject", response_model=ApiResponse[FriendRequestResponse])
async def reject_friend_request(
    request_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    return ApiResponse.ok(await service.reject_request(user.id, request_id))


@router.delete("/requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def cancel_friend_request(
    request_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    await service.cancel_request(user.id, request_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("", response_model=ApiResponse[FriendListResponse])
async def get_friends(
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    return ApiResponse.ok(await service.get_friends(user.id))


@router.get("/{friend_id}", response_model=ApiResponse[FriendResponse])
async def get_friend(
    friend_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    return ApiResponse.ok(await service.get_friend(user.id, friend_id))


@router.delete("/{friend_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def remove_friend(
    friend_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: FriendService = Depends(get_friend_service),
):
    await service.remove_friend(user.id, friend_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
