import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.notifications.models import (
    NotificationResponse, NotificationListResponse, UnreadCountResponse, MarkAllReadResponse
)
from stepper.api.notifications.service import NotificationService, DEFAULT_LIMIT
from stepper.api.responses import ApiResponse
from stepper.db import get_db_session

router = APIRouter()


def get_notification_service(db: AsyncSession = Depends(get_db_session)) -> NotificationService:
    return NotificationService(db)


@router.get("", response_model=ApiResponse[NotificationListResponse])
async def get_notifications(
    limit: int = Query(DEFAULT_LIMIT),
    offset: int = Query(0),
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Get the caller's notifications, newest first"""
    items, total_count, unread_count, has_more = await service.list_notifications(user.id, limit, offset)
    return ApiResponse.ok(NotificationListResponse(
        items=[NotificationResponse.model_validate(item) for item in items],
        total_count=total_count,
        unread_count=unread_count,
        has_more=has_more,
    ))


@router.get("/unread-count", response_model=ApiResponse[UnreadCountResponse])
async def get_unread_count(
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    count = await service.get_unread_count(user.id)
    return ApiResponse.ok(UnreadCountResponse(count=count))


@router.put("/read-all", response_model=ApiResponse[MarkAllReadResponse])
async def mark_all_as_read(
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    updated = await service.mark_all_as_read(user.id)
    return ApiResponse.ok(MarkAllReadResponse(updated_count=updated))


@router.put("/{notification_id}/read", response_model=ApiResponse[NotificationResponse])
async def mark_as_read(
    notification_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notification = await service.mark_as_read(user.id, notification_id)
    return ApiResponse.ok(NotificationResponse.model_validate(notification))


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_notification(
    notification_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    await service.delete_notification(user.id, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
