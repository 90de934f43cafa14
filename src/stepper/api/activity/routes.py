from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.activity.models import ActivityFeedResponse
from stepper.api.activity.service import ActivityService
from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.notifications.service import DEFAULT_LIMIT
from stepper.api.responses import ApiResponse
from stepper.db import get_db_session

router = APIRouter()


@router.get("/feed", response_model=ApiResponse[ActivityFeedResponse])
async def get_feed(
    limit: int = Query(DEFAULT_LIMIT),
    offset: int = Query(0),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
):
    """Feed of the caller's and their friends' activity"""
    feed = await ActivityService(db).get_feed(user.id, limit, offset)
    return ApiResponse.ok(feed)
