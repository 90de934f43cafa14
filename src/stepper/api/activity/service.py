"""
Activity feed: what the user and their friends have been up to.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.activity.models import ActivityItemResponse, ActivityFeedResponse
from stepper.api.notifications.service import normalize_paging, DEFAULT_LIMIT
from stepper.models import ActivityItem, ActivityType, Friendship, FriendshipStatus, User

logger = logging.getLogger(__name__)


class ActivityService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _friend_ids(self, user_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.session.execute(
            select(Friendship).where(
                and_(
                    Friendship.status == FriendshipStatus.ACCEPTED.value,
                    or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
                )
            )
        )
        return [friendship.other_user(user_id) for friendship in result.scalars().all()]

    async def get_feed(self, user_id: uuid.UUID, limit: int = DEFAULT_LIMIT, offset: int = 0) -> ActivityFeedResponse:
        limit, offset = normalize_paging(limit, offset)
        author_ids = [user_id] + await self._friend_ids(user_id)

        result = await self.session.execute(
            select(ActivityItem, User.display_name, User.avatar_url)
            .outerjoin(User, User.id == ActivityItem.user_id)
            .where(ActivityItem.user_id.in_(author_ids))
            .order_by(ActivityItem.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        items = [
            self.to_response(item, display_name, avatar_url)
            for item, display_name, avatar_url in result.all()
        ]

        count_result = await self.session.execute(
            select(func.count(ActivityItem.id)).where(ActivityItem.user_id.in_(author_ids))
        )
        total_count = count_result.scalar() or 0

        return ActivityFeedResponse(
            items=items,
            total_count=total_count,
            has_more=offset + len(items) < total_count,
        )

    async def get_user_items(self, user_id: uuid.UUID, limit: int) -> List[ActivityItem]:
        result = await self.session.execute(
            select(ActivityItem)
            .where(ActivityItem.user_id == user_id)
            .order_by(ActivityItem.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    def record(
        self,
        user_id: uuid.UUID,
        type: ActivityType,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        related_user_id: Optional[uuid.UUID] = None,
        related_group_id: Optional[uuid.UUID] = None,
    ) -> ActivityItem:
        """Add a feed item to the session; the caller commits."""
        item = ActivityItem(
            user_id=user_id,
            type=type.value,
            message=message,
            item_metadata=metadata,
            related_user_id=related_user_id,
            related_group_id=related_group_id,
        )
        self.session.add(item)
        logger.debug(f"Activity '{type.value}' recorded for {user_id}")
        return item

    @staticmethod
    def to_response(item: ActivityItem, display_name: Optional[str], avatar_url: Optional[str]) -> ActivityItemResponse:
        return ActivityItemResponse(
            id=item.id,
            user_id=item.user_id,
            display_name=display_name,
            avatar_url=avatar_url,
            type=item.type,
            message=item.message,
            metadata=item.item_metadata,
            created_at=item.created_at,
            related_user_id=item.related_user_id,
            related_group_id=item.related_group_id,
        )
