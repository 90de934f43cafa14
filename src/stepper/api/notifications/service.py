import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.exceptions import NotFoundError, UnauthorizedError, ValidationError
from stepper.models import Notification, NotificationType, UserPreferences
from stepper.models.base import utcnow

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def normalize_paging(limit: int, offset: int) -> Tuple[int, int]:
    """Clamp limit to (0, MAX_LIMIT]; non-positive limits fall back to the default."""
    if limit <= 0:
        limit = DEFAULT_LIMIT
    elif limit > MAX_LIMIT:
        limit = MAX_LIMIT
    return limit, max(offset, 0)


class NotificationService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_notifications(self, user_id: uuid.UUID, limit: int = DEFAULT_LIMIT, offset: int = 0):
        limit, offset = normalize_paging(limit, offset)

        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        items = list(result.scalars().all())
        total_count = await self._count(user_id)
        unread_count = await self._count(user_id, unread_only=True)

        return items, total_count, unread_count, offset + len(items) < total_count

    async def get_unread_count(self, user_id: uuid.UUID) -> int:
        return await self._count(user_id, unread_only=True)

    async def mark_as_read(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
        notification = await self._get_owned(user_id, notification_id)
        if notification.is_read:
            return notification

        notification.is_read = True
        notification.updated_at = utcnow()
        await self.session.commit()
        return notification

    async def mark_all_as_read(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, updated_at=utcnow())
        )
        await self.session.commit()
        return result.rowcount or 0

    async def delete_notification(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
        notification = await self._get_owned(user_id, notification_id)
        await self.session.delete(notification)
        await self.session.commit()

    async def create(
        self,
        user_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        commit: bool = False,
    ) -> Optional[Notification]:
        """
        Queue a notification for user_id.

        Users who switched notifications off get nothing. The caller owns
        the transaction unless commit is set.
        """
        enabled = await self.session.execute(
            select(UserPreferences.notifications_enabled).where(UserPreferences.user_id == user_id)
        )
        if enabled.scalar_one_or_none() is False:
            logger.debug(f"Notifications disabled for {user_id}, skipping {type.value}")
            return None

        notification = Notification(
            user_id=user_id,
            type=type.value,
            title=title,
            message=message,
            data=data,
        )
        self.session.add(notification)
        if commit:
            await self.session.commit()
        return notification

    async def export_for_user(self, user_id: uuid.UUID, limit: int) -> List[Notification]:
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _count(self, user_id: uuid.UUID, unread_only: bool = False) -> int:
        query = select(func.count(Notification.id)).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def _get_owned(self, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
        if notification_id.int == 0:
            raise ValidationError("Notification ID cannot be empty.")

        notification = await self.session.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError(f"Notification not found with ID: {notification_id}")
        if notification.user_id != user_id:
            raise UnauthorizedError("You do not have permission to access this notification.")
        return notification
