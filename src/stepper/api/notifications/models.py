from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from stepper.api.responses import CamelModel
from stepper.models import NotificationType


class NotificationResponse(CamelModel):
    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    is_read: bool
    data: Optional[Dict[str, Any]] = None
    created_at: datetime


class NotificationListResponse(CamelModel):
    items: List[NotificationResponse]
    total_count: int
    unread_count: int
    has_more: bool


class UnreadCountResponse(CamelModel):
    count: int


class MarkAllReadResponse(CamelModel):
    updated_count: int
