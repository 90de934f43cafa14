from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from stepper.api.responses import CamelModel
from stepper.models import ActivityType


class ActivityItemResponse(CamelModel):
    id: UUID
    user_id: UUID
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    type: ActivityType
    message: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
    related_user_id: Optional[UUID] = None
    related_group_id: Optional[UUID] = None


class ActivityFeedResponse(CamelModel):
    items: List[ActivityItemResponse]
    total_count: int
    has_more: bool
