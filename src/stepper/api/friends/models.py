from datetime import datetime
from typing import List, Optional
from uuid import UUID

from stepper.api.responses import CamelModel
from stepper.models import FriendshipStatus


class SendFriendRequest(CamelModel):
    friend_user_id: UUID


class FriendRequestResponse(CamelModel):
    id: UUID
    requester_id: UUID
    requester_display_name: Optional[str] = None
    requester_avatar_url: Optional[str] = None
    addressee_id: UUID
    addressee_display_name: Optional[str] = None
    addressee_avatar_url: Optional[str] = None
    status: FriendshipStatus
    created_at: datetime


class FriendResponse(CamelModel):
    user_id: UUID
    display_name: str
    avatar_url: Optional[str] = None
    friends_since: datetime


class FriendListResponse(CamelModel):
    friends: List[FriendResponse]
    total_count: int
