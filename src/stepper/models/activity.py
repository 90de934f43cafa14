"""Activity feed items shown to a user and their friends."""

import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime, Text, Uuid, JSON
from .base import Base, utcnow


class ActivityType(str, Enum):
    MILESTONE = "milestone"
    FRIEND_ACHIEVEMENT = "friend_achievement"
    GROUP_JOIN = "group_join"
    STREAK = "streak"


class ActivityItem(Base):
    __tablename__ = "activity_feed"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    type = Column(String(30), nullable=False)
    message = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    item_metadata = Column("metadata", JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    related_user_id = Column(Uuid)
    related_group_id = Column(Uuid)

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<ActivityItem(user_id={self.user_id}, type='{self.type}')>"
