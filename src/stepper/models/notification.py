"""In-app notifications."""

import uuid
from enum import Enum

from sqlalchemy import Column, String, Boolean, DateTime, Text, Uuid, JSON
from .base import Base, utcnow


class NotificationType(str, Enum):
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    GROUP_INVITE = "group_invite"
    GOAL_ACHIEVED = "goal_achieved"
    GENERAL = "general"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    type = Column(String(30), nullable=False, default=NotificationType.GENERAL.value)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    data = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("type", NotificationType.GENERAL.value)
        kwargs.setdefault("is_read", False)
        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<Notification(user_id={self.user_id}, type='{self.type}', is_read={self.is_read})>"
