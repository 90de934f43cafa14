"""
Friendship and invite code models.

A friendship row is directional: user_id sent the request, friend_id
received it. Accepted rows count for both sides.
"""

import uuid
from enum import Enum

from sqlalchemy import Column, String, Integer, DateTime, Uuid, UniqueConstraint
from .base import Base, utcnow


class FriendshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Friendship(Base):
    __tablename__ = "friendships"
    __table_args__ = (UniqueConstraint("user_id", "friend_id", name="uq_friendship_pair"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)  # requester
    friend_id = Column(Uuid, nullable=False, index=True)  # addressee
    status = Column(String(20), nullable=False, default=FriendshipStatus.PENDING.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    accepted_at = Column(DateTime(timezone=True))

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("status", FriendshipStatus.PENDING.value)
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    def other_user(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.friend_id if self.user_id == user_id else self.user_id

    @property
    def is_pending(self) -> bool:
        return self.status == FriendshipStatus.PENDING.value

    def __repr__(self):
        return f"<Friendship(user_id={self.user_id}, friend_id={self.friend_id}, status='{self.status}')>"


class InviteCode(Base):
    """Shareable friend invite link."""
    __tablename__ = "invite_codes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    code = Column(String(32), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True))
    max_usages = Column(Integer)
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("usage_count", 0)
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<InviteCode(code='{self.code}', usage_count={self.usage_count})>"
