"""
Group models: groups, memberships and join codes.

Groups compete on a leaderboard over a recurring period. Join codes are
kept in their own table so they are never exposed with the group row.
"""

import uuid
from enum import Enum

from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, Uuid, ForeignKey, UniqueConstraint
from .base import Base, utcnow


class MemberRole(str, Enum):
    OWNER = "Owner"
    ADMIN = "Admin"
    MEMBER = "Member"


class PeriodType(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    CUSTOM = "Custom"


class Group(Base):
    __tablename__ = "groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), nullable=False, index=True)
    description = Column(Text)
    is_public = Column(Boolean, nullable=False, default=False)
    period_type = Column(String(20), nullable=False, default=PeriodType.WEEKLY.value)
    max_members = Column(Integer, nullable=False, default=5)
    require_approval = Column(Boolean, nullable=False, default=False)
    created_by_id = Column(Uuid, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("is_public", False)
        kwargs.setdefault("period_type", PeriodType.WEEKLY.value)
        kwargs.setdefault("max_members", 5)
        kwargs.setdefault("require_approval", False)
        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<Group(id={self.id}, name='{self.name}')>"


class GroupMembership(Base):
    __tablename__ = "group_memberships"
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_group_member"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, nullable=False, index=True)
    role = Column(String(20), nullable=False, default=MemberRole.MEMBER.value)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("role", MemberRole.MEMBER.value)
        kwargs.setdefault("joined_at", utcnow())
        super().__init__(**kwargs)

    @property
    def can_manage(self) -> bool:
        return self.role in (MemberRole.OWNER.value, MemberRole.ADMIN.value)

    @property
    def is_owner(self) -> bool:
        return self.role == MemberRole.OWNER.value

    def __repr__(self):
        return f"<GroupMembership(group_id={self.group_id}, user_id={self.user_id}, role='{self.role}')>"


class GroupJoinCode(Base):
    __tablename__ = "group_join_codes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), unique=True, nullable=False)
    join_code = Column(String(8), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        super().__init__(**kwargs)
