"""Persisted milestone achievements."""

import uuid

from sqlalchemy import Column, String, Integer, DateTime, Uuid, UniqueConstraint
from .base import Base, utcnow


class MilestoneAchievement(Base):
    __tablename__ = "milestone_achievements"
    __table_args__ = (UniqueConstraint("user_id", "milestone_id", name="uq_user_milestone"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    milestone_id = Column(String(50), nullable=False)
    achieved_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    achievement_count = Column(Integer, nullable=False, default=1)

    def __init__(self, **kwargs):
        kwargs.setdefault("id", uuid.uuid4())
        kwargs.setdefault("achieved_at", utcnow())
        kwargs.setdefault("achievement_count", 1)
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<MilestoneAchievement(user_id={self.user_id}, milestone_id='{self.milestone_id}')>"
