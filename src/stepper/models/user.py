"""
User profile and preference models.

Profiles are keyed by the Supabase auth user id; credentials never live
in this database.
"""

import uuid
from enum import Enum

from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, Uuid, ForeignKey
from .base import Base, utcnow


class PrivacyLevel(str, Enum):
    PUBLIC = "public"
    PARTIAL = "partial"
    PRIVATE = "private"


class DistanceUnit(str, Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"


class User(Base):
    """Public profile of an authenticated user."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True)
    display_name = Column(String(50), nullable=False, index=True)
    avatar_url = Column(Text)
    qr_code_id = Column(String(32), unique=True, nullable=False, index=True)
    onboarding_completed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, **kwargs):
        kwargs.setdefault("qr_code_id", uuid.uuid4().hex[:16])
        kwargs.setdefault("onboarding_completed", False)
        now = utcnow()
        kwargs.setdefault("created_at", now)
        kwargs.setdefault("updated_at", now)
        super().__init__(**kwargs)

    @staticmethod
    def default_display_name(user_id: uuid.UUID) -> str:
        return f"User_{user_id.hex}"[:20]

    def __repr__(self):
        return f"<User(id={self.id}, display_name='{self.display_name}')>"


class UserPreferences(Base):
    """Per-user settings, created lazily with defaults."""
    __tablename__ = "user_preferences"

    DEFAULT_DAILY_STEP_GOAL = 10000

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    daily_step_goal = Column(Integer, nullable=False, default=DEFAULT_DAILY_STEP_GOAL)
    distance_unit = Column(String(10), nullable=False, default=DistanceUnit.METRIC.value)
    notifications_enabled = Column(Boolean, nullable=False, default=True)

    # Privacy
    privacy_find_me = Column(String(10), nullable=False, default=PrivacyLevel.PUBLIC.value)
    privacy_show_steps = Column(String(10), nullable=False, default=PrivacyLevel.PARTIAL.value)
    private_profile = Column(Boolean, nullable=False, default=False)

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __init__(self, **kwargs):
        kwargs.setdefault("daily_step_goal", self.DEFAULT_DAILY_STEP_GOAL)
        kwargs.setdefault("distance_unit", DistanceUnit.METRIC.value)
        kwargs.setdefault("notifications_enabled", True)
        kwargs.setdefault("privacy_find_me", PrivacyLevel.PUBLIC.value)
        kwargs.setdefault("privacy_show_steps", PrivacyLevel.PARTIAL.value)
        kwargs.setdefault("private_profile", False)
        kwargs.setdefault("updated_at", utcnow())
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<UserPreferences(user_id={self.user_id}, goal={self.daily_step_goal})>"
