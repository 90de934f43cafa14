"""
Stepper Database Models

This package contains all SQLAlchemy models for the Stepper API:
- User / UserPreferences: profiles and settings
- StepEntry: recorded step counts
- Friendship / InviteCode: the social graph and invite links
- Group / GroupMembership / GroupJoinCode: competition groups
- ActivityItem / Notification: feed and inbox
- MilestoneAchievement: earned milestones
"""

from .base import Base
from .user import User, UserPreferences, PrivacyLevel, DistanceUnit
from .steps import StepEntry
from .friendship import Friendship, FriendshipStatus, InviteCode
from .group import Group, GroupMembership, GroupJoinCode, MemberRole, PeriodType
from .activity import ActivityItem, ActivityType
from .notification import Notification, NotificationType
from .milestone import MilestoneAchievement

__all__ = [
    "Base",
    "User",
    "UserPreferences",
    "PrivacyLevel",
    "DistanceUnit",
    "StepEntry",
    "Friendship",
    "FriendshipStatus",
    "InviteCode",
    "Group",
    "GroupMembership",
    "GroupJoinCode",
    "MemberRole",
    "PeriodType",
    "ActivityItem",
    "ActivityType",
    "Notification",
    "NotificationType",
    "MilestoneAchievement",
]
