from datetime import datetime
from typing import List, Optional
from uuid import UUID

from stepper.api.activity.models import ActivityItemResponse
from stepper.api.notifications.models import NotificationResponse
from stepper.api.responses import CamelModel
from stepper.api.steps.models import DailySummary


class UserProfileResponse(CamelModel):
    id: UUID
    display_name: str
    avatar_url: Optional[str] = None
    created_at: datetime
    onboarding_completed: bool = False


class PublicProfileResponse(CamelModel):
    id: UUID
    display_name: str
    avatar_url: Optional[str] = None
    created_at: datetime


class UpdateProfileRequest(CamelModel):
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    onboarding_completed: Optional[bool] = None


class UserPreferencesResponse(CamelModel):
    notifications_enabled: bool
    daily_step_goal: int
    distance_unit: str
    private_profile: bool
    privacy_find_me: str
    privacy_show_steps: str


class UpdatePreferencesRequest(CamelModel):
    notifications_enabled: Optional[bool] = None
    daily_step_goal: Optional[int] = None
    distance_unit: Optional[str] = None
    private_profile: Optional[bool] = None
    privacy_find_me: Optional[str] = None
    privacy_show_steps: Optional[str] = None


class AvatarUploadResponse(CamelModel):
    avatar_url: str


class UserStatsResponse(CamelModel):
    friends_count: int
    groups_count: int
    badges_count: int


class UserActivityResponse(CamelModel):
    total_steps: int
    total_distance_meters: float
    average_steps_per_day: int
    current_streak: int


class MutualGroupResponse(CamelModel):
    id: UUID
    name: str


class ExportMetadata(CamelModel):
    exported_at: datetime
    format: str
    user_id: UUID


class ExportFriendship(CamelModel):
    user_id: UUID
    display_name: Optional[str] = None
    status: str
    initiated_by_me: bool
    created_at: datetime


class ExportGroupMembership(CamelModel):
    group_id: UUID
    group_name: str
    role: str
    joined_at: datetime


class ExportAchievement(CamelModel):
    milestone_id: str
    achieved_at: datetime
    achievement_count: int


class DataExportResponse(CamelModel):
    metadata: ExportMetadata
    profile: UserProfileResponse
    preferences: UserPreferencesResponse
    step_history: List[DailySummary]
    friendships: List[ExportFriendship]
    group_memberships: List[ExportGroupMembership]
    activity_feed: List[ActivityItemResponse]
    notifications: List[NotificationResponse]
    achievements: List[ExportAchievement]
