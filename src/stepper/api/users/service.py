"""
User profiles, preferences, avatars and the GDPR-style data export.
"""

import logging
import os
import uuid
from datetime import timedelta
from typing import List, Optional
from urllib.parse import urlparse

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.activity.service import ActivityService
from stepper.api.notifications.models import NotificationResponse
from stepper.api.notifications.service import NotificationService
from stepper.api.steps.queries import fetch_daily_summaries
from stepper.api.steps.service import utc_today
from stepper.api.users.models import (
    UpdateProfileRequest, UpdatePreferencesRequest, UserProfileResponse, UserPreferencesResponse,
    UserStatsResponse, UserActivityResponse, MutualGroupResponse, DataExportResponse,
    ExportMetadata, ExportFriendship, ExportGroupMembership, ExportAchievement
)
from stepper.api.users.queries import ensure_profile, load_profiles
from stepper.clients.supabase import SupabaseAuthError, SupabaseClient
from stepper.config import config
from stepper.exceptions import ExternalServiceError, NotFoundError, ValidationError
from stepper.milestones.engine import MilestoneEngine
from stepper.models import (
    DistanceUnit, Friendship, Group, GroupMembership, PrivacyLevel, User, UserPreferences
)
from stepper.models.base import utcnow

logger = logging.getLogger(__name__)

MIN_DISPLAY_NAME_LENGTH = 2
MAX_DISPLAY_NAME_LENGTH = 50
MIN_DAILY_STEP_GOAL = 100
MAX_DAILY_STEP_GOAL = 100000
MAX_AVATAR_BYTES = 5 * 1024 * 1024
ALLOWED_AVATAR_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
ALLOWED_AVATAR_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
ACTIVITY_WINDOW_DAYS = 7
EXPORT_FORMAT = "stepper_export_v1"
EXPORT_ITEM_LIMIT = 10000


def validate_display_name(display_name: Optional[str]) -> str:
    name = (display_name or "").strip()
    if not name:
        raise ValidationError("Display name cannot be empty.")
    if len(name) < MIN_DISPLAY_NAME_LENGTH:
        raise ValidationError(f"Display name must be at least {MIN_DISPLAY_NAME_LENGTH} characters long.")
    if len(name) > MAX_DISPLAY_NAME_LENGTH:
        raise ValidationError(f"Display name must not exceed {MAX_DISPLAY_NAME_LENGTH} characters.")
    return name


def validate_avatar_url(avatar_url: str) -> None:
    parsed = urlparse(avatar_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Avatar URL must be a valid HTTP or HTTPS URL.")


def validate_privacy_level(value: str) -> str:
    allowed = [level.value for level in PrivacyLevel]
    if value not in allowed:
        raise ValidationError(f"Privacy level must be one of: {', '.join(allowed)}.")
    return value


def validate_avatar_file(filename: Optional[str], content_type: Optional[str], size: int) -> str:
    """Returns the normalized file extension."""
    if size == 0:
        raise ValidationError("No file provided.")
    if size > MAX_AVATAR_BYTES:
        raise ValidationError("File size must not exceed 5MB.")

    extension = os.path.splitext(filename or "")[1].lower()
    if (content_type or "").lower() not in ALLOWED_AVATAR_CONTENT_TYPES or extension not in ALLOWED_AVATAR_EXTENSIONS:
        raise ValidationError("Invalid file type. Allowed types: jpg, jpeg, png, gif, webp.")
    return extension


def to_profile_response(user: User) -> UserProfileResponse:
    return UserProfileResponse(
        id=user.id,
        display_name=user.display_name,
        avatar_url=user.avatar_url,
        created_at=user.created_at,
        onboarding_completed=user.onboarding_completed,
    )


class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.milestones = MilestoneEngine(session)

    async def get_profile(self, user_id: uuid.UUID) -> User:
        return await ensure_profile(self.session, user_id)

    async def get_public_profile(self, user_id: uuid.UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    async def update_profile(self, user_id: uuid.UUID, request: UpdateProfileRequest) -> User:
        user = await ensure_profile(self.session, user_id)

        if request.display_name is not None:
            user.display_name = validate_display_name(request.display_name)
        if request.avatar_url is not None:
            if request.avatar_url:
                validate_avatar_url(request.avatar_url)
            user.avatar_url = request.avatar_url or None
        if request.onboarding_completed is not None:
            user.onboarding_completed = request.onboarding_completed

        user.updated_at = utcnow()
        await self.session.commit()
        logger.info(f"Profile updated for {user_id}")
        return user

    async def get_preferences(self, user_id: uuid.UUID) -> UserPreferences:
        preferences = await self.session.get(UserPreferences, user_id)
        if preferences is None:
            await ensure_profile(self.session, user_id)
            preferences = UserPreferences(user_id=user_id)
            self.session.add(preferences)
            await self.session.commit()
        return preferences

    async def update_preferences(self, user_id: uuid.UUID, request: UpdatePreferencesRequest) -> UserPreferences:
        if request.daily_step_goal is not None and not (
            MIN_DAILY_STEP_GOAL <= request.daily_step_goal <= MAX_DAILY_STEP_GOAL
        ):
            raise ValidationError(
                f"Daily step goal must be between {MIN_DAILY_STEP_GOAL} and {MAX_DAILY_STEP_GOAL}."
            )
        if request.distance_unit is not None and request.distance_unit not in [u.value for u in DistanceUnit]:
            raise ValidationError("Distance unit must be either 'metric' or 'imperial'.")
        if request.privacy_find_me is not None:
            validate_privacy_level(request.privacy_find_me)
        if request.privacy_show_steps is not None:
            validate_privacy_level(request.privacy_show_steps)

        preferences = await self.get_preferences(user_id)
        for field in (
            "notifications_enabled", "daily_step_goal", "distance_unit",
            "private_profile", "privacy_find_me", "privacy_show_steps",
        ):
            value = getattr(request, field)
            if value is not None:
                setattr(preferences, field, value)
        preferences.updated_at = utcnow()

        await self.session.commit()
        logger.info(f"Preferences updated for {user_id}")
        return preferences

    async def upload_avatar(
        self,
        user_id: uuid.UUID,
        filename: Optional[str],
        content_type: Optional[str],
        content: bytes,
        storage: SupabaseClient,
        access_token: Optional[str] = None,
    ) -> str:
        extension = validate_avatar_file(filename, content_type, len(content))
        user = await ensure_profile(self.session, user_id)

        try:
            avatar_url = await storage.upload_object(
                config.avatar_bucket,
                f"{user_id}{extension}",
                content,
                content_type,
                access_token=access_token,
                upsert=True,
            )
        except SupabaseAuthError as e:
            logger.error(f"Avatar upload for {user_id} rejected by storage ({e.status}): {e.message}")
            raise ExternalServiceError("Avatar upload was rejected by storage")
        user.avatar_url = avatar_url
        user.updated_at = utcnow()
        await self.session.commit()
        logger.info(f"Avatar uploaded for {user_id} ({len(content)} bytes)")
        return avatar_url

    async def get_user_stats(self, user_id: uuid.UUID) -> UserStatsResponse:
        await self.get_public_profile(user_id)
        return UserStatsResponse(
            friends_count=await self.milestones.count_friends(user_id),
            groups_count=await self.milestones.count_groups(user_id),
            badges_count=len(await self.milestones.get_achievements(user_id)),
        )

    async def get_user_activity(self, caller_id: uuid.UUID, user_id: uuid.UUID) -> UserActivityResponse:
        await self.get_public_profile(user_id)

        if caller_id != user_id:
            preferences = await self.session.get(UserPreferences, user_id)
            if preferences is not None and preferences.privacy_show_steps == PrivacyLevel.PRIVATE.value:
                return UserActivityResponse(
                    total_steps=0, total_distance_meters=0.0, average_steps_per_day=0, current_streak=0
                )

        today = utc_today()
        start = today - timedelta(days=ACTIVITY_WINDOW_DAYS - 1)
        summaries = await fetch_daily_summaries(self.session, user_id, start, today)
        total_steps = sum(s.total_steps for s in summaries)

        return UserActivityResponse(
            total_steps=total_steps,
            total_distance_meters=sum(s.total_distance_meters for s in summaries),
            average_steps_per_day=total_steps // ACTIVITY_WINDOW_DAYS,
            current_streak=await self.milestones.current_streak(user_id),
        )

    async def get_mutual_groups(self, user_id: uuid.UUID, other_user_id: uuid.UUID) -> List[MutualGroupResponse]:
        if other_user_id.int == 0:
            raise ValidationError("Other user ID cannot be empty.")

        mine = select(GroupMembership.group_id).where(GroupMembership.user_id == user_id)
        theirs = select(GroupMembership.group_id).where(GroupMembership.user_id == other_user_id)
        result = await self.session.execute(
            select(Group.id, Group.name)
            .where(Group.id.in_(mine), Group.id.in_(theirs))
            .order_by(Group.name)
        )
        return [MutualGroupResponse(id=group_id, name=name) for group_id, name in result.all()]

    async def export_data(self, user_id: uuid.UUID) -> DataExportResponse:
        profile = await ensure_profile(self.session, user_id)
        preferences = await self.get_preferences(user_id)

        friendship_result = await self.session.execute(
            select(Friendship).where(or_(Friendship.user_id == user_id, Friendship.friend_id == user_id))
        )
        friendships = list(friendship_result.scalars().all())
        friend_profiles = await load_profiles(self.session, [f.other_user(user_id) for f in friendships])

        membership_result = await self.session.execute(
            select(GroupMembership, Group.name)
            .join(Group, Group.id == GroupMembership.group_id)
            .where(GroupMembership.user_id == user_id)
        )

        activity_items = await ActivityService(self.session).get_user_items(user_id, EXPORT_ITEM_LIMIT)
        notifications = await NotificationService(self.session).export_for_user(user_id, EXPORT_ITEM_LIMIT)
        achievements = await self.milestones.get_achievements(user_id)
        logger.info(f"Data export generated for {user_id}")

        return DataExportResponse(
            metadata=ExportMetadata(exported_at=utcnow(), format=EXPORT_FORMAT, user_id=user_id),
            profile=to_profile_response(profile),
            preferences=UserPreferencesResponse.model_validate(preferences),
            step_history=await fetch_daily_summaries(self.session, user_id),
            friendships=[
                ExportFriendship(
                    user_id=f.other_user(user_id),
                    display_name=getattr(friend_profiles.get(f.other_user(user_id)), "display_name", None),
                    status=f.status,
                    initiated_by_me=f.user_id == user_id,
                    created_at=f.created_at,
                )
                for f in friendships
            ],
            group_memberships=[
                ExportGroupMembership(
                    group_id=membership.group_id,
                    group_name=group_name,
                    role=membership.role,
                    joined_at=membership.joined_at,
                )
                for membership, group_name in membership_result.all()
            ],
            activity_feed=[ActivityService.to_response(item, profile.display_name, profile.avatar_url) for item in activity_items],
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
            achievements=[
                ExportAchievement(
                    milestone_id=a.milestone_id,
                    achieved_at=a.achieved_at,
                    achievement_count=a.achievement_count,
                )
                for a in achievements
            ],
        )
