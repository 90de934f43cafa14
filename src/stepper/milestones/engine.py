"""
Milestone engine.

Computes a user's current metrics, checks every definition against them
and persists what was newly achieved, together with a feed item and a
notification for each award.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.activity.service import ActivityService
from stepper.api.notifications.service import NotificationService
from stepper.api.steps.queries import fetch_daily_summaries, fetch_daily_goal
from stepper.api.steps.streaks import current_streak
from stepper.milestones.definitions import (
    MILESTONE_DEFINITIONS, MilestoneCategory, MilestoneDefinition, Metric
)
from stepper.models import (
    ActivityType, Friendship, FriendshipStatus, GroupMembership, MilestoneAchievement, NotificationType
)
from stepper.models.base import utcnow

logger = logging.getLogger(__name__)


@dataclass
class Award:
    definition: MilestoneDefinition
    achievement: MilestoneAchievement


class MilestoneEngine:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.activity = ActivityService(session)
        self.notifications = NotificationService(session)

    async def count_friends(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(Friendship.id)).where(
                Friendship.status == FriendshipStatus.ACCEPTED.value,
                or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
            )
        )
        return result.scalar() or 0

    async def count_groups(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            select(func.count(GroupMembership.id)).where(GroupMembership.user_id == user_id)
        )
        return result.scalar() or 0

    async def current_streak(self, user_id: uuid.UUID) -> int:
        summaries = await fetch_daily_summaries(self.session, user_id)
        goal = await fetch_daily_goal(self.session, user_id)
        return current_streak(summaries, goal, datetime.now(timezone.utc).date())

    async def collect_metrics(self, user_id: uuid.UUID, metrics: Optional[Iterable[Metric]] = None) -> Dict[str, int]:
        wanted = set(metrics) if metrics is not None else set(Metric)
        values = {}
        if Metric.FRIEND_COUNT in wanted:
            values[Metric.FRIEND_COUNT.value] = await self.count_friends(user_id)
        if Metric.GROUP_COUNT in wanted:
            values[Metric.GROUP_COUNT.value] = await self.count_groups(user_id)
        if Metric.CURRENT_STREAK in wanted:
            values[Metric.CURRENT_STREAK.value] = await self.current_streak(user_id)
        return values

    async def get_achievements(self, user_id: uuid.UUID) -> List[MilestoneAchievement]:
        result = await self.session.execute(
            select(MilestoneAchievement)
            .where(MilestoneAchievement.user_id == user_id)
            .order_by(MilestoneAchievement.achieved_at.desc())
        )
        return list(result.scalars().all())

    async def evaluate(
        self,
        user_id: uuid.UUID,
        previous: Optional[Dict[str, int]] = None,
        metrics: Optional[Iterable[Metric]] = None,
    ) -> List[Award]:
        """
        Award every milestone whose condition now holds.

        Args:
            user_id: User to evaluate
            previous: Metric values before the triggering change
            metrics: Restrict evaluation to milestones on these metrics

        Returns:
            The newly awarded milestones
        """
        current = await self.collect_metrics(user_id, metrics)
        previous = previous or {}
        existing = {a.milestone_id: a for a in await self.get_achievements(user_id)}

        awards = []
        for definition in MILESTONE_DEFINITIONS:
            if definition.metric.value not in current:
                continue
            achievement = existing.get(definition.id)
            if achievement is not None and not definition.repeatable:
                continue
            if not definition.is_met(current, previous):
                continue

            awards.append(Award(definition, await self._award(user_id, definition, achievement)))

        if awards:
            await self.session.commit()
            logger.info(f"User {user_id} achieved {[award.definition.id for award in awards]}")
        return awards

    async def _award(
        self,
        user_id: uuid.UUID,
        definition: MilestoneDefinition,
        achievement: Optional[MilestoneAchievement],
    ) -> MilestoneAchievement:
        if achievement is None:
            achievement = MilestoneAchievement(user_id=user_id, milestone_id=definition.id)
            self.session.add(achievement)
        else:
            achievement.achievement_count += 1
            achievement.achieved_at = utcnow()

        activity_type = ActivityType.STREAK if definition.category == MilestoneCategory.STREAK else ActivityType.MILESTONE
        self.activity.record(
            user_id,
            activity_type,
            f"Earned the {definition.name} milestone",
            metadata={"milestoneId": definition.id, "category": definition.category.value},
        )
        await self.notifications.create(
            user_id,
            NotificationType.GOAL_ACHIEVED,
            "Milestone achieved!",
            f"You earned {definition.name}: {definition.description}.",
            data={"milestoneId": definition.id},
        )
        return achievement

    async def reset(self, user_id: uuid.UUID) -> int:
        result = await self.session.execute(
            delete(MilestoneAchievement).where(MilestoneAchievement.user_id == user_id)
        )
        await self.session.commit()
        return result.rowcount or 0
