"""Step queries shared by stats, user activity, data export and milestones."""

import uuid
from datetime import date
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.steps.models import DailySummary
from stepper.models import StepEntry, UserPreferences


async def fetch_daily_summaries(
    session: AsyncSession,
    user_id: uuid.UUID,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[DailySummary]:
    """Per-day totals, newest first. Missing distances count as zero."""
    query = (
        select(
            StepEntry.date,
            func.sum(StepEntry.step_count),
            func.sum(func.coalesce(StepEntry.distance_meters, 0.0)),
            func.count(StepEntry.id),
        )
        .where(StepEntry.user_id == user_id)
        .group_by(StepEntry.date)
        .order_by(StepEntry.date.desc())
    )
    if start is not None:
        query = query.where(StepEntry.date >= start)
    if end is not None:
        query = query.where(StepEntry.date <= end)

    result = await session.execute(query)
    return [
        DailySummary(
            date=day,
            total_steps=int(steps or 0),
            total_distance_meters=float(distance or 0.0),
            entry_count=int(count),
        )
        for day, steps, distance, count in result.all()
    ]


async def fetch_daily_goal(session: AsyncSession, user_id: uuid.UUID) -> int:
    result = await session.execute(
        select(UserPreferences.daily_step_goal).where(UserPreferences.user_id == user_id)
    )
    goal = result.scalar_one_or_none()
    return goal or UserPreferences.DEFAULT_DAILY_STEP_GOAL
