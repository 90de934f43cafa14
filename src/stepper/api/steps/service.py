"""
Step tracking: manual entries, health-sync upserts, summaries and stats.
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select, func, delete, and_
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.steps.models import (
    RecordStepsRequest, DailySummary, StepStatsResponse, SyncStepsRequest, SyncStepsResponse
)
from stepper.api.steps.queries import fetch_daily_summaries, fetch_daily_goal
from stepper.api.steps import streaks
from stepper.exceptions import NotFoundError, UnauthorizedError, ValidationError
from stepper.milestones.definitions import Metric
from stepper.milestones.engine import MilestoneEngine
from stepper.models import StepEntry
from stepper.models.base import utcnow

logger = logging.getLogger(__name__)

MIN_STEP_COUNT = 0
MAX_STEP_COUNT = 200000
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
MAX_SYNC_ENTRIES = 31
MAX_SOURCE_LENGTH = 100


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def validate_step_values(step_count: int, distance_meters: Optional[float], entry_date: date) -> None:
    if step_count < MIN_STEP_COUNT or step_count > MAX_STEP_COUNT:
        raise ValidationError(f"Step count must be between {MIN_STEP_COUNT} and {MAX_STEP_COUNT}.")
    if distance_meters is not None and distance_meters < 0:
        raise ValidationError("Distance must be a positive value.")
    if entry_date > utc_today():
        raise ValidationError("Date cannot be in the future.")


def validate_date_range(start: date, end: date) -> None:
    if start > end:
        raise ValidationError("Start date must be before or equal to end date.")


def normalize_page_size(page_size: int) -> int:
    if page_size < 1:
        return DEFAULT_PAGE_SIZE
    return min(page_size, MAX_PAGE_SIZE)


class StepService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record_steps(self, user_id: uuid.UUID, request: RecordStepsRequest) -> StepEntry:
        validate_step_values(request.step_count, request.distance_meters, request.date)

        entry = StepEntry(
            user_id=user_id,
            step_count=request.step_count,
            distance_meters=request.distance_meters,
            date=request.date,
            source=request.source,
        )
        self.session.add(entry)
        await self.session.commit()
        logger.info(f"Recorded {entry.step_count} steps for {user_id} on {entry.date}")

        await self._evaluate_streaks(user_id)
        return entry

    async def get_entry(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> StepEntry:
        return await self._get_owned(user_id, entry_id, "access")

    async def delete_entry(self, user_id: uuid.UUID, entry_id: uuid.UUID) -> None:
        entry = await self._get_owned(user_id, entry_id, "delete")
        await self.session.delete(entry)
        await self.session.commit()

    async def get_daily_summaries(self, user_id: uuid.UUID, start: date, end: date) -> List[DailySummary]:
        validate_date_range(start, end)
        return await fetch_daily_summaries(self.session, user_id, start, end)

    async def get_today(self, user_id: uuid.UUID) -> DailySummary:
        today = utc_today()
        summaries = await fetch_daily_summaries(self.session, user_id, today, today)
        return summaries[0] if summaries else DailySummary(date=today)

    async def get_history(
        self,
        user_id: uuid.UUID,
        start: date,
        end: date,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[List[StepEntry], int, int]:
        """Returns (entries, total_count, effective_page_size)."""
        validate_date_range(start, end)
        if page < 1:
            raise ValidationError("Page number must be greater than 0.")
        page_size = normalize_page_size(page_size)

        in_range = and_(StepEntry.user_id == user_id, StepEntry.date >= start, StepEntry.date <= end)
        result = await self.session.execute(
            select(StepEntry)
            .where(in_range)
            .order_by(StepEntry.date.desc(), StepEntry.recorded_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        entries = list(result.scalars().all())

        count_result = await self.session.execute(select(func.count(StepEntry.id)).where(in_range))
        return entries, count_result.scalar() or 0, page_size

    async def get_stats(self, user_id: uuid.UUID) -> StepStatsResponse:
        summaries = await fetch_daily_summaries(self.session, user_id)
        daily_goal = await fetch_daily_goal(self.session, user_id)
        today = utc_today()

        today_steps, today_distance = streaks.period_totals(summaries, today, today)
        week_steps, week_distance = streaks.period_totals(summaries, *streaks.week_range(today))
        month_steps, month_distance = streaks.period_totals(summaries, *streaks.month_range(today))

        return StepStatsResponse(
            today_steps=today_steps,
            today_distance=today_distance,
            week_steps=week_steps,
            week_distance=week_distance,
            month_steps=month_steps,
            month_distance=month_distance,
            current_streak=streaks.current_streak(summaries, daily_goal, today),
            longest_streak=streaks.longest_streak(summaries, daily_goal),
            daily_goal=daily_goal,
        )

    async def sync_steps(self, user_id: uuid.UUID, request: SyncStepsRequest) -> SyncStepsResponse:
        """Upsert health-platform data, one row per (date, source)."""
        entries = request.entries
        if not entries:
            raise ValidationError("At least one entry is required.")
        if len(entries) > MAX_SYNC_ENTRIES:
            raise ValidationError(f"Maximum {MAX_SYNC_ENTRIES} entries allowed per sync.")

        for item in entries:
            if not item.source or not item.source.strip():
                raise ValidationError("Source is required for each entry.")
            if len(item.source) > MAX_SOURCE_LENGTH:
                raise ValidationError(f"Source cannot exceed {MAX_SOURCE_LENGTH} characters.")
            validate_step_values(item.step_count, item.distance_meters, item.date)

        created = updated = 0
        for item in entries:
            result = await self.session.execute(
                select(StepEntry).where(
                    StepEntry.user_id == user_id,
                    StepEntry.date == item.date,
                    StepEntry.source == item.source,
                )
            )
            existing = result.scalars().first()
            if existing is None:
                self.session.add(StepEntry(
                    user_id=user_id,
                    step_count=item.step_count,
                    distance_meters=item.distance_meters,
                    date=item.date,
                    source=item.source,
                ))
                created += 1
            else:
                existing.step_count = item.step_count
                existing.distance_meters = item.distance_meters
                existing.recorded_at = utcnow()
                updated += 1

        await self.session.commit()
        logger.info(f"Synced steps for {user_id}: {created} created, {updated} updated")

        await self._evaluate_streaks(user_id)
        return SyncStepsResponse(created=created, updated=updated, total=created + updated)

    async def delete_by_source(self, user_id: uuid.UUID, source: str) -> int:
        if not source or not source.strip():
            raise ValidationError("Source cannot be empty.")

        result = await self.session.execute(
            delete(StepEntry).where(StepEntry.user_id == user_id, StepEntry.source == source)
        )
        await self.session.commit()
        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} step entries from source '{source}' for {user_id}")
        return deleted

    async def _get_owned(self, user_id: uuid.UUID, entry_id: uuid.UUID, action: str) -> StepEntry:
        if entry_id.int == 0:
            raise ValidationError("Entry ID cannot be empty.")

        entry = await self.session.get(StepEntry, entry_id)
        if entry is None:
            raise NotFoundError(f"Step entry not found with ID: {entry_id}")
        if entry.user_id != user_id:
            raise UnauthorizedError(f"You do not have permission to {action} this step entry.")
        return entry

    async def _evaluate_streaks(self, user_id: uuid.UUID) -> None:
        await MilestoneEngine(self.session).evaluate(user_id, metrics=[Metric.CURRENT_STREAK])
