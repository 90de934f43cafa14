from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from stepper.api.responses import CamelModel


class RecordStepsRequest(CamelModel):
    step_count: int
    distance_meters: Optional[float] = None
    date: date
    source: Optional[str] = Field(default=None, max_length=100)


class StepEntryResponse(CamelModel):
    id: UUID
    user_id: UUID
    step_count: int
    distance_meters: Optional[float] = None
    date: date
    recorded_at: datetime
    source: Optional[str] = None


class DailySummary(CamelModel):
    date: date
    total_steps: int = 0
    total_distance_meters: float = 0.0
    entry_count: int = 0


class StepStatsResponse(CamelModel):
    today_steps: int
    today_distance: float
    week_steps: int
    week_distance: float
    month_steps: int
    month_distance: float
    current_streak: int
    longest_streak: int
    daily_goal: int


class StepHistoryResponse(CamelModel):
    items: List[StepEntryResponse]
    total_count: int
    page: int
    page_size: int


class SyncStepEntry(CamelModel):
    date: date
    step_count: int
    distance_meters: Optional[float] = None
    source: Optional[str] = None


class SyncStepsRequest(CamelModel):
    entries: List[SyncStepEntry] = Field(default_factory=list)


class SyncStepsResponse(CamelModel):
    created: int
    updated: int
    total: int


class DeleteBySourceResponse(CamelModel):
    deleted_count: int
