import uuid
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.responses import ApiResponse
from stepper.api.steps.models import (
    RecordStepsRequest, StepEntryResponse, DailySummary, StepStatsResponse,
    StepHistoryResponse, SyncStepsRequest, SyncStepsResponse, DeleteBySourceResponse
)
from stepper.api.steps.service import StepService, DEFAULT_PAGE_SIZE
from stepper.db import get_db_session

router = APIRouter()


def get_step_service(db: AsyncSession = Depends(get_db_session)) -> StepService:
    return StepService(db)


@router.post("", response_model=ApiResponse[StepEntryResponse], status_code=status.HTTP_201_CREATED)
async def record_steps(
    request: RecordStepsRequest,
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    """Record a step entry"""
    entry = await service.record_steps(user.id, request)
    return ApiResponse.ok(StepEntryResponse.model_validate(entry))


@router.get("/today", response_model=ApiResponse[DailySummary])
async def get_today(
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    return ApiResponse.ok(await service.get_today(user.id))


@router.get("/stats", response_model=ApiResponse[StepStatsResponse])
async def get_stats(
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    """Today/week/month totals and streaks"""
    return ApiResponse.ok(await service.get_stats(user.id))


@router.get("/daily", response_model=ApiResponse[List[DailySummary]])
async def get_daily_summaries(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    return ApiResponse.ok(await service.get_daily_summaries(user.id, start_date, end_date))


@router.get("/history", response_model=ApiResponse[StepHistoryResponse])
async def get_history(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    page: int = Query(1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    """Paginated step entries in a date range"""
    entries, total_count, effective_size = await service.get_history(
        user.id, start_date, end_date, page, page_size
    )
    return ApiResponse.ok(StepHistoryResponse(
        items=[StepEntryResponse.model_validate(entry) for entry in entries],
        total_count=total_count,
        page=page,
        page_size=effective_size,
    ))


@router.put("/sync", response_model=ApiResponse[SyncStepsResponse])
async def sync_steps(
    request: SyncStepsRequest,
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    """Upsert entries coming from a health platform"""
    return ApiResponse.ok(await service.sync_steps(user.id, request))


@router.delete("/source/{source}", response_model=ApiResponse[DeleteBySourceResponse])
async def delete_by_source(
    source: str,
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    deleted = await service.delete_by_source(user.id, source)
    return ApiResponse.ok(DeleteBySourceResponse(deleted_count=deleted))


@router.get("/{entry_id}", response_model=ApiResponse[StepEntryResponse])
async def get_entry(
    entry_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    entry = await service.get_entry(user.id, entry_id)
    return ApiResponse.ok(StepEntryResponse.model_validate(entry))


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
async def delete_entry(
    entry_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: StepService = Depends(get_step_service),
):
    await service.delete_entry(user.id, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
