from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stepper.api.auth.dependencies import CurrentUser, get_current_user
from stepper.api.milestones.models import (
    MilestoneResponse, AchievementResponse, EvaluateMilestonesResponse, ResetAchievementsResponse
)
from stepper.api.responses import ApiResponse
from stepper.db import get_db_session
from stepper.exceptions import ValidationError
from stepper.milestones import (
    MILESTONE_DEFINITIONS, MilestoneCategory, MilestoneDefinition, MilestoneEngine,
    get_definition, get_definitions_by_category,
)
from stepper.models import MilestoneAchievement

router = APIRouter()


def get_milestone_engine(db: AsyncSession = Depends(get_db_session)) -> MilestoneEngine:
    return MilestoneEngine(db)


def _milestone_response(
    definition: MilestoneDefinition, achievement: Optional[MilestoneAchievement]
) -> MilestoneResponse:
    return MilestoneResponse(
        id=definition.id,
        name=definition.name,
        description=definition.description,
        category=definition.category,
        evaluator=definition.evaluator,
        metric=definition.metric.value,
        threshold=definition.threshold,
        repeatable=definition.repeatable,
        achieved=achievement is not None,
        achieved_at=achievement.achieved_at if achievement else None,
        achievement_count=achievement.achievement_count if achievement else 0,
    )


def _achievement_response(definition: MilestoneDefinition, achievement: MilestoneAchievement) -> AchievementResponse:
    return AchievementResponse(
        milestone_id=definition.id,
        name=definition.name,
        description=definition.description,
        category=definition.category,
        achieved_at=achievement.achieved_at,
        achievement_count=achievement.achievement_count,
    )


async def _with_state(
    engine: MilestoneEngine, user: CurrentUser, definitions: List[MilestoneDefinition]
) -> List[MilestoneResponse]:
    achieved: Dict[str, MilestoneAchievement] = {
        a.milestone_id: a for a in await engine.get_achievements(user.id)
    }
    return [_milestone_response(d, achieved.get(d.id)) for d in definitions]


@router.get("", response_model=ApiResponse[List[MilestoneResponse]])
async def get_milestones(
    user: CurrentUser = Depends(get_current_user),
    engine: MilestoneEngine = Depends(get_milestone_engine),
):
    """All milestones with the caller's progress"""
    return ApiResponse.ok(await _with_state(engine, user, MILESTONE_DEFINITIONS))


@router.get("/achieved", response_model=ApiResponse[List[AchievementResponse]])
async def get_achieved(
    user: CurrentUser = Depends(get_current_user),
    engine: MilestoneEngine = Depends(get_milestone_engine),
):
    responses = []
    for achievement in await engine.get_achievements(user.id):
        definition = get_definition(achievement.milestone_id)
        if definition is not None:
            responses.append(_achievement_response(definition, achievement))
    return ApiResponse.ok(responses)


@router.get("/category/{category}", response_model=ApiResponse[List[MilestoneResponse]])
async def get_milestones_by_category(
    category: str,
    user: CurrentUser = Depends(get_current_user),
    engine: MilestoneEngine = Depends(get_milestone_engine),
):
    try:
        parsed = MilestoneCategory(category.lower())
    except ValueError:
        allowed = ", ".join(c.value for c in MilestoneCategory)
        raise ValidationError(f"Unknown milestone category '{category}'. Allowed: {allowed}.")
    return ApiResponse.ok(await _with_state(engine, user, get_definitions_by_category(parsed)))


@router.post("/evaluate", response_model=ApiResponse[EvaluateMilestonesResponse])
async def evaluate_milestones(
    user: CurrentUser = Depends(get_current_user),
    engine: MilestoneEngine = Depends(get_milestone_engine),
):
    """Check the caller's current metrics and award anything newly reached"""
    awards = await engine.evaluate(user.id)
    return ApiResponse.ok(EvaluateMilestonesResponse(
        newly_achieved=[_achievement_response(a.definition, a.achievement) for a in awards]
    ))


@router.delete("/achievements", response_model=ApiResponse[ResetAchievementsResponse])
async def reset_achievements(
    user: CurrentUser = Depends(get_current_user),
    engine: MilestoneEngine = Depends(get_milestone_engine),
):
    deleted = await engine.reset(user.id)
    return ApiResponse.ok(ResetAchievementsResponse(deleted_count=deleted))
