from datetime import datetime
from typing import List, Optional

from stepper.api.responses import CamelModel
from stepper.milestones import MilestoneCategory, EvaluatorType


class MilestoneResponse(CamelModel):
    id: str
    name: str
    description: str
    category: MilestoneCategory
    evaluator: EvaluatorType
    metric: str
    threshold: Optional[int] = None
    repeatable: bool
    achieved: bool = False
    achieved_at: Optional[datetime] = None
    achievement_count: int = 0


class AchievementResponse(CamelModel):
    milestone_id: str
    name: str
    description: str
    category: MilestoneCategory
    achieved_at: datetime
    achievement_count: int


class EvaluateMilestonesResponse(CamelModel):
    newly_achieved: List[AchievementResponse]


class ResetAchievementsResponse(CamelModel):
    deleted_count: int
