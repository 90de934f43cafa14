"""
Static milestone table.

Each milestone watches a single metric (friend_count, group_count,
current_streak) and fires when its evaluator says so. Missing previous
values count as zero.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class MilestoneCategory(str, Enum):
    SOCIAL = "social"
    STREAK = "streak"
    ACHIEVEMENT = "achievement"
    FITNESS = "fitness"
    COMPETITION = "competition"


class EvaluatorType(str, Enum):
    THRESHOLD = "threshold"
    FIRST_TIME = "first_time"
    COMPARISON = "comparison"


class Metric(str, Enum):
    FRIEND_COUNT = "friend_count"
    GROUP_COUNT = "group_count"
    CURRENT_STREAK = "current_streak"


@dataclass(frozen=True)
class MilestoneDefinition:
    id: str
    name: str
    description: str
    category: MilestoneCategory
    evaluator: EvaluatorType
    metric: Metric
    threshold: Optional[int] = None
    repeatable: bool = False

    def is_met(self, current: Dict[str, int], previous: Dict[str, int]) -> bool:
        current_value = current.get(self.metric.value, 0)
        previous_value = previous.get(self.metric.value, 0)

        if self.evaluator == EvaluatorType.THRESHOLD:
            return self.threshold is not None and current_value >= self.threshold
        if self.evaluator == EvaluatorType.FIRST_TIME:
            return previous_value == 0 and current_value > 0
        if self.evaluator == EvaluatorType.COMPARISON:
            return current_value > previous_value
        return False


def _streak(days: int, name: str) -> MilestoneDefinition:
    return MilestoneDefinition(
        id=f"streak_{days}",
        name=name,
        description=f"Maintained a {days} day activity streak",
        category=MilestoneCategory.STREAK,
        evaluator=EvaluatorType.THRESHOLD,
        metric=Metric.CURRENT_STREAK,
        threshold=days,
    )


MILESTONE_DEFINITIONS: List[MilestoneDefinition] = [
    MilestoneDefinition(
        id="first_friend",
        name="First Friend",
        description="Added your first friend",
        category=MilestoneCategory.SOCIAL,
        evaluator=EvaluatorType.FIRST_TIME,
        metric=Metric.FRIEND_COUNT,
    ),
    MilestoneDefinition(
        id="social_butterfly",
        name="Social Butterfly",
        description="Connected with 3 friends",
        category=MilestoneCategory.SOCIAL,
        evaluator=EvaluatorType.THRESHOLD,
        metric=Metric.FRIEND_COUNT,
        threshold=3,
    ),
    MilestoneDefinition(
        id="social_network",
        name="Social Network",
        description="Connected with 10 friends",
        category=MilestoneCategory.SOCIAL,
        evaluator=EvaluatorType.THRESHOLD,
        metric=Metric.FRIEND_COUNT,
        threshold=10,
    ),
    MilestoneDefinition(
        id="first_group",
        name="First Group",
        description="Joined your first group",
        category=MilestoneCategory.SOCIAL,
        evaluator=EvaluatorType.FIRST_TIME,
        metric=Metric.GROUP_COUNT,
    ),
    _streak(3, "3 Day Streak"),
    _streak(7, "Week Warrior"),
    _streak(14, "Two Week Champion"),
    _streak(30, "Monthly Master"),
    _streak(60, "Consistency King"),
    _streak(90, "Unstoppable"),
]

_BY_ID = {definition.id: definition for definition in MILESTONE_DEFINITIONS}


def get_definition(milestone_id: str) -> Optional[MilestoneDefinition]:
    return _BY_ID.get(milestone_id)


def get_definitions_by_category(category: MilestoneCategory) -> List[MilestoneDefinition]:
    return [definition for definition in MILESTONE_DEFINITIONS if definition.category == category]
