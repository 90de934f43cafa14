"""Milestone definitions and the engine that awards them."""

from .definitions import (
    MILESTONE_DEFINITIONS,
    MilestoneCategory,
    MilestoneDefinition,
    EvaluatorType,
    get_definition,
    get_definitions_by_category,
)
from .engine import MilestoneEngine

__all__ = [
    "MILESTONE_DEFINITIONS",
    "MilestoneCategory",
    "MilestoneDefinition",
    "EvaluatorType",
    "get_definition",
    "get_definitions_by_category",
    "MilestoneEngine",
]
