"""Goals Service models package."""

from services.goals_service.models.core import (
    Goal,
    GoalContribution,
    GoalOption,
    GoalVote,
)
from services.goals_service.models.enums import (
    ContributionSource,
    GoalAction,
    GoalStatus,
)

__all__ = [
    "ContributionSource",
    "Goal",
    "GoalAction",
    "GoalContribution",
    "GoalOption",
    "GoalStatus",
    "GoalVote",
]
