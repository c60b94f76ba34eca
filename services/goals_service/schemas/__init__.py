"""Goals Service schemas package."""

from services.goals_service.schemas.admin import (
    AdminGoalEnvelope,
    AdminGoalListResponse,
    AdminGoalResponse,
    AdminOptionResponse,
    ContributionResponse,
    GoalActionResponse,
    GoalCreate,
    GoalOptionCreate,
    GoalUpdate,
)
from services.goals_service.schemas.member import (
    CastVoteResponse,
    CompletedGoalResponse,
    FundraisingGoalResponse,
    MemberGoalsResponse,
    OptionTallyResponse,
    VoteRequest,
    VotingGoalResponse,
    VotingOptionResponse,
    WinningOptionResponse,
)

__all__ = [
    "AdminGoalEnvelope",
    "AdminGoalListResponse",
    "AdminGoalResponse",
    "AdminOptionResponse",
    "CastVoteResponse",
    "CompletedGoalResponse",
    "ContributionResponse",
    "FundraisingGoalResponse",
    "GoalActionResponse",
    "GoalCreate",
    "GoalOptionCreate",
    "GoalUpdate",
    "MemberGoalsResponse",
    "OptionTallyResponse",
    "VoteRequest",
    "VotingGoalResponse",
    "VotingOptionResponse",
    "WinningOptionResponse",
]
