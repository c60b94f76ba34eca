"""Admin goal schemas.

Admins enter and read amounts in currency units; the engines work in cents.
"""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.schemas import CamelModel
from services.goals_service.models import ContributionSource, GoalStatus

# ============================================================================
# REQUEST BODIES
# ============================================================================


class GoalOptionCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    target_amount: Optional[float] = None


class GoalCreate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    options: list[GoalOptionCreate] = []
    voting_ends_at: Optional[datetime] = None  # Required with several options
    is_visible: bool = True


class GoalUpdate(CamelModel):
    """Field edits, a lifecycle action, or a manual contribution."""

    action: Optional[str] = None  # publish | close_voting | cancel
    name: Optional[str] = None
    description: Optional[str] = None
    is_visible: Optional[bool] = None
    voting_ends_at: Optional[datetime] = None
    add_amount: Optional[float] = None
    add_note: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================


class AdminOptionResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    target_amount: float
    vote_count: int
    percentage: int
    is_winner: bool
    display_order: int


class ContributionResponse(CamelModel):
    id: uuid.UUID
    amount: float
    source: ContributionSource
    member_name: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime


class AdminGoalResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    status: GoalStatus
    is_visible: bool
    voting_ends_at: Optional[datetime] = None
    voting_ended_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    total_votes: int
    vote_count: int
    current_amount: float
    target_amount: float
    progress_percentage: int
    contribution_count: int
    options: list[AdminOptionResponse]
    winning_option_id: Optional[uuid.UUID] = None
    is_single_option: bool
    contributions: Optional[list[ContributionResponse]] = None


class AdminGoalListResponse(CamelModel):
    goals: list[AdminGoalResponse]


class AdminGoalEnvelope(CamelModel):
    success: bool = True
    goal: AdminGoalResponse


class GoalActionResponse(CamelModel):
    success: bool = True
    action: Optional[str] = None
    winning_option: Optional[AdminOptionResponse] = None
    completed: Optional[bool] = None
