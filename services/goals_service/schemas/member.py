"""Member-facing goal schemas. Amounts are in currency units."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.schemas import CamelModel


class VoteRequest(CamelModel):
    option_id: uuid.UUID


class OptionTallyResponse(CamelModel):
    id: uuid.UUID
    name: str
    vote_count: int
    percentage: int


class CastVoteResponse(CamelModel):
    success: bool = True
    changed: bool
    previous_option_id: Optional[uuid.UUID] = None
    new_option_id: Optional[uuid.UUID] = None
    total_votes: int
    options: list[OptionTallyResponse]


class VotingOptionResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    target_amount: float
    vote_count: int
    percentage: int


class VotingGoalResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    voting_ends_at: Optional[datetime] = None
    days_until_deadline: int
    hours_until_deadline: int
    total_votes: int
    my_vote_option_id: Optional[uuid.UUID] = None
    options: list[VotingOptionResponse]


class WinningOptionResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    target_amount: Optional[float] = None


class FundraisingGoalResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    winning_option: WinningOptionResponse
    current_amount: float
    target_amount: float
    progress_percentage: int


class CompletedGoalResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    completed_at: Optional[datetime] = None
    winning_option: Optional[WinningOptionResponse] = None


class MemberGoalsResponse(CamelModel):
    voting_goals: list[VotingGoalResponse]
    fundraising_goals: list[FundraisingGoalResponse]
    recently_completed: list[CompletedGoalResponse]
