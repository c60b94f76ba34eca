"""Member goal endpoints: browse goals and vote."""

import uuid

from fastapi import APIRouter, Depends, Request
from libs.auth.dependencies import require_member
from libs.auth.models import Principal
from libs.common.datetime_utils import utc_now
from libs.common.rate_limit import limiter
from libs.db.session import get_async_db
from services.goals_service.routers._shared import (
    completed_goal_out,
    fundraising_goal_out,
    voting_goal_out,
)
from services.goals_service.schemas import (
    CastVoteResponse,
    MemberGoalsResponse,
    OptionTallyResponse,
    VoteRequest,
)
from services.goals_service.services.feed import list_member_goals
from services.goals_service.services.voting import cast_vote
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/goals", tags=["goals"])


@router.get("", response_model=MemberGoalsResponse)
async def get_goals(
    current_user: Principal = Depends(require_member),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Open polls, active fundraisers and goals completed in the last 30 days.
    Expired polls are closed on the way.
    """
    now = utc_now()
    feed = await list_member_goals(db, current_user.gym_id, current_user.id, now=now)
    return MemberGoalsResponse(
        voting_goals=[voting_goal_out(view, now) for view in feed.voting],
        fundraising_goals=[fundraising_goal_out(goal) for goal in feed.fundraising],
        recently_completed=[
            completed_goal_out(goal) for goal in feed.recently_completed
        ],
    )


@router.post("/{goal_id}/vote", response_model=CastVoteResponse)
@limiter.limit("30/minute")
async def vote(
    request: Request,
    goal_id: uuid.UUID,
    payload: VoteRequest,
    current_user: Principal = Depends(require_member),
    db: AsyncSession = Depends(get_async_db),
):
    """Cast or change the caller's vote. Voting again for the same option is a no-op."""
    result = await cast_vote(
        db, current_user.gym_id, goal_id, current_user.id, payload.option_id
    )
    result.raise_for_error()
    return CastVoteResponse(
        changed=result.changed,
        previous_option_id=result.previous_option_id,
        new_option_id=result.new_option_id,
        total_votes=result.breakdown.total_votes,
        options=[
            OptionTallyResponse(
                id=tally.id,
                name=tally.name,
                vote_count=tally.vote_count,
                percentage=tally.percentage,
            )
            for tally in result.breakdown.options
        ],
    )
