"""Member-facing read side: the goals a member can vote on or follow."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from services.goals_service.models import Goal, GoalStatus
from services.goals_service.services.status import can_vote
from services.goals_service.services.voting import (
    close_expired_voting,
    get_member_vote,
)
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass
class VotingGoalView:
    goal: Goal
    my_vote_option_id: Optional[uuid.UUID] = None


@dataclass
class MemberGoalsFeed:
    voting: list[VotingGoalView] = field(default_factory=list)
    fundraising: list[Goal] = field(default_factory=list)
    recently_completed: list[Goal] = field(default_factory=list)


async def list_member_goals(
    db: AsyncSession,
    gym_id: uuid.UUID,
    member_id: uuid.UUID,
    *,
    now: Optional[datetime] = None,
) -> MemberGoalsFeed:
    """Open polls, active fundraisers and recently completed goals.

    Expired polls are closed first so they show up as fundraisers.
    """
    settings = get_settings()
    now = now or utc_now()
    await close_expired_voting(db, gym_id, now=now)

    result = await db.execute(
        select(Goal)
        .where(
            Goal.gym_id == gym_id,
            Goal.is_visible.is_(True),
            Goal.status.in_((GoalStatus.VOTING, GoalStatus.FUNDRAISING)),
        )
        .order_by(desc(Goal.created_at))
        .execution_options(populate_existing=True)
    )

    feed = MemberGoalsFeed()
    for goal in result.scalars().all():
        if goal.status == GoalStatus.VOTING and can_vote(goal, now):
            feed.voting.append(
                VotingGoalView(
                    goal=goal,
                    my_vote_option_id=await get_member_vote(db, goal.id, member_id),
                )
            )
        elif goal.status == GoalStatus.FUNDRAISING and goal.winning_option:
            feed.fundraising.append(goal)

    since = now - timedelta(days=settings.RECENTLY_COMPLETED_GOALS_DAYS)
    completed = await db.execute(
        select(Goal)
        .where(
            Goal.gym_id == gym_id,
            Goal.is_visible.is_(True),
            Goal.status == GoalStatus.COMPLETED,
            Goal.completed_at >= since,
        )
        .order_by(desc(Goal.completed_at))
        .limit(settings.RECENTLY_COMPLETED_GOALS_LIMIT)
    )
    feed.recently_completed = list(completed.scalars().all())
    return feed
