"""Goal administration: authoring, lifecycle actions and the admin read side."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from libs.billing.guards import check_feature_access
from libs.billing.tiers import TierFeature
from libs.common.datetime_utils import as_utc, utc_now
from libs.common.errors import ErrorCode, ServiceResult
from libs.common.logging import get_logger
from services.goals_service.models import (
    ContributionSource,
    Goal,
    GoalAction,
    GoalContribution,
    GoalOption,
    GoalStatus,
    GoalVote,
)
from services.goals_service.services.fundraising import add_contribution
from services.goals_service.services.status import is_single_option_goal
from services.goals_service.services.voting import (
    close_expired_voting,
    select_winner,
)
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

RECENT_CONTRIBUTIONS_LIMIT = 50
MANUAL_CONTRIBUTION_NOTE = "Manual entry"


@dataclass
class OptionInput:
    name: Optional[str]
    target_amount: Optional[int]  # cents
    description: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class GoalResult(ServiceResult):
    goal: Optional[Goal] = None
    action: Optional[str] = None
    winning_option: Optional[GoalOption] = None
    completed: Optional[bool] = None


@dataclass
class AdminGoalView:
    goal: Goal
    vote_count: int = 0
    contribution_count: int = 0
    contributions: list[GoalContribution] = field(default_factory=list)


@dataclass
class AdminGoalsResult(ServiceResult):
    goals: list[AdminGoalView] = field(default_factory=list)


@dataclass
class AdminGoalDetailResult(ServiceResult):
    view: Optional[AdminGoalView] = None


def _invalid(message: str) -> GoalResult:
    return GoalResult(success=False, error=ErrorCode.INVALID_INPUT, message=message)


def _wrong_state(message: str) -> GoalResult:
    return GoalResult(
        success=False, error=ErrorCode.INVALID_GOAL_STATE, message=message
    )


async def _gate(db: AsyncSession, gym_id: uuid.UUID, result_cls):
    feature = await check_feature_access(db, gym_id, TierFeature.CHALLENGES)
    if not feature.allowed:
        return feature.as_denial(result_cls)
    return None


async def _get_goal(
    db: AsyncSession, gym_id: uuid.UUID, goal_id: uuid.UUID
) -> Optional[Goal]:
    result = await db.execute(
        select(Goal)
        .where(Goal.id == goal_id, Goal.gym_id == gym_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _activity_counts(
    db: AsyncSession, goal_ids: list[uuid.UUID]
) -> tuple[dict, dict]:
    if not goal_ids:
        return {}, {}
    votes = await db.execute(
        select(GoalVote.goal_id, func.count())
        .where(GoalVote.goal_id.in_(goal_ids))
        .group_by(GoalVote.goal_id)
    )
    contributions = await db.execute(
        select(GoalContribution.goal_id, func.count())
        .where(GoalContribution.goal_id.in_(goal_ids))
        .group_by(GoalContribution.goal_id)
    )
    return dict(votes.all()), dict(contributions.all())


# ---------------------------------------------------------------------------
# Authoring
# ---------------------------------------------------------------------------


def _validate_deadline(voting_ends_at: Optional[datetime], now: datetime) -> Optional[str]:
    if voting_ends_at is not None and as_utc(voting_ends_at) <= now:
        return "Voting deadline must be in the future"
    return None


async def create_goal(
    db: AsyncSession,
    gym_id: uuid.UUID,
    *,
    name: Optional[str],
    options: list[OptionInput],
    description: Optional[str] = None,
    voting_ends_at: Optional[datetime] = None,
    is_visible: bool = True,
    now: Optional[datetime] = None,
) -> GoalResult:
    """Create a draft goal with its options.

    Multi-option goals need a future voting deadline. Single-option goals get
    their only option as the winner up front since they skip voting.
    """
    denied = await _gate(db, gym_id, GoalResult)
    if denied:
        return denied

    now = now or utc_now()
    if not name or not name.strip():
        return _invalid("Goal name is required")
    if not options:
        return _invalid("At least one option is required")

    for index, option in enumerate(options, start=1):
        if not option.name or not option.name.strip():
            return _invalid(f"Option {index}: name is required")
        if not option.target_amount or option.target_amount <= 0:
            return _invalid(f"Option {index}: target amount must be greater than 0")

    single = is_single_option_goal(len(options))
    if not single and voting_ends_at is None:
        return _invalid("A voting deadline is required when there are several options")
    problem = _validate_deadline(voting_ends_at, now)
    if problem:
        return _invalid(problem)

    goal = Goal(
        gym_id=gym_id,
        name=name.strip(),
        description=(description or "").strip() or None,
        status=GoalStatus.DRAFT,
        voting_ends_at=None if single else as_utc(voting_ends_at),
        is_visible=is_visible,
        current_amount=0,
        options=[
            GoalOption(
                id=uuid.uuid4(),
                name=option.name.strip(),
                description=(option.description or "").strip() or None,
                image_url=option.image_url or None,
                target_amount=option.target_amount,
                vote_count=0,
                display_order=index,
            )
            for index, option in enumerate(options)
        ],
    )
    if single:
        goal.winning_option_id = goal.options[0].id

    db.add(goal)
    await db.commit()

    logger.info("Goal %s created for gym %s with %d option(s)", goal.id, gym_id, len(options))
    return GoalResult(goal=goal, action="created")


async def update_goal(
    db: AsyncSession,
    gym_id: uuid.UUID,
    goal_id: uuid.UUID,
    changes: dict[str, Any],
    *,
    now: Optional[datetime] = None,
) -> GoalResult:
    """Apply field edits. ``changes`` holds only the fields the caller sent.

    Editable: name, description, is_visible, and voting_ends_at while the goal
    is still a draft or voting.
    """
    denied = await _gate(db, gym_id, GoalResult)
    if denied:
        return denied

    goal = await _get_goal(db, gym_id, goal_id)
    if not goal:
        return GoalResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)

    now = now or utc_now()
    if "name" in changes:
        name = changes["name"]
        if not name or not name.strip():
            return _invalid("Goal name cannot be empty")
        goal.name = name.strip()

    if "description" in changes:
        goal.description = (changes["description"] or "").strip() or None

    if "is_visible" in changes and changes["is_visible"] is not None:
        goal.is_visible = bool(changes["is_visible"])

    if "voting_ends_at" in changes:
        if goal.status not in (GoalStatus.DRAFT, GoalStatus.VOTING):
            return _wrong_state(
                "The voting deadline can only change for drafts and open polls"
            )
        deadline = changes["voting_ends_at"]
        problem = _validate_deadline(deadline, now)
        if problem:
            return _invalid(problem)
        goal.voting_ends_at = as_utc(deadline)

    await db.commit()
    return GoalResult(goal=goal, action="updated")


async def delete_goal(
    db: AsyncSession, gym_id: uuid.UUID, goal_id: uuid.UUID
) -> GoalResult:
    """Delete a draft that nobody has voted on or contributed to."""
    denied = await _gate(db, gym_id, GoalResult)
    if denied:
        return denied

    goal = await _get_goal(db, gym_id, goal_id)
    if not goal:
        return GoalResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)
    if goal.status != GoalStatus.DRAFT:
        return _wrong_state("Only drafts can be deleted")

    votes, contributions = await _activity_counts(db, [goal.id])
    if votes.get(goal.id) or contributions.get(goal.id):
        return GoalResult(success=False, error=ErrorCode.GOAL_HAS_ACTIVITY)

    await db.delete(goal)
    await db.commit()

    logger.info("Goal %s deleted", goal_id)
    return GoalResult(action="deleted")


# ---------------------------------------------------------------------------
# Lifecycle actions
# ---------------------------------------------------------------------------


async def publish_goal(
    db: AsyncSession, gym_id: uuid.UUID, goal_id: uuid.UUID
) -> GoalResult:
    """draft -> voting, or draft -> fundraising for single-option goals."""
    denied = await _gate(db, gym_id, GoalResult)
    if denied:
        return denied

    goal = await _get_goal(db, gym_id, goal_id)
    if not goal:
        return GoalResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)
    if goal.status != GoalStatus.DRAFT:
        return _wrong_state("Only drafts can be published")
    if not goal.options:
        return GoalResult(success=False, error=ErrorCode.NO_OPTIONS)

    if is_single_option_goal(len(goal.options)):
        goal.status = GoalStatus.FUNDRAISING
        goal.winning_option_id = goal.options[0].id
        goal.current_amount = 0
    else:
        if goal.voting_ends_at is None:
            return _invalid("A voting deadline is required to publish")
        goal.status = GoalStatus.VOTING

    await db.commit()
    logger.info("Goal %s published into %s", goal_id, goal.status.value)
    return GoalResult(goal=goal, action="published")


async def close_voting(
    db: AsyncSession, gym_id: uuid.UUID, goal_id: uuid.UUID
) -> GoalResult:
    """Close an open poll now instead of waiting for its deadline."""
    denied = await _gate(db, gym_id, GoalResult)
    if denied:
        return denied

    goal = await _get_goal(db, gym_id, goal_id)
    if not goal:
        return GoalResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)
    if goal.status != GoalStatus.VOTING:
        return GoalResult(success=False, error=ErrorCode.NOT_IN_VOTING_STATUS)

    outcome = await select_winner(db, goal_id)
    if not outcome.success:
        return GoalResult(
            success=False, error=outcome.error, message=outcome.message
        )
    return GoalResult(
        goal=goal, action="voting_closed", winning_option=outcome.winning_option
    )


async def cancel_goal(
    db: AsyncSession, gym_id: uuid.UUID, goal_id: uuid.UUID
) -> GoalResult:
    denied = await _gate(db, gym_id, GoalResult)
    if denied:
        return denied

    goal = await _get_goal(db, gym_id, goal_id)
    if not goal:
        return GoalResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)
    if goal.status == GoalStatus.COMPLETED:
        return _wrong_state("Completed goals cannot be cancelled")

    goal.status = GoalStatus.CANCELLED
    await db.commit()
    logger.info("Goal %s cancelled", goal_id)
    return GoalResult(goal=goal, action="cancelled")


async def apply_goal_action(
    db: AsyncSession, gym_id: uuid.UUID, goal_id: uuid.UUID, action: str
) -> GoalResult:
    try:
        action = GoalAction(action)
    except ValueError:
        return GoalResult(
            success=False, error=ErrorCode.INVALID_ACTION, message="Unknown action"
        )

    if action is GoalAction.PUBLISH:
        return await publish_goal(db, gym_id, goal_id)
    if action is GoalAction.CLOSE_VOTING:
        return await close_voting(db, gym_id, goal_id)
    return await cancel_goal(db, gym_id, goal_id)


async def add_manual_contribution(
    db: AsyncSession,
    gym_id: uuid.UUID,
    goal_id: uuid.UUID,
    amount_cents: int,
    note: Optional[str] = None,
) -> GoalResult:
    """Admin-entered contribution (cash, sponsor, ...)."""
    denied = await _gate(db, gym_id, GoalResult)
    if denied:
        return denied

    outcome = await add_contribution(
        db,
        goal_id,
        amount_cents,
        ContributionSource.MANUAL,
        note=note or MANUAL_CONTRIBUTION_NOTE,
        gym_id=gym_id,
    )
    if not outcome.success:
        return GoalResult(success=False, error=outcome.error, message=outcome.message)
    return GoalResult(action="contribution_added", completed=outcome.completed)


# ---------------------------------------------------------------------------
# Read side
# ---------------------------------------------------------------------------


async def list_goals_for_admin(
    db: AsyncSession, gym_id: uuid.UUID
) -> AdminGoalsResult:
    """All goals of the gym, newest first, after closing expired polls."""
    denied = await _gate(db, gym_id, AdminGoalsResult)
    if denied:
        return denied

    await close_expired_voting(db, gym_id)

    result = await db.execute(
        select(Goal)
        .where(Goal.gym_id == gym_id)
        .order_by(desc(Goal.created_at))
        .execution_options(populate_existing=True)
    )
    goals = list(result.scalars().all())
    votes, contributions = await _activity_counts(db, [g.id for g in goals])

    return AdminGoalsResult(
        goals=[
            AdminGoalView(
                goal=goal,
                vote_count=votes.get(goal.id, 0),
                contribution_count=contributions.get(goal.id, 0),
            )
            for goal in goals
        ]
    )


async def get_goal_detail(
    db: AsyncSession, gym_id: uuid.UUID, goal_id: uuid.UUID
) -> AdminGoalDetailResult:
    """One goal with its most recent contributions."""
    denied = await _gate(db, gym_id, AdminGoalDetailResult)
    if denied:
        return denied

    await close_expired_voting(db, gym_id)

    goal = await _get_goal(db, gym_id, goal_id)
    if not goal:
        return AdminGoalDetailResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)

    votes, contributions = await _activity_counts(db, [goal.id])
    recent = await db.execute(
        select(GoalContribution)
        .where(GoalContribution.goal_id == goal.id)
        .order_by(desc(GoalContribution.created_at))
        .limit(RECENT_CONTRIBUTIONS_LIMIT)
    )

    return AdminGoalDetailResult(
        view=AdminGoalView(
            goal=goal,
            vote_count=votes.get(goal.id, 0),
            contribution_count=contributions.get(goal.id, 0),
            contributions=list(recent.scalars().all()),
        )
    )
