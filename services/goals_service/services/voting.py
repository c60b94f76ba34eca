"""Goal voting - atomic vote operations and winner selection.

Each mutating call runs in one transaction: the goal row is locked, the
member's ballot (one row per goal and member) is inserted or overwritten, and
option tallies move through single ``vote_count = vote_count +/- 1``
statements, so the sum of tallies always equals the number of ballots.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from libs.billing.guards import check_feature_access
from libs.billing.tiers import TierFeature
from libs.common.datetime_utils import utc_now
from libs.common.errors import ErrorCode, ServiceResult
from libs.common.logging import get_logger
from libs.db.errors import is_transaction_conflict
from services.goals_service.models import Goal, GoalOption, GoalStatus, GoalVote
from services.goals_service.services.status import (
    calculate_vote_percentage,
    determine_winner,
    should_close_voting,
)
from sqlalchemy import desc, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class OptionTally:
    id: uuid.UUID
    name: str
    vote_count: int
    percentage: int


@dataclass
class VoteBreakdown:
    total_votes: int = 0
    options: list[OptionTally] = field(default_factory=list)


@dataclass
class CastVoteResult(ServiceResult):
    changed: bool = False
    previous_option_id: Optional[uuid.UUID] = None
    new_option_id: Optional[uuid.UUID] = None
    breakdown: Optional[VoteBreakdown] = None


@dataclass
class SelectWinnerResult(ServiceResult):
    winning_option: Optional[GoalOption] = None


def _failed_persisting(exc: SQLAlchemyError, result_cls, what: str, goal_id):
    if is_transaction_conflict(exc):
        logger.warning("Transaction conflict while %s on goal %s", what, goal_id)
        return result_cls(success=False, error=ErrorCode.TRANSACTION_CONFLICT)
    logger.exception("Error %s on goal %s", what, goal_id)
    return result_cls(success=False, error=ErrorCode.INTERNAL_ERROR)


async def lock_goal(
    db: AsyncSession, goal_id: uuid.UUID, gym_id: Optional[uuid.UUID] = None
) -> Optional[Goal]:
    """Load a goal with a row lock held until the transaction ends."""
    query = select(Goal).where(Goal.id == goal_id)
    if gym_id is not None:
        query = query.where(Goal.gym_id == gym_id)
    result = await db.execute(
        query.with_for_update().execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def release_goal(db: AsyncSession, result: ServiceResult):
    """End a transaction that wrote nothing, dropping the goal row lock."""
    await db.commit()
    return result


async def _load_options(db: AsyncSession, goal_id: uuid.UUID) -> list[GoalOption]:
    result = await db.execute(
        select(GoalOption)
        .where(GoalOption.goal_id == goal_id)
        .order_by(desc(GoalOption.vote_count), GoalOption.display_order)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _bump(db: AsyncSession, option_id: uuid.UUID, delta: int) -> None:
    await db.execute(
        update(GoalOption)
        .where(GoalOption.id == option_id)
        .values(vote_count=GoalOption.vote_count + delta)
    )


# ---------------------------------------------------------------------------
# Casting
# ---------------------------------------------------------------------------


async def cast_vote(
    db: AsyncSession,
    gym_id: uuid.UUID,
    goal_id: uuid.UUID,
    member_id: uuid.UUID,
    option_id: uuid.UUID,
    *,
    now: Optional[datetime] = None,
) -> CastVoteResult:
    """Cast or change a member's vote on a goal.

    Re-voting for the same option is a no-op reported as ``changed=False``.
    """
    feature = await check_feature_access(db, gym_id, TierFeature.CHALLENGES)
    if not feature.allowed:
        return feature.as_denial(CastVoteResult)

    now = now or utc_now()
    try:
        goal = await lock_goal(db, goal_id, gym_id)
        if not goal:
            return await release_goal(
                db, CastVoteResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)
            )
        if goal.status != GoalStatus.VOTING:
            return await release_goal(
                db, CastVoteResult(success=False, error=ErrorCode.VOTING_NOT_ACTIVE)
            )
        # Deadline passed but the lazy sweep has not closed it yet.
        if should_close_voting(goal, now):
            return await release_goal(
                db, CastVoteResult(success=False, error=ErrorCode.VOTING_ENDED)
            )

        option = await db.scalar(
            select(GoalOption).where(
                GoalOption.id == option_id, GoalOption.goal_id == goal_id
            )
        )
        if not option:
            return await release_goal(
                db, CastVoteResult(success=False, error=ErrorCode.INVALID_OPTION)
            )

        existing = await db.scalar(
            select(GoalVote)
            .where(GoalVote.goal_id == goal_id, GoalVote.member_id == member_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

        if existing and existing.option_id == option_id:
            return await release_goal(
                db,
                CastVoteResult(
                    changed=False,
                    previous_option_id=option_id,
                    new_option_id=option_id,
                    breakdown=await get_vote_breakdown(db, goal_id),
                ),
            )

        previous_option_id = existing.option_id if existing else None
        if existing:
            # Only move the ballot we read; a concurrent change makes this
            # match nothing and the tallies stay untouched.
            moved = await db.execute(
                update(GoalVote)
                .where(
                    GoalVote.id == existing.id,
                    GoalVote.option_id == previous_option_id,
                )
                .values(option_id=option_id, updated_at=now)
            )
            if moved.rowcount != 1:
                await db.rollback()
                logger.warning(
                    "Ballot of member %s on goal %s changed concurrently",
                    member_id,
                    goal_id,
                )
                return CastVoteResult(
                    success=False, error=ErrorCode.TRANSACTION_CONFLICT
                )
            await _bump(db, previous_option_id, -1)
        else:
            db.add(GoalVote(goal_id=goal_id, member_id=member_id, option_id=option_id))
            await db.flush()
        await _bump(db, option_id, 1)

        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        return _failed_persisting(exc, CastVoteResult, "casting vote", goal_id)

    logger.info(
        "Member %s voted %s on goal %s (previous=%s)",
        member_id,
        option_id,
        goal_id,
        previous_option_id,
    )
    return CastVoteResult(
        changed=True,
        previous_option_id=previous_option_id,
        new_option_id=option_id,
        breakdown=await get_vote_breakdown(db, goal_id),
    )


# ---------------------------------------------------------------------------
# Closing
# ---------------------------------------------------------------------------


async def select_winner(
    db: AsyncSession,
    goal_id: uuid.UUID,
    *,
    now: Optional[datetime] = None,
    only_if_expired: bool = False,
) -> SelectWinnerResult:
    """Pick the winning option and move the goal into fundraising.

    Highest vote count wins; ties go to the option listed first. With
    ``only_if_expired`` the deadline is checked again once the row is locked,
    so a deadline extended in the meantime keeps the poll open.
    """
    now = now or utc_now()
    try:
        goal = await lock_goal(db, goal_id)
        if not goal:
            return await release_goal(
                db, SelectWinnerResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)
            )
        if goal.status != GoalStatus.VOTING:
            return await release_goal(
                db,
                SelectWinnerResult(
                    success=False, error=ErrorCode.NOT_IN_VOTING_STATUS
                ),
            )
        if only_if_expired and not should_close_voting(goal, now):
            return await release_goal(
                db,
                SelectWinnerResult(success=False, error=ErrorCode.VOTING_STILL_OPEN),
            )

        options = await _load_options(db, goal_id)
        winner = determine_winner(options)
        if winner is None:
            return await release_goal(
                db, SelectWinnerResult(success=False, error=ErrorCode.NO_OPTIONS)
            )

        goal.winning_option_id = winner.id
        goal.status = GoalStatus.FUNDRAISING
        goal.current_amount = 0
        goal.voting_ended_at = now

        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        return _failed_persisting(exc, SelectWinnerResult, "selecting winner", goal_id)

    logger.info(
        "Voting closed on goal %s: %s won with %d votes",
        goal_id,
        winner.name,
        winner.vote_count,
    )
    return SelectWinnerResult(winning_option=winner)


async def close_expired_voting(
    db: AsyncSession, gym_id: uuid.UUID, *, now: Optional[datetime] = None
) -> int:
    """Close every voting goal in the gym whose deadline has passed.

    Called lazily on reads. Goals already moved on are excluded by the status
    filter, so repeated calls are no-ops.
    """
    now = now or utc_now()
    result = await db.execute(
        select(Goal.id).where(
            Goal.gym_id == gym_id,
            Goal.status == GoalStatus.VOTING,
            Goal.voting_ends_at < now,
        )
    )
    expired_ids = list(result.scalars().all())

    closed = 0
    for goal_id in expired_ids:
        outcome = await select_winner(db, goal_id, now=now, only_if_expired=True)
        if outcome.success:
            closed += 1
    if closed:
        logger.info("Auto-closed %d expired voting goal(s) for gym %s", closed, gym_id)
    return closed


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_member_vote(
    db: AsyncSession, goal_id: uuid.UUID, member_id: uuid.UUID
) -> Optional[uuid.UUID]:
    """Option id the member currently votes for, or None."""
    return await db.scalar(
        select(GoalVote.option_id).where(
            GoalVote.goal_id == goal_id, GoalVote.member_id == member_id
        )
    )


async def get_vote_breakdown(db: AsyncSession, goal_id: uuid.UUID) -> VoteBreakdown:
    """All options of a goal with counts and rounded percentages."""
    options = await _load_options(db, goal_id)
    total = sum(o.vote_count for o in options)
    return VoteBreakdown(
        total_votes=total,
        options=[
            OptionTally(
                id=o.id,
                name=o.name,
                vote_count=o.vote_count,
                percentage=calculate_vote_percentage(o.vote_count, total),
            )
            for o in options
        ],
    )
