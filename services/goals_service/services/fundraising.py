"""Fundraising contributions toward a goal's winning option."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import ErrorCode, ServiceResult
from libs.common.logging import get_logger
from libs.db.errors import is_transaction_conflict
from services.goals_service.models import (
    ContributionSource,
    GoalContribution,
    GoalStatus,
)
from services.goals_service.services.voting import lock_goal, release_goal
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class ContributionResult(ServiceResult):
    completed: bool = False
    contribution: Optional[GoalContribution] = None


async def add_contribution(
    db: AsyncSession,
    goal_id: uuid.UUID,
    amount_cents: int,
    source: ContributionSource,
    *,
    member_id: Optional[uuid.UUID] = None,
    member_name: Optional[str] = None,
    note: Optional[str] = None,
    gym_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> ContributionResult:
    """Record a contribution and complete the goal once the target is reached.

    ``current_amount`` only ever grows; crossing the winning option's target is
    the single path to ``completed``.
    """
    if amount_cents is None or amount_cents <= 0:
        return ContributionResult(
            success=False,
            error=ErrorCode.INVALID_INPUT,
            message="Contribution amount must be greater than 0",
        )

    try:
        goal = await lock_goal(db, goal_id, gym_id)
        if not goal:
            return await release_goal(
                db, ContributionResult(success=False, error=ErrorCode.GOAL_NOT_FOUND)
            )
        if goal.status != GoalStatus.FUNDRAISING:
            return await release_goal(
                db,
                ContributionResult(
                    success=False, error=ErrorCode.NOT_IN_FUNDRAISING_STATUS
                ),
            )

        winning_option = goal.winning_option
        if not winning_option:
            return await release_goal(
                db,
                ContributionResult(
                    success=False, error=ErrorCode.WINNING_OPTION_NOT_FOUND
                ),
            )

        contribution = GoalContribution(
            goal_id=goal_id,
            amount=amount_cents,
            source=ContributionSource(source),
            member_id=member_id,
            member_name=member_name,
            note=note,
        )
        db.add(contribution)

        goal.current_amount += amount_cents
        completed = goal.current_amount >= winning_option.target_amount
        if completed:
            goal.status = GoalStatus.COMPLETED
            goal.completed_at = now or utc_now()

        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        if is_transaction_conflict(exc):
            logger.warning("Transaction conflict adding contribution to %s", goal_id)
            return ContributionResult(
                success=False, error=ErrorCode.TRANSACTION_CONFLICT
            )
        logger.exception("Error adding contribution to goal %s", goal_id)
        return ContributionResult(success=False, error=ErrorCode.INTERNAL_ERROR)

    logger.info(
        "Contribution of %d cents (%s) to goal %s%s",
        amount_cents,
        contribution.source.value,
        goal_id,
        " - goal completed" if completed else "",
    )
    return ContributionResult(completed=completed, contribution=contribution)
