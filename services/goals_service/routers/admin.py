"""Admin goal management endpoints."""

import uuid

from fastapi import APIRouter, Depends, status
from libs.auth.dependencies import require_admin
from libs.auth.models import Principal
from libs.common.currency import units_to_cents
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.goals_service.routers._shared import admin_goal_out, admin_option_out
from services.goals_service.schemas import (
    AdminGoalEnvelope,
    AdminGoalListResponse,
    AdminGoalResponse,
    GoalActionResponse,
    GoalCreate,
    GoalUpdate,
)
from services.goals_service.services.admin import (
    AdminGoalView,
    OptionInput,
    add_manual_contribution,
    apply_goal_action,
    create_goal,
    delete_goal,
    get_goal_detail,
    list_goals_for_admin,
    update_goal,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/goals", tags=["admin-goals"])


@router.get("", response_model=AdminGoalListResponse)
async def list_goals(
    current_user: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """All goals for the admin's gym, newest first."""
    result = await list_goals_for_admin(db, current_user.gym_id)
    result.raise_for_error()
    return AdminGoalListResponse(goals=[admin_goal_out(view) for view in result.goals])


@router.post(
    "", response_model=AdminGoalEnvelope, status_code=status.HTTP_201_CREATED
)
async def create(
    payload: GoalCreate,
    current_user: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Create a draft goal. Several options need a future `votingEndsAt`; target
    amounts are in currency units.
    """
    options = [
        OptionInput(
            name=option.name,
            target_amount=(
                units_to_cents(option.target_amount)
                if option.target_amount is not None
                else None
            ),
            description=option.description,
            image_url=option.image_url,
        )
        for option in payload.options
    ]
    result = await create_goal(
        db,
        current_user.gym_id,
        name=payload.name,
        description=payload.description,
        options=options,
        voting_ends_at=payload.voting_ends_at,
        is_visible=payload.is_visible,
    )
    result.raise_for_error()
    return AdminGoalEnvelope(goal=admin_goal_out(AdminGoalView(goal=result.goal)))


@router.get("/{goal_id}", response_model=AdminGoalResponse)
async def get_goal(
    goal_id: uuid.UUID,
    current_user: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Goal detail with the 50 most recent contributions."""
    result = await get_goal_detail(db, current_user.gym_id, goal_id)
    result.raise_for_error()
    return admin_goal_out(result.view, include_contributions=True)


@router.patch("/{goal_id}", response_model=GoalActionResponse)
async def patch_goal(
    goal_id: uuid.UUID,
    payload: GoalUpdate,
    current_user: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """
    One of, in order of precedence:
    - `action`: publish | close_voting | cancel
    - `addAmount` (> 0, currency units) with optional `addNote`: manual contribution
    - field edits: name, description, isVisible, votingEndsAt
    """
    gym_id = current_user.gym_id

    if payload.action:
        result = await apply_goal_action(db, gym_id, goal_id, payload.action)
        result.raise_for_error()
        winner = None
        if result.winning_option is not None:
            winner = admin_option_out(
                result.goal,
                result.winning_option,
                sum(o.vote_count for o in result.goal.options),
            )
        return GoalActionResponse(action=result.action, winning_option=winner)

    if payload.add_amount is not None and payload.add_amount > 0:
        result = await add_manual_contribution(
            db, gym_id, goal_id, units_to_cents(payload.add_amount), payload.add_note
        )
        result.raise_for_error()
        return GoalActionResponse(action=result.action, completed=result.completed)

    changes = payload.model_dump(
        exclude_unset=True, include={"name", "description", "is_visible", "voting_ends_at"}
    )
    result = await update_goal(db, gym_id, goal_id, changes)
    result.raise_for_error()
    return GoalActionResponse(action=result.action)


@router.delete("/{goal_id}")
async def remove_goal(
    goal_id: uuid.UUID,
    current_user: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
) -> dict[str, bool]:
    """Delete a draft that has no votes or contributions."""
    result = await delete_goal(db, current_user.gym_id, goal_id)
    result.raise_for_error()
    logger.info("Admin %s deleted goal %s", current_user.id, goal_id)
    return {"success": True}
