"""Response builders shared by the member and admin goal routers.

ORM rows carry cents; everything built here is in currency units.
"""

from datetime import datetime
from typing import Optional

from libs.common.currency import cents_to_units
from services.goals_service.models import Goal, GoalContribution, GoalOption
from services.goals_service.schemas import (
    AdminGoalResponse,
    AdminOptionResponse,
    CompletedGoalResponse,
    ContributionResponse,
    FundraisingGoalResponse,
    VotingGoalResponse,
    VotingOptionResponse,
    WinningOptionResponse,
)
from services.goals_service.services.admin import AdminGoalView
from services.goals_service.services.feed import VotingGoalView
from services.goals_service.services.status import (
    calculate_progress,
    calculate_vote_percentage,
    days_until_voting_ends,
    hours_until_voting_ends,
    is_single_option_goal,
    sort_by_votes,
)


def total_votes(goal: Goal) -> int:
    return sum(option.vote_count for option in goal.options)


def goal_target_cents(goal: Goal) -> int:
    """Winning option's target, or the first option's before a winner exists."""
    winner = goal.winning_option
    if winner:
        return winner.target_amount
    return goal.options[0].target_amount if goal.options else 0


def winning_option_out(
    option: Optional[GoalOption], *, with_target: bool = True
) -> Optional[WinningOptionResponse]:
    if option is None:
        return None
    return WinningOptionResponse(
        id=option.id,
        name=option.name,
        description=option.description,
        image_url=option.image_url,
        target_amount=cents_to_units(option.target_amount) if with_target else None,
    )


def voting_goal_out(
    view: VotingGoalView, now: Optional[datetime] = None
) -> VotingGoalResponse:
    goal = view.goal
    total = total_votes(goal)
    return VotingGoalResponse(
        id=goal.id,
        name=goal.name,
        description=goal.description,
        voting_ends_at=goal.voting_ends_at,
        days_until_deadline=days_until_voting_ends(goal.voting_ends_at, now),
        hours_until_deadline=hours_until_voting_ends(goal.voting_ends_at, now),
        total_votes=total,
        my_vote_option_id=view.my_vote_option_id,
        options=[
            VotingOptionResponse(
                id=option.id,
                name=option.name,
                description=option.description,
                image_url=option.image_url,
                target_amount=cents_to_units(option.target_amount),
                vote_count=option.vote_count,
                percentage=calculate_vote_percentage(option.vote_count, total),
            )
            for option in sort_by_votes(goal.options)
        ],
    )


def fundraising_goal_out(goal: Goal) -> FundraisingGoalResponse:
    winner = goal.winning_option
    return FundraisingGoalResponse(
        id=goal.id,
        name=goal.name,
        description=goal.description,
        winning_option=winning_option_out(winner),
        current_amount=cents_to_units(goal.current_amount),
        target_amount=cents_to_units(winner.target_amount),
        progress_percentage=calculate_progress(
            goal.current_amount, winner.target_amount
        ),
    )


def completed_goal_out(goal: Goal) -> CompletedGoalResponse:
    return CompletedGoalResponse(
        id=goal.id,
        name=goal.name,
        description=goal.description,
        completed_at=goal.completed_at,
        winning_option=winning_option_out(goal.winning_option, with_target=False),
    )


def admin_option_out(goal: Goal, option: GoalOption, total: int) -> AdminOptionResponse:
    return AdminOptionResponse(
        id=option.id,
        name=option.name,
        description=option.description,
        image_url=option.image_url,
        target_amount=cents_to_units(option.target_amount),
        vote_count=option.vote_count,
        percentage=calculate_vote_percentage(option.vote_count, total),
        is_winner=option.id == goal.winning_option_id,
        display_order=option.display_order,
    )


def contribution_out(contribution: GoalContribution) -> ContributionResponse:
    return ContributionResponse(
        id=contribution.id,
        amount=cents_to_units(contribution.amount),
        source=contribution.source,
        member_name=contribution.member_name,
        note=contribution.note,
        created_at=contribution.created_at,
    )


def admin_goal_out(
    view: AdminGoalView, *, include_contributions: bool = False
) -> AdminGoalResponse:
    goal = view.goal
    total = total_votes(goal)
    target = goal_target_cents(goal)
    return AdminGoalResponse(
        id=goal.id,
        name=goal.name,
        description=goal.description,
        status=goal.status,
        is_visible=goal.is_visible,
        voting_ends_at=goal.voting_ends_at,
        voting_ended_at=goal.voting_ended_at,
        completed_at=goal.completed_at,
        created_at=goal.created_at,
        total_votes=total,
        vote_count=view.vote_count,
        current_amount=cents_to_units(goal.current_amount),
        target_amount=cents_to_units(target),
        progress_percentage=calculate_progress(goal.current_amount, target),
        contribution_count=view.contribution_count,
        options=[
            admin_option_out(goal, option, total)
            for option in sort_by_votes(goal.options)
        ],
        winning_option_id=goal.winning_option_id,
        is_single_option=is_single_option_goal(len(goal.options)),
        contributions=(
            [contribution_out(c) for c in view.contributions]
            if include_contributions
            else None
        ),
    )
