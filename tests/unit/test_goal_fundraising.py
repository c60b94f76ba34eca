"""Tests for contributions toward a goal's winning option."""

import uuid

import pytest
from libs.common.errors import ErrorCode
from services.goals_service.models import ContributionSource, GoalStatus
from services.goals_service.services.fundraising import add_contribution

from tests.factories import GoalFactory, GoalOptionFactory


@pytest.fixture
def fundraiser(db_session, gym):
    """A fundraising goal whose winner needs 1,000.00 (100_000 cents)."""

    async def _make(**overrides):
        winner = GoalOptionFactory.create(name="Assault bike", target_amount=100_000)
        overrides.setdefault("status", GoalStatus.FUNDRAISING)
        overrides.setdefault("winning_option_id", winner.id)
        goal = GoalFactory.create(gym_id=gym.id, options=[winner], **overrides)
        db_session.add(goal)
        await db_session.commit()
        return goal

    return _make


@pytest.mark.asyncio
@pytest.mark.unit
async def test_contribution_below_target(db_session, fundraiser):
    goal = await fundraiser()
    member_id = uuid.uuid4()

    result = await add_contribution(
        db_session,
        goal.id,
        40_000,
        ContributionSource.SUBSCRIPTION,
        member_id=member_id,
        member_name="Sam",
    )

    assert result.success
    assert result.completed is False
    assert result.contribution.amount == 40_000
    assert result.contribution.member_id == member_id
    assert goal.current_amount == 40_000
    assert goal.status == GoalStatus.FUNDRAISING


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reaching_target_completes_goal(db_session, fundraiser):
    goal = await fundraiser(current_amount=90_000)

    result = await add_contribution(
        db_session, goal.id, 15_000, ContributionSource.MANUAL, note="Bake sale"
    )

    assert result.completed is True
    assert goal.status == GoalStatus.COMPLETED
    assert goal.completed_at is not None
    assert goal.current_amount == 105_000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_exact_target_completes_goal(db_session, fundraiser):
    goal = await fundraiser()

    result = await add_contribution(
        db_session, goal.id, 100_000, ContributionSource.MANUAL
    )

    assert result.completed is True


@pytest.mark.asyncio
@pytest.mark.unit
async def test_completed_goal_takes_no_more_money(db_session, fundraiser):
    goal = await fundraiser()
    await add_contribution(db_session, goal.id, 100_000, ContributionSource.MANUAL)

    result = await add_contribution(db_session, goal.id, 500, ContributionSource.MANUAL)

    assert result.error == ErrorCode.NOT_IN_FUNDRAISING_STATUS
    assert goal.current_amount == 100_000


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("amount", [0, -100])
async def test_amount_must_be_positive(db_session, fundraiser, amount):
    goal = await fundraiser()

    result = await add_contribution(db_session, goal.id, amount, ContributionSource.MANUAL)

    assert result.error == ErrorCode.INVALID_INPUT


@pytest.mark.asyncio
@pytest.mark.unit
async def test_contribution_during_voting_rejected(db_session, fundraiser):
    goal = await fundraiser(status=GoalStatus.VOTING)

    result = await add_contribution(db_session, goal.id, 1_000, ContributionSource.MANUAL)

    assert result.error == ErrorCode.NOT_IN_FUNDRAISING_STATUS


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_winning_option(db_session, fundraiser):
    goal = await fundraiser(winning_option_id=uuid.uuid4())

    result = await add_contribution(db_session, goal.id, 1_000, ContributionSource.MANUAL)

    assert result.error == ErrorCode.WINNING_OPTION_NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.unit
async def test_contribution_scoped_to_gym(db_session, fundraiser):
    goal = await fundraiser()

    result = await add_contribution(
        db_session, goal.id, 1_000, ContributionSource.MANUAL, gym_id=uuid.uuid4()
    )

    assert result.error == ErrorCode.GOAL_NOT_FOUND
