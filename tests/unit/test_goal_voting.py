"""Tests for vote casting, tallies and winner selection."""

import asyncio
import uuid

import pytest
import pytest_asyncio
from libs.billing.tiers import GymTier
from libs.common.errors import ErrorCode
from libs.db.base import Base
from services.goals_service.models import Goal, GoalOption, GoalStatus, GoalVote
from services.goals_service.services import voting
from services.goals_service.services.voting import (
    cast_vote,
    close_expired_voting,
    get_member_vote,
    get_vote_breakdown,
    select_winner,
)
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tests.factories import GoalFactory, GoalOptionFactory, GymFactory, in_hours


@pytest.fixture
def add_goal(db_session, gym):
    async def _add(**overrides):
        overrides.setdefault("gym_id", gym.id)
        goal = GoalFactory.create(**overrides)
        db_session.add(goal)
        await db_session.commit()
        return goal

    return _add


def _tallied(*counts):
    return [
        GoalOptionFactory.create(name=f"Option {i}", vote_count=n, display_order=i)
        for i, n in enumerate(counts)
    ]


async def _ballots(db_session, goal_id):
    return await db_session.scalar(
        select(func.count()).select_from(GoalVote).where(GoalVote.goal_id == goal_id)
    )


# ---------------------------------------------------------------------------
# Casting
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_first_vote_counts(db_session, gym, add_goal):
    goal = await add_goal()
    rower, rack = goal.options
    member_id = uuid.uuid4()

    result = await cast_vote(db_session, gym.id, goal.id, member_id, rack.id)

    assert result.success
    assert result.changed is True
    assert result.previous_option_id is None
    assert result.new_option_id == rack.id
    assert result.breakdown.total_votes == 1
    assert result.breakdown.options[0].id == rack.id
    assert result.breakdown.options[0].percentage == 100
    assert await get_member_vote(db_session, goal.id, member_id) == rack.id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_same_vote_again_is_noop(db_session, gym, add_goal):
    goal = await add_goal()
    option = goal.options[0]
    member_id = uuid.uuid4()
    await cast_vote(db_session, gym.id, goal.id, member_id, option.id)

    result = await cast_vote(db_session, gym.id, goal.id, member_id, option.id)

    assert result.success
    assert result.changed is False
    assert result.breakdown.total_votes == 1
    assert await _ballots(db_session, goal.id) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_changing_vote_moves_one_count(db_session, gym, add_goal):
    goal = await add_goal()
    rower, rack = goal.options
    member_id = uuid.uuid4()
    await cast_vote(db_session, gym.id, goal.id, member_id, rower.id)

    result = await cast_vote(db_session, gym.id, goal.id, member_id, rack.id)

    assert result.changed is True
    assert result.previous_option_id == rower.id
    assert result.new_option_id == rack.id
    counts = {o.id: o.vote_count for o in result.breakdown.options}
    assert counts == {rower.id: 0, rack.id: 1}
    assert await _ballots(db_session, goal.id) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_tallies_match_ballots(db_session, gym, add_goal):
    goal = await add_goal(option_names=("Bike", "Sled", "Rope"))
    bike, sled, rope = goal.options
    members = [uuid.uuid4() for _ in range(4)]

    await cast_vote(db_session, gym.id, goal.id, members[0], bike.id)
    await cast_vote(db_session, gym.id, goal.id, members[1], bike.id)
    await cast_vote(db_session, gym.id, goal.id, members[2], sled.id)
    await cast_vote(db_session, gym.id, goal.id, members[3], rope.id)
    await cast_vote(db_session, gym.id, goal.id, members[3], sled.id)
    await cast_vote(db_session, gym.id, goal.id, members[0], bike.id)

    breakdown = await get_vote_breakdown(db_session, goal.id)

    assert breakdown.total_votes == await _ballots(db_session, goal.id) == 4
    assert [(o.name, o.vote_count) for o in breakdown.options] == [
        ("Bike", 2),
        ("Sled", 2),
        ("Rope", 0),
    ]
    assert [o.percentage for o in breakdown.options] == [50, 50, 0]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_two_thirds_split_percentages(db_session, gym, add_goal):
    goal = await add_goal()
    rower, rack = goal.options
    for option in (rower, rower, rack):
        await cast_vote(db_session, gym.id, goal.id, uuid.uuid4(), option.id)

    breakdown = await get_vote_breakdown(db_session, goal.id)

    assert [o.percentage for o in breakdown.options] == [67, 33]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_vote_on_unknown_or_foreign_goal(db_session, gym, add_goal):
    other_gym_goal = await add_goal(gym_id=uuid.uuid4())

    missing = await cast_vote(db_session, gym.id, uuid.uuid4(), uuid.uuid4(), uuid.uuid4())
    foreign = await cast_vote(
        db_session,
        gym.id,
        other_gym_goal.id,
        uuid.uuid4(),
        other_gym_goal.options[0].id,
    )

    assert missing.error == ErrorCode.GOAL_NOT_FOUND
    assert foreign.error == ErrorCode.GOAL_NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("status", [GoalStatus.DRAFT, GoalStatus.FUNDRAISING])
async def test_vote_outside_voting_status(db_session, gym, add_goal, status):
    goal = await add_goal(status=status)

    result = await cast_vote(
        db_session, gym.id, goal.id, uuid.uuid4(), goal.options[0].id
    )

    assert result.error == ErrorCode.VOTING_NOT_ACTIVE


@pytest.mark.asyncio
@pytest.mark.unit
async def test_vote_after_deadline(db_session, gym, add_goal):
    goal = await add_goal(voting_ends_at=in_hours(-1))

    result = await cast_vote(
        db_session, gym.id, goal.id, uuid.uuid4(), goal.options[0].id
    )

    assert result.error == ErrorCode.VOTING_ENDED
    assert await _ballots(db_session, goal.id) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_vote_for_option_of_another_goal(db_session, gym, add_goal):
    goal = await add_goal()
    other = await add_goal()

    result = await cast_vote(
        db_session, gym.id, goal.id, uuid.uuid4(), other.options[0].id
    )

    assert result.error == ErrorCode.INVALID_OPTION


@pytest.mark.asyncio
@pytest.mark.unit
async def test_vote_requires_challenges_tier(db_session, add_goal):
    starter = GymFactory.create(subscription_tier=GymTier.STARTER)
    db_session.add(starter)
    await db_session.commit()
    goal = await add_goal(gym_id=starter.id)

    result = await cast_vote(
        db_session, starter.id, goal.id, uuid.uuid4(), goal.options[0].id
    )

    assert result.error == ErrorCode.TIER_REQUIRED
    assert result.details["requiredTier"] == "pro"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_serialization_failure_reports_conflict(
    db_session, gym, add_goal, monkeypatch
):
    class _SerializationFailure(Exception):
        sqlstate = "40001"

    async def _conflicting_bump(*args, **kwargs):
        raise OperationalError("UPDATE goal_options", {}, _SerializationFailure())

    goal = await add_goal()
    goal_id, option_id = goal.id, goal.options[0].id
    monkeypatch.setattr(voting, "_bump", _conflicting_bump)

    result = await cast_vote(db_session, gym.id, goal_id, uuid.uuid4(), option_id)

    assert result.error == ErrorCode.TRANSACTION_CONFLICT
    # Rolled back, so the loaded goal is expired; only ids are used from here.
    assert await _ballots(db_session, goal_id) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unexpected_db_error_reports_internal(
    db_session, gym, add_goal, monkeypatch
):
    async def _broken_bump(*args, **kwargs):
        raise OperationalError("UPDATE goal_options", {}, Exception("disk I/O error"))

    goal = await add_goal()
    monkeypatch.setattr(voting, "_bump", _broken_bump)

    result = await cast_vote(
        db_session, gym.id, goal.id, uuid.uuid4(), goal.options[0].id
    )

    assert result.error == ErrorCode.INTERNAL_ERROR


@pytest.mark.asyncio
@pytest.mark.unit
async def test_rejected_and_repeated_votes_end_the_transaction(
    db_session, gym, add_goal
):
    goal = await add_goal()
    closed_goal = await add_goal(status=GoalStatus.DRAFT)
    option = goal.options[0]
    member_id = uuid.uuid4()
    await cast_vote(db_session, gym.id, goal.id, member_id, option.id)

    rejected = await cast_vote(
        db_session, gym.id, closed_goal.id, member_id, closed_goal.options[0].id
    )
    assert rejected.error == ErrorCode.VOTING_NOT_ACTIVE
    assert not db_session.in_transaction()

    repeated = await cast_vote(db_session, gym.id, goal.id, member_id, option.id)
    assert repeated.changed is False
    assert not db_session.in_transaction()


# ---------------------------------------------------------------------------
# Closing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_expired_poll_closes_with_most_voted_winner(db_session, gym, add_goal):
    goal = await add_goal(voting_ends_at=in_hours(-1), options=_tallied(3, 7, 2))
    open_goal = await add_goal()

    closed = await close_expired_voting(db_session, gym.id)

    assert closed == 1
    await db_session.refresh(goal)
    assert goal.status == GoalStatus.FUNDRAISING
    assert goal.winning_option.vote_count == 7
    assert goal.current_amount == 0
    assert goal.voting_ended_at is not None
    await db_session.refresh(open_goal)
    assert open_goal.status == GoalStatus.VOTING

    # Nothing left to close.
    assert await close_expired_voting(db_session, gym.id) == 0
    await db_session.refresh(goal)
    assert goal.winning_option.vote_count == 7


@pytest.mark.asyncio
@pytest.mark.unit
async def test_tie_goes_to_first_listed_option(db_session, add_goal):
    goal = await add_goal(options=_tallied(4, 4, 1))

    result = await select_winner(db_session, goal.id)

    assert result.success
    assert result.winning_option.display_order == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_select_winner_needs_voting_goal(db_session, add_goal):
    goal = await add_goal(status=GoalStatus.FUNDRAISING)

    result = await select_winner(db_session, goal.id)

    assert result.error == ErrorCode.NOT_IN_VOTING_STATUS


@pytest.mark.asyncio
@pytest.mark.unit
async def test_select_winner_without_options(db_session, add_goal):
    goal = await add_goal(options=[])

    result = await select_winner(db_session, goal.id)

    assert result.error == ErrorCode.NO_OPTIONS


@pytest.mark.asyncio
@pytest.mark.unit
async def test_sweep_keeps_poll_whose_deadline_was_extended(
    db_session, gym, add_goal, monkeypatch
):
    goal = await add_goal(voting_ends_at=in_hours(-1), options=_tallied(1, 2))
    locked = voting.lock_goal

    async def _extended_before_lock(db, goal_id, gym_id=None):
        # An admin pushes the deadline out after the sweep listed the goal.
        await db.execute(
            update(Goal).where(Goal.id == goal_id).values(voting_ends_at=in_hours(24))
        )
        return await locked(db, goal_id, gym_id)

    monkeypatch.setattr(voting, "lock_goal", _extended_before_lock)

    closed = await close_expired_voting(db_session, gym.id)

    assert closed == 0
    await db_session.refresh(goal)
    assert goal.status == GoalStatus.VOTING
    assert goal.winning_option_id is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_select_winner_only_if_expired(db_session, add_goal):
    goal = await add_goal()

    result = await select_winner(db_session, goal.id, only_if_expired=True)

    assert result.error == ErrorCode.VOTING_STILL_OPEN
    await db_session.refresh(goal)
    assert goal.status == GoalStatus.VOTING


# ---------------------------------------------------------------------------
# Concurrent ballots
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Sessions on separate connections to one database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'votes.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    await engine.dispose()


async def _tallies_and_ballots(session_factory, goal_id):
    async with session_factory() as session:
        tallies = dict(
            (
                await session.execute(
                    select(GoalOption.id, GoalOption.vote_count).where(
                        GoalOption.goal_id == goal_id
                    )
                )
            ).all()
        )
        ballots = dict(
            (
                await session.execute(
                    select(GoalVote.option_id, func.count())
                    .where(GoalVote.goal_id == goal_id)
                    .group_by(GoalVote.option_id)
                )
            ).all()
        )
    return tallies, {option_id: ballots.get(option_id, 0) for option_id in tallies}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_overlapping_votes_keep_tallies_consistent(session_factory):
    gym = GymFactory.create()
    goal = GoalFactory.create(gym_id=gym.id, option_names=("Bike", "Sled", "Rope"))
    bike, sled, rope = (option.id for option in goal.options)
    switcher, newcomer_a, newcomer_b, double_clicker = (
        uuid.uuid4() for _ in range(4)
    )
    async with session_factory() as session:
        session.add_all([gym, goal])
        await session.commit()
    async with session_factory() as session:
        seeded = await cast_vote(session, gym.id, goal.id, switcher, bike)
        assert seeded.success

    async def _vote(member_id, option_id):
        async with session_factory() as session:
            return await cast_vote(session, gym.id, goal.id, member_id, option_id)

    results = await asyncio.gather(
        _vote(switcher, sled),
        _vote(switcher, rope),
        _vote(newcomer_a, sled),
        _vote(newcomer_b, sled),
        _vote(double_clicker, rope),
        _vote(double_clicker, bike),
    )

    for result in results:
        assert result.success or result.error == ErrorCode.TRANSACTION_CONFLICT
    assert results[2].success and results[3].success
    assert results[0].success or results[1].success
    assert results[4].success or results[5].success

    tallies, ballots = await _tallies_and_ballots(session_factory, goal.id)
    assert tallies == ballots
    assert sum(tallies.values()) == 4
