"""Tests for cancelling, completing and listing confirmed sessions."""

from datetime import timedelta

import pytest
from libs.auth.models import Role
from libs.common.errors import ErrorCode
from services.sessions_service.models import Party, ScheduledSessionStatus
from services.sessions_service.services.negotiation import (
    ProposalTerms,
    create_session_request,
)
from services.sessions_service.services.scheduled import (
    PAST_LIMIT_MEMBER,
    cancel_session,
    complete_session,
    list_sessions,
)

from tests.factories import ScheduledSessionFactory, in_hours, make_principal

REASON = "Feeling unwell this week"


@pytest.fixture
def make_session(db_session, coach_and_member):
    coach, member = coach_and_member

    async def _make(**overrides):
        session = ScheduledSessionFactory.create(
            gym_id=coach.gym_id, coach_id=coach.id, member_id=member.id, **overrides
        )
        db_session.add(session)
        await db_session.commit()
        return session

    return _make


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_member_cancels_with_reason(db_session, coach_and_member, make_session):
    _, member = coach_and_member
    session = await make_session()

    result = await cancel_session(db_session, member, session.id, f"  {REASON}  ")

    assert result.success
    assert result.session.status == ScheduledSessionStatus.CANCELLED
    assert result.session.cancelled_by == Party.MEMBER
    assert result.session.cancellation_reason == REASON
    assert result.session.cancelled_at is not None


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("reason", [None, "", "too short", "   short    "])
async def test_cancel_needs_real_reason(
    db_session, coach_and_member, make_session, reason
):
    coach, _ = coach_and_member
    session = await make_session()

    result = await cancel_session(db_session, coach, session.id, reason)

    assert result.error == ErrorCode.INVALID_REASON
    assert session.status == ScheduledSessionStatus.CONFIRMED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_twice_is_not_found(db_session, coach_and_member, make_session):
    coach, member = coach_and_member
    session = await make_session()

    await cancel_session(db_session, coach, session.id, REASON)
    result = await cancel_session(db_session, member, session.id, REASON)

    assert result.error == ErrorCode.NOT_FOUND


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancel_someone_elses_session(db_session, gym, make_session):
    session = await make_session()
    stranger = make_principal(Role.MEMBER, gym.id)

    result = await cancel_session(db_session, stranger, session.id, REASON)

    assert result.error == ErrorCode.NOT_FOUND


# ---------------------------------------------------------------------------
# Complete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_coach_completes_session(db_session, coach_and_member, make_session):
    coach, _ = coach_and_member
    session = await make_session(scheduled_at=in_hours(-2))

    result = await complete_session(db_session, coach, session.id)

    assert result.success
    assert result.session.status == ScheduledSessionStatus.COMPLETED
    assert result.session.completed_at is not None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_member_cannot_complete(db_session, coach_and_member, make_session):
    _, member = coach_and_member
    session = await make_session()

    result = await complete_session(db_session, member, session.id)

    assert result.error == ErrorCode.FORBIDDEN


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cancelled_session_cannot_complete(
    db_session, coach_and_member, make_session
):
    coach, _ = coach_and_member
    session = await make_session(status=ScheduledSessionStatus.CANCELLED)

    result = await complete_session(db_session, coach, session.id)

    assert result.error == ErrorCode.NOT_FOUND


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_overview_splits_upcoming_and_past(
    db_session, coach_and_member, make_session
):
    coach, member = coach_and_member
    soon = await make_session(scheduled_at=in_hours(24))
    later = await make_session(scheduled_at=in_hours(96))
    elapsed = await make_session(scheduled_at=in_hours(-3))
    done = await make_session(
        scheduled_at=in_hours(-48), status=ScheduledSessionStatus.COMPLETED
    )
    await make_session(scheduled_at=in_hours(-24 * 45))  # outside the window

    await create_session_request(
        db_session,
        member,
        session_type="checkin",
        terms=ProposalTerms(in_hours(72), 30, "virtual"),
    )

    overview = await list_sessions(db_session, member)

    assert overview.success
    assert [s.id for s in overview.upcoming] == [soon.id, later.id]
    assert [s.id for s in overview.past] == [elapsed.id, done.id]
    assert len(overview.requests) == 1
    assert overview.coach_id == coach.id
    assert overview.member_ids == []

    coach_view = await list_sessions(db_session, coach)
    assert coach_view.member_ids == [member.id]
    assert coach_view.coach_id is None
    assert len(coach_view.requests) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_member_past_sessions_capped(db_session, coach_and_member, make_session):
    _, member = coach_and_member
    for day in range(1, PAST_LIMIT_MEMBER + 4):
        await make_session(
            scheduled_at=in_hours(-24 * day), status=ScheduledSessionStatus.COMPLETED
        )

    overview = await list_sessions(db_session, member)

    assert len(overview.past) == PAST_LIMIT_MEMBER
    assert overview.past[0].scheduled_at > overview.past[-1].scheduled_at


@pytest.mark.asyncio
@pytest.mark.unit
async def test_overview_forbidden_for_admin(db_session, admin):
    overview = await list_sessions(db_session, admin)

    assert overview.error == ErrorCode.FORBIDDEN


@pytest.mark.asyncio
@pytest.mark.unit
async def test_confirmed_session_moves_to_past_after_start(
    db_session, coach_and_member, make_session
):
    _, member = coach_and_member
    session = await make_session(scheduled_at=in_hours(-0.5))

    overview = await list_sessions(db_session, member)

    assert overview.upcoming == []
    assert [s.id for s in overview.past] == [session.id]
    assert overview.past[0].scheduled_at < in_hours(0) + timedelta(seconds=1)
