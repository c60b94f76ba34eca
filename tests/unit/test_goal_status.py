"""Unit tests for the pure goal helpers (no database)."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from services.goals_service.models import GoalStatus
from services.goals_service.services.status import (
    calculate_progress,
    calculate_vote_percentage,
    can_vote,
    days_until_voting_ends,
    determine_winner,
    hours_until_voting_ends,
    is_single_option_goal,
    should_close_voting,
    sort_by_votes,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _goal(status=GoalStatus.VOTING, ends_in=timedelta(days=2)):
    return SimpleNamespace(
        status=status, voting_ends_at=NOW + ends_in if ends_in is not None else None
    )


def _option(votes, order):
    return SimpleNamespace(vote_count=votes, display_order=order)


# ---------------------------------------------------------------------------
# Voting window
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_can_vote_while_open():
    assert can_vote(_goal(), NOW) is True
    assert should_close_voting(_goal(), NOW) is False


@pytest.mark.unit
def test_deadline_passed_closes_voting():
    goal = _goal(ends_in=timedelta(seconds=-1))
    assert can_vote(goal, NOW) is False
    assert should_close_voting(goal, NOW) is True


@pytest.mark.unit
def test_deadline_instant_still_open():
    goal = _goal(ends_in=timedelta(0))
    assert can_vote(goal, NOW) is True
    assert should_close_voting(goal, NOW) is False


@pytest.mark.unit
@pytest.mark.parametrize(
    "status", [GoalStatus.DRAFT, GoalStatus.FUNDRAISING, GoalStatus.COMPLETED]
)
def test_only_voting_goals_accept_votes(status):
    goal = _goal(status=status, ends_in=timedelta(seconds=-1))
    assert can_vote(goal, NOW) is False
    assert should_close_voting(goal, NOW) is False


@pytest.mark.unit
def test_goal_without_deadline_is_not_votable():
    assert can_vote(_goal(ends_in=None), NOW) is False


@pytest.mark.unit
def test_single_option_detection():
    assert is_single_option_goal(1) is True
    assert is_single_option_goal(2) is False


@pytest.mark.unit
def test_time_until_deadline_rounds_up():
    ends = NOW + timedelta(days=1, hours=1)
    assert days_until_voting_ends(ends, NOW) == 2
    assert hours_until_voting_ends(ends, NOW) == 25


@pytest.mark.unit
def test_time_until_past_deadline_is_zero():
    ends = NOW - timedelta(hours=5)
    assert days_until_voting_ends(ends, NOW) == 0
    assert hours_until_voting_ends(ends, NOW) == 0
    assert days_until_voting_ends(None, NOW) == 0


# ---------------------------------------------------------------------------
# Percentages & progress
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_vote_percentages_round():
    assert calculate_vote_percentage(2, 3) == 67
    assert calculate_vote_percentage(1, 3) == 33


@pytest.mark.unit
def test_vote_percentage_half_rounds_up():
    # 1/8 = 12.5%
    assert calculate_vote_percentage(1, 8) == 13


@pytest.mark.unit
def test_vote_percentage_without_votes_is_zero():
    assert calculate_vote_percentage(0, 0) == 0


@pytest.mark.unit
def test_progress_capped_at_100():
    assert calculate_progress(50_000, 100_000) == 50
    assert calculate_progress(250_000, 100_000) == 100
    assert calculate_progress(10, 0) == 0


# ---------------------------------------------------------------------------
# Winner
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_determine_winner_most_votes():
    options = [_option(3, 0), _option(7, 1), _option(2, 2)]
    assert determine_winner(options) is options[1]


@pytest.mark.unit
def test_determine_winner_tie_goes_to_first_listed():
    options = [_option(4, 2), _option(4, 0), _option(1, 1)]
    assert determine_winner(options) is options[1]


@pytest.mark.unit
def test_determine_winner_empty():
    assert determine_winner([]) is None


@pytest.mark.unit
def test_sort_by_votes_then_display_order():
    a, b, c = _option(1, 0), _option(5, 2), _option(5, 1)
    assert sort_by_votes([a, b, c]) == [c, b, a]
