"""Pure helpers for goal status, deadlines, tallies and progress.

Nothing here touches the database; callers pass goals/options (or anything
with the same attributes) and an optional ``now`` for deterministic tests.
"""

import math
from datetime import datetime
from typing import Optional, Sequence, TypeVar

from libs.common.datetime_utils import as_utc, utc_now
from services.goals_service.models import GoalStatus

T = TypeVar("T")


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now else utc_now()


def can_vote(goal, now: Optional[datetime] = None) -> bool:
    """Voting is open: status is voting and the deadline has not passed."""
    if goal.status != GoalStatus.VOTING or goal.voting_ends_at is None:
        return False
    return _now(now) <= as_utc(goal.voting_ends_at)


def should_close_voting(goal, now: Optional[datetime] = None) -> bool:
    """The poll is still marked voting but its deadline is behind us."""
    if goal.status != GoalStatus.VOTING or goal.voting_ends_at is None:
        return False
    return _now(now) > as_utc(goal.voting_ends_at)


def is_single_option_goal(option_count: int) -> bool:
    """Single-option goals skip the voting phase."""
    return option_count == 1


def _remaining_seconds(voting_ends_at, now) -> float:
    if voting_ends_at is None:
        return 0.0
    return (as_utc(voting_ends_at) - _now(now)).total_seconds()


def days_until_voting_ends(voting_ends_at, now: Optional[datetime] = None) -> int:
    return max(0, math.ceil(_remaining_seconds(voting_ends_at, now) / 86400))


def hours_until_voting_ends(voting_ends_at, now: Optional[datetime] = None) -> int:
    return max(0, math.ceil(_remaining_seconds(voting_ends_at, now) / 3600))


def _round_percent(part: int, whole: int) -> int:
    # round(part / whole * 100) with halves rounded up, in integer math
    return (200 * part + whole) // (2 * whole)


def calculate_vote_percentage(vote_count: int, total_votes: int) -> int:
    if total_votes <= 0:
        return 0
    return _round_percent(vote_count, total_votes)


def calculate_progress(current_amount: int, target_amount: int) -> int:
    """Fundraising progress in whole percent, capped at 100."""
    if target_amount <= 0:
        return 0
    return min(100, _round_percent(max(0, current_amount), target_amount))


def determine_winner(options: Sequence[T]) -> Optional[T]:
    """Most votes wins; ties go to the lowest display_order."""
    if not options:
        return None
    return min(options, key=lambda o: (-o.vote_count, o.display_order))


def sort_by_votes(options: Sequence[T]) -> list[T]:
    """Options ordered by votes desc, then display order."""
    return sorted(options, key=lambda o: (-o.vote_count, o.display_order))
