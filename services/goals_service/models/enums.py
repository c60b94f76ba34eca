"""Enum definitions for goals service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class GoalStatus(str, enum.Enum):
    """Lifecycle of a goal: draft -> voting -> fundraising -> completed.

    Single-option goals skip voting. Any non-completed goal can be cancelled.
    """

    DRAFT = "draft"
    VOTING = "voting"
    FUNDRAISING = "fundraising"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ContributionSource(str, enum.Enum):
    SUBSCRIPTION = "subscription"
    MANUAL = "manual"


class GoalAction(str, enum.Enum):
    """Admin lifecycle actions accepted on PATCH /admin/goals/{id}."""

    PUBLISH = "publish"
    CLOSE_VOTING = "close_voting"
    CANCEL = "cancel"
