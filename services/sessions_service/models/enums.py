"""Enum definitions for sessions service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class SessionType(str, enum.Enum):
    TRAINING = "training"
    CONSULTATION = "consultation"
    CHECKIN = "checkin"


class SessionLocation(str, enum.Enum):
    GYM = "gym"
    VIRTUAL = "virtual"


class SessionDuration(int, enum.Enum):
    """Allowed session lengths in minutes."""

    MIN_30 = 30
    MIN_45 = 45
    MIN_60 = 60
    MIN_90 = 90


class Party(str, enum.Enum):
    """One side of a coach-member negotiation."""

    COACH = "coach"
    MEMBER = "member"

    @property
    def other(self) -> "Party":
        return Party.MEMBER if self is Party.COACH else Party.COACH


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    COUNTERED = "countered"
    ACCEPTED = "accepted"
    DECLINED = "declined"


ACTIVE_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.COUNTERED)


class NegotiationTurn(str, enum.Enum):
    """Who must act next on a session request."""

    AWAITING_COACH = "awaiting_coach"
    AWAITING_MEMBER = "awaiting_member"
    CLOSED = "closed"

    @classmethod
    def awaiting(cls, party: Party) -> "NegotiationTurn":
        return cls.AWAITING_COACH if party is Party.COACH else cls.AWAITING_MEMBER


class ProposalResponse(str, enum.Enum):
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COUNTERED = "countered"


class ScheduledSessionStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
