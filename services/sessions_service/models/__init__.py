"""Sessions Service models package."""

from services.sessions_service.models.core import (
    CoachAssignment,
    ScheduledSession,
    SessionProposal,
    SessionRequest,
)
from services.sessions_service.models.enums import (
    ACTIVE_REQUEST_STATUSES,
    NegotiationTurn,
    Party,
    ProposalResponse,
    RequestStatus,
    ScheduledSessionStatus,
    SessionDuration,
    SessionLocation,
    SessionType,
)

__all__ = [
    "ACTIVE_REQUEST_STATUSES",
    "CoachAssignment",
    "NegotiationTurn",
    "Party",
    "ProposalResponse",
    "RequestStatus",
    "ScheduledSession",
    "ScheduledSessionStatus",
    "SessionDuration",
    "SessionLocation",
    "SessionProposal",
    "SessionRequest",
    "SessionType",
]
