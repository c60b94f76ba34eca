import uuid
from datetime import datetime
from typing import Optional

from libs.common.schemas import CamelModel
from services.sessions_service.models import (
    NegotiationTurn,
    Party,
    ProposalResponse,
    RequestStatus,
    ScheduledSessionStatus,
    SessionLocation,
    SessionType,
)

# ============================================================================
# REQUEST BODIES
# ============================================================================

# Terms are kept loosely typed here; the negotiation engine owns the rules and
# reports violations as INVALID_INPUT.


class ProposalTermsIn(CamelModel):
    proposed_at: Optional[datetime] = None
    duration: Optional[int] = None
    location: Optional[str] = None
    note: Optional[str] = None


class SessionRequestCreate(ProposalTermsIn):
    session_type: Optional[str] = None
    member_id: Optional[uuid.UUID] = None  # Coach-initiated
    coach_id: Optional[uuid.UUID] = None  # Member-initiated, optional


class SessionRequestRespond(ProposalTermsIn):
    action: Optional[str] = None  # accept | counter | decline


class CancelSessionBody(CamelModel):
    reason: Optional[str] = None


# ============================================================================
# RESPONSES
# ============================================================================


class SessionProposalResponse(CamelModel):
    id: uuid.UUID
    sequence: int
    proposed_by: Party
    proposed_at: datetime
    duration: int
    location: SessionLocation
    note: Optional[str] = None
    response: Optional[ProposalResponse] = None
    response_at: Optional[datetime] = None
    created_at: datetime


class SessionRequestResponse(CamelModel):
    id: uuid.UUID
    coach_id: uuid.UUID
    member_id: uuid.UUID
    session_type: SessionType
    proposed_at: datetime
    duration: int
    location: SessionLocation
    note: Optional[str] = None
    initiated_by: Party
    status: RequestStatus
    turn: NegotiationTurn
    counter_count: int
    last_action_by: Optional[Party] = None
    last_action_at: datetime
    created_at: datetime
    proposals: list[SessionProposalResponse] = []


class ScheduledSessionResponse(CamelModel):
    id: uuid.UUID
    coach_id: uuid.UUID
    member_id: uuid.UUID
    session_type: SessionType
    scheduled_at: datetime
    duration: int
    location: SessionLocation
    note: Optional[str] = None
    status: ScheduledSessionStatus
    original_request_id: Optional[uuid.UUID] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[Party] = None
    cancellation_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class SessionRequestCreatedResponse(CamelModel):
    success: bool = True
    request: SessionRequestResponse


class RespondResultResponse(CamelModel):
    success: bool = True
    action: str
    request: Optional[SessionRequestResponse] = None
    session: Optional[ScheduledSessionResponse] = None


class SessionEnvelopeResponse(CamelModel):
    success: bool = True
    session: ScheduledSessionResponse


class SessionsOverviewResponse(CamelModel):
    requests: list[SessionRequestResponse]
    upcoming: list[ScheduledSessionResponse]
    past: list[ScheduledSessionResponse]
    coach_id: Optional[uuid.UUID] = None  # Member view
    member_ids: list[uuid.UUID] = []  # Coach view
