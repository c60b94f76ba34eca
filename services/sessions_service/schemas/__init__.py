"""Sessions Service schemas package."""

from services.sessions_service.schemas.main import (
    CancelSessionBody,
    ProposalTermsIn,
    RespondResultResponse,
    ScheduledSessionResponse,
    SessionEnvelopeResponse,
    SessionProposalResponse,
    SessionRequestCreate,
    SessionRequestCreatedResponse,
    SessionRequestRespond,
    SessionRequestResponse,
    SessionsOverviewResponse,
)

__all__ = [
    "CancelSessionBody",
    "ProposalTermsIn",
    "RespondResultResponse",
    "ScheduledSessionResponse",
    "SessionEnvelopeResponse",
    "SessionProposalResponse",
    "SessionRequestCreate",
    "SessionRequestCreatedResponse",
    "SessionRequestRespond",
    "SessionRequestResponse",
    "SessionsOverviewResponse",
]
