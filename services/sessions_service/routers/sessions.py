"""Coach/member session negotiation endpoints."""

import uuid

from fastapi import APIRouter, Depends, Request, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import Principal
from libs.common.rate_limit import limiter
from libs.db.session import get_async_db
from services.sessions_service.schemas import (
    CancelSessionBody,
    RespondResultResponse,
    SessionEnvelopeResponse,
    SessionRequestCreate,
    SessionRequestCreatedResponse,
    SessionRequestRespond,
    SessionsOverviewResponse,
)
from services.sessions_service.services.negotiation import (
    ProposalTerms,
    create_session_request,
    respond_to_request,
)
from services.sessions_service.services.scheduled import (
    cancel_session,
    complete_session,
    list_sessions,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _terms(body) -> ProposalTerms:
    return ProposalTerms(
        proposed_at=body.proposed_at,
        duration=body.duration,
        location=body.location,
        note=body.note,
    )


@router.get("", response_model=SessionsOverviewResponse)
async def get_my_sessions(
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Active requests (with proposal history), upcoming sessions and the last
    30 days of past sessions for the calling coach or member.
    """
    overview = await list_sessions(db, current_user)
    overview.raise_for_error()
    return SessionsOverviewResponse(
        requests=overview.requests,
        upcoming=overview.upcoming,
        past=overview.past,
        coach_id=overview.coach_id,
        member_ids=overview.member_ids,
    )


@router.post(
    "",
    response_model=SessionRequestCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/minute")
async def create_request(
    request: Request,
    payload: SessionRequestCreate,
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Propose a session. Members propose to their assigned coach; coaches pass
    the `memberId` of an assigned member.
    """
    result = await create_session_request(
        db,
        current_user,
        session_type=payload.session_type,
        terms=_terms(payload),
        member_id=payload.member_id,
        coach_id=payload.coach_id,
    )
    result.raise_for_error()
    return SessionRequestCreatedResponse(request=result.request)


@router.post("/requests/{request_id}", response_model=RespondResultResponse)
@limiter.limit("30/minute")
async def respond(
    request: Request,
    request_id: uuid.UUID,
    payload: SessionRequestRespond,
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """
    Accept, counter or decline the live proposal. Counter requires new terms.
    """
    terms = _terms(payload) if payload.action == "counter" else None
    result = await respond_to_request(
        db, current_user, request_id, payload.action, terms
    )
    result.raise_for_error()
    return RespondResultResponse(
        action=result.action, request=result.request, session=result.session
    )


@router.post("/{session_id}/cancel", response_model=SessionEnvelopeResponse)
@limiter.limit("20/minute")
async def cancel(
    request: Request,
    session_id: uuid.UUID,
    payload: CancelSessionBody,
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    result = await cancel_session(db, current_user, session_id, payload.reason)
    result.raise_for_error()
    return SessionEnvelopeResponse(session=result.session)


@router.post("/{session_id}/complete", response_model=SessionEnvelopeResponse)
@limiter.limit("20/minute")
async def complete(
    request: Request,
    session_id: uuid.UUID,
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    result = await complete_session(db, current_user, session_id)
    result.raise_for_error()
    return SessionEnvelopeResponse(session=result.session)
