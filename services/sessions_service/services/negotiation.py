"""Coach-member session negotiation: proposal / counter-proposal state machine.

A negotiation (``SessionRequest``) alternates strictly between the two
parties. ``turn`` records who must act next:

    create by X      -> pending,   turn = awaiting(other(X))
    counter by Y     -> countered, turn = awaiting(other(Y))
    accept / decline -> accepted / declined, turn = closed

Every transition commits the request update together with its proposal-history
rows (and, on accept, the new ``ScheduledSession``) as one unit. Concurrent
writers are fenced by the request's version counter and by the partial unique
index on active (coach, member) pairs.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from libs.auth.models import Principal, Role
from libs.billing.guards import check_feature_access
from libs.billing.tiers import TierFeature
from libs.common.config import get_settings
from libs.common.datetime_utils import as_utc, utc_now
from libs.common.errors import ErrorCode, ServiceResult
from libs.common.logging import get_logger
from services.sessions_service.models import (
    ACTIVE_REQUEST_STATUSES,
    CoachAssignment,
    NegotiationTurn,
    Party,
    ProposalResponse,
    RequestStatus,
    ScheduledSession,
    ScheduledSessionStatus,
    SessionDuration,
    SessionLocation,
    SessionProposal,
    SessionRequest,
    SessionType,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

logger = get_logger(__name__)

VALID_ACTIONS = ("accept", "counter", "decline")


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass
class ProposalTerms:
    """Concrete offer of time, duration and location."""

    proposed_at: Optional[datetime]
    duration: Optional[int]
    location: Optional[str]
    note: Optional[str] = None


@dataclass
class NegotiationResult(ServiceResult):
    action: Optional[str] = None
    request: Optional[SessionRequest] = None
    session: Optional[ScheduledSession] = None


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def party_for(principal: Principal) -> Optional[Party]:
    """Map a principal to its negotiation side; staff admins have none."""
    if principal.role == Role.COACH:
        return Party.COACH
    if principal.role == Role.MEMBER:
        return Party.MEMBER
    return None


def can_act(request: SessionRequest, party: Party) -> bool:
    """True when it is ``party``'s turn on an active request."""
    return request.turn == NegotiationTurn.awaiting(party)


def validate_terms(
    terms: ProposalTerms, now: Optional[datetime] = None
) -> Optional[str]:
    """Return a message describing the first problem with ``terms``, if any."""
    if terms.proposed_at is None or terms.duration is None or not terms.location:
        return "Proposed time, duration and location are required"

    try:
        SessionLocation(terms.location)
    except ValueError:
        return "Invalid location"

    if terms.duration not in [d.value for d in SessionDuration]:
        return "Invalid duration. Choose 30, 45, 60 or 90 minutes"

    now = now or utc_now()
    min_notice = timedelta(hours=get_settings().MIN_ADVANCE_NOTICE_HOURS)
    if as_utc(terms.proposed_at) < now + min_notice:
        return (
            "Sessions must be scheduled at least "
            f"{get_settings().MIN_ADVANCE_NOTICE_HOURS} hours in advance"
        )
    return None


def _invalid(message: str) -> NegotiationResult:
    return NegotiationResult(
        success=False, error=ErrorCode.INVALID_INPUT, message=message
    )


def _failure(code: ErrorCode, message: Optional[str] = None) -> NegotiationResult:
    return NegotiationResult(success=False, error=code, message=message)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def find_active_request(
    db: AsyncSession, coach_id: uuid.UUID, member_id: uuid.UUID
) -> Optional[SessionRequest]:
    result = await db.execute(
        select(SessionRequest).where(
            SessionRequest.coach_id == coach_id,
            SessionRequest.member_id == member_id,
            SessionRequest.status.in_(ACTIVE_REQUEST_STATUSES),
        )
    )
    return result.scalar_one_or_none()


async def _get_assignment(
    db: AsyncSession,
    *,
    member_id: uuid.UUID,
    coach_id: Optional[uuid.UUID] = None,
) -> Optional[CoachAssignment]:
    query = select(CoachAssignment).where(CoachAssignment.member_id == member_id)
    if coach_id is not None:
        query = query.where(CoachAssignment.coach_id == coach_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _load_open_request(
    db: AsyncSession, request_id: uuid.UUID, party: Party, principal_id: uuid.UUID
) -> Optional[SessionRequest]:
    owner_column = (
        SessionRequest.coach_id if party is Party.COACH else SessionRequest.member_id
    )
    result = await db.execute(
        select(SessionRequest)
        .where(
            SessionRequest.id == request_id,
            owner_column == principal_id,
            SessionRequest.status.in_(ACTIVE_REQUEST_STATUSES),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_session_request(
    db: AsyncSession,
    principal: Principal,
    *,
    session_type: Optional[str],
    terms: ProposalTerms,
    member_id: Optional[uuid.UUID] = None,
    coach_id: Optional[uuid.UUID] = None,
) -> NegotiationResult:
    """Open a negotiation with the caller's counterpart.

    Members negotiate with their assigned coach; coaches name the member, who
    must be assigned to them.
    """
    party = party_for(principal)
    if party is None:
        return _failure(ErrorCode.FORBIDDEN, "Only coaches and members can schedule sessions")

    feature = await check_feature_access(
        db, principal.gym_id, TierFeature.SESSION_SCHEDULING
    )
    if not feature.allowed:
        return feature.as_denial(NegotiationResult)

    try:
        session_type = SessionType(session_type)
    except ValueError:
        return _invalid("Invalid session type")

    problem = validate_terms(terms)
    if problem:
        return _invalid(problem)

    if party is Party.MEMBER:
        assignment = await _get_assignment(db, member_id=principal.id)
        if not assignment:
            return _failure(ErrorCode.NO_ASSIGNED_COACH)
        if coach_id is not None and coach_id != assignment.coach_id:
            return _failure(ErrorCode.NOT_ASSIGNED, "You can only schedule with your assigned coach")
        pair_coach_id, pair_member_id = assignment.coach_id, principal.id
    else:
        if member_id is None:
            return _invalid("memberId is required")
        assignment = await _get_assignment(
            db, member_id=member_id, coach_id=principal.id
        )
        if not assignment:
            return _failure(ErrorCode.NOT_ASSIGNED)
        pair_coach_id, pair_member_id = principal.id, member_id

    if await find_active_request(db, pair_coach_id, pair_member_id):
        return _failure(ErrorCode.DUPLICATE_REQUEST)

    now = utc_now()
    location = SessionLocation(terms.location)
    note = terms.note or None

    request = SessionRequest(
        gym_id=principal.gym_id,
        coach_id=pair_coach_id,
        member_id=pair_member_id,
        session_type=session_type,
        proposed_at=as_utc(terms.proposed_at),
        duration=terms.duration,
        location=location,
        note=note,
        initiated_by=party,
        status=RequestStatus.PENDING,
        turn=NegotiationTurn.awaiting(party.other),
        counter_count=0,
        last_action_by=party,
        last_action_at=now,
    )
    request.proposals = [
        SessionProposal(
            sequence=0,
            proposed_by=party,
            proposed_at=as_utc(terms.proposed_at),
            duration=terms.duration,
            location=location,
            note=note,
        )
    ]
    db.add(request)

    try:
        await db.commit()
    except IntegrityError:
        # Lost a create-vs-create race on the active-pair index.
        await db.rollback()
        logger.info(
            "Duplicate session request rejected for coach=%s member=%s",
            pair_coach_id,
            pair_member_id,
        )
        return _failure(ErrorCode.DUPLICATE_REQUEST)

    logger.info(
        "Session request %s opened by %s (coach=%s member=%s)",
        request.id,
        party.value,
        pair_coach_id,
        pair_member_id,
    )
    return NegotiationResult(action="created", request=request)


# ---------------------------------------------------------------------------
# Respond
# ---------------------------------------------------------------------------


async def respond_to_request(
    db: AsyncSession,
    principal: Principal,
    request_id: uuid.UUID,
    action: Optional[str],
    terms: Optional[ProposalTerms] = None,
) -> NegotiationResult:
    """Accept, counter or decline the live proposal of a negotiation."""
    party = party_for(principal)
    if party is None:
        return _failure(ErrorCode.FORBIDDEN, "Only coaches and members can respond to session requests")

    feature = await check_feature_access(
        db, principal.gym_id, TierFeature.SESSION_SCHEDULING
    )
    if not feature.allowed:
        return feature.as_denial(NegotiationResult)

    if action not in VALID_ACTIONS:
        return _failure(ErrorCode.INVALID_ACTION)

    request = await _load_open_request(db, request_id, party, principal.id)
    if not request:
        return _failure(ErrorCode.NOT_FOUND)

    if not can_act(request, party):
        return _failure(ErrorCode.NOT_YOUR_TURN)

    if action == "counter":
        problem = validate_terms(terms or ProposalTerms(None, None, None))
        if problem:
            return _invalid(problem)

    now = utc_now()
    latest = request.latest_proposal
    session = None

    if action == "decline":
        _close(request, party, RequestStatus.DECLINED, now)
        _stamp(latest, ProposalResponse.DECLINED, now)
        outcome = "declined"

    elif action == "accept":
        _close(request, party, RequestStatus.ACCEPTED, now)
        _stamp(latest, ProposalResponse.ACCEPTED, now)
        session = ScheduledSession(
            gym_id=request.gym_id,
            coach_id=request.coach_id,
            member_id=request.member_id,
            session_type=request.session_type,
            scheduled_at=request.proposed_at,
            duration=request.duration,
            location=request.location,
            note=request.note,
            status=ScheduledSessionStatus.CONFIRMED,
            original_request_id=request.id,
        )
        db.add(session)
        outcome = "accepted"

    else:
        _stamp(latest, ProposalResponse.COUNTERED, now)
        location = SessionLocation(terms.location)
        proposed_at = as_utc(terms.proposed_at)
        request.proposed_at = proposed_at
        request.duration = terms.duration
        request.location = location
        request.note = terms.note or request.note
        request.status = RequestStatus.COUNTERED
        request.counter_count += 1
        request.last_action_by = party
        request.last_action_at = now
        request.turn = NegotiationTurn.awaiting(party.other)
        request.proposals.insert(
            0,
            SessionProposal(
                sequence=request.counter_count,
                proposed_by=party,
                proposed_at=proposed_at,
                duration=terms.duration,
                location=location,
                note=terms.note or None,
            ),
        )
        outcome = "countered"

    try:
        await db.commit()
    except (StaleDataError, IntegrityError):
        # Another transition on this request committed first.
        await db.rollback()
        logger.info("Concurrent %s on session request %s lost", action, request_id)
        return _failure(ErrorCode.NOT_FOUND)

    logger.info(
        "Session request %s %s by %s (counters=%d)",
        request.id,
        outcome,
        party.value,
        request.counter_count,
    )
    return NegotiationResult(action=outcome, request=request, session=session)


def _close(
    request: SessionRequest, party: Party, status: RequestStatus, now: datetime
) -> None:
    request.status = status
    request.turn = NegotiationTurn.CLOSED
    request.last_action_by = party
    request.last_action_at = now


def _stamp(
    proposal: Optional[SessionProposal], response: ProposalResponse, now: datetime
) -> None:
    if proposal is not None:
        proposal.response = response
        proposal.response_at = now
