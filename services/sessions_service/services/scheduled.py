"""Confirmed sessions: cancellation, completion and the per-party overview."""

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from libs.auth.models import Principal
from libs.billing.guards import check_feature_access
from libs.billing.tiers import TierFeature
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.errors import ErrorCode, ServiceResult
from libs.common.logging import get_logger
from services.sessions_service.models import (
    ACTIVE_REQUEST_STATUSES,
    CoachAssignment,
    Party,
    ScheduledSession,
    ScheduledSessionStatus,
    SessionRequest,
)
from services.sessions_service.services.negotiation import party_for
from sqlalchemy import and_, desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

logger = get_logger(__name__)

PAST_LIMIT_MEMBER = 10
PAST_LIMIT_COACH = 20


@dataclass
class SessionResult(ServiceResult):
    session: Optional[ScheduledSession] = None


@dataclass
class SessionsOverview(ServiceResult):
    requests: list[SessionRequest] = field(default_factory=list)
    upcoming: list[ScheduledSession] = field(default_factory=list)
    past: list[ScheduledSession] = field(default_factory=list)
    coach_id: Optional[uuid.UUID] = None
    member_ids: list[uuid.UUID] = field(default_factory=list)


def _owner_column(model, party: Party):
    return model.coach_id if party is Party.COACH else model.member_id


async def _load_confirmed(
    db: AsyncSession, session_id: uuid.UUID, party: Party, principal_id: uuid.UUID
) -> Optional[ScheduledSession]:
    result = await db.execute(
        select(ScheduledSession)
        .where(
            ScheduledSession.id == session_id,
            _owner_column(ScheduledSession, party) == principal_id,
            ScheduledSession.status == ScheduledSessionStatus.CONFIRMED,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def cancel_session(
    db: AsyncSession,
    principal: Principal,
    session_id: uuid.UUID,
    reason: Optional[str],
) -> SessionResult:
    """Cancel a confirmed session on behalf of either participant."""
    party = party_for(principal)
    if party is None:
        return SessionResult(success=False, error=ErrorCode.FORBIDDEN)

    feature = await check_feature_access(
        db, principal.gym_id, TierFeature.SESSION_SCHEDULING
    )
    if not feature.allowed:
        return feature.as_denial(SessionResult)

    reason = (reason or "").strip()
    min_length = get_settings().MIN_CANCELLATION_REASON_LENGTH
    if len(reason) < min_length:
        return SessionResult(
            success=False,
            error=ErrorCode.INVALID_REASON,
            message=f"Cancellation reason must be at least {min_length} characters",
        )

    session = await _load_confirmed(db, session_id, party, principal.id)
    if not session:
        return SessionResult(success=False, error=ErrorCode.NOT_FOUND)

    session.status = ScheduledSessionStatus.CANCELLED
    session.cancelled_at = utc_now()
    session.cancelled_by = party
    session.cancellation_reason = reason

    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        return SessionResult(success=False, error=ErrorCode.NOT_FOUND)

    logger.info("Session %s cancelled by %s", session.id, party.value)
    return SessionResult(session=session)


async def complete_session(
    db: AsyncSession, principal: Principal, session_id: uuid.UUID
) -> SessionResult:
    """Mark a confirmed session completed. Coaches only."""
    if party_for(principal) is not Party.COACH:
        return SessionResult(
            success=False,
            error=ErrorCode.FORBIDDEN,
            message="Only the coach can complete a session",
        )

    feature = await check_feature_access(
        db, principal.gym_id, TierFeature.SESSION_SCHEDULING
    )
    if not feature.allowed:
        return feature.as_denial(SessionResult)

    session = await _load_confirmed(db, session_id, Party.COACH, principal.id)
    if not session:
        return SessionResult(success=False, error=ErrorCode.NOT_FOUND)

    # No guard against completing before scheduled_at; coaches may log early.
    session.status = ScheduledSessionStatus.COMPLETED
    session.completed_at = utc_now()

    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        return SessionResult(success=False, error=ErrorCode.NOT_FOUND)

    logger.info("Session %s completed", session.id)
    return SessionResult(session=session)


async def list_sessions(db: AsyncSession, principal: Principal) -> SessionsOverview:
    """Active negotiations, upcoming and recent sessions for the caller."""
    party = party_for(principal)
    if party is None:
        return SessionsOverview(success=False, error=ErrorCode.FORBIDDEN)

    feature = await check_feature_access(
        db, principal.gym_id, TierFeature.SESSION_SCHEDULING
    )
    if not feature.allowed:
        return feature.as_denial(SessionsOverview)

    now = utc_now()
    window_start = now - timedelta(days=get_settings().PAST_SESSIONS_WINDOW_DAYS)
    owns_request = _owner_column(SessionRequest, party) == principal.id
    owns_session = _owner_column(ScheduledSession, party) == principal.id

    requests = await db.execute(
        select(SessionRequest)
        .where(owns_request, SessionRequest.status.in_(ACTIVE_REQUEST_STATUSES))
        .order_by(desc(SessionRequest.last_action_at))
    )

    upcoming = await db.execute(
        select(ScheduledSession)
        .where(
            owns_session,
            ScheduledSession.status == ScheduledSessionStatus.CONFIRMED,
            ScheduledSession.scheduled_at >= now,
        )
        .order_by(ScheduledSession.scheduled_at)
    )

    past = await db.execute(
        select(ScheduledSession)
        .where(
            owns_session,
            ScheduledSession.scheduled_at >= window_start,
            or_(
                ScheduledSession.status.in_(
                    (
                        ScheduledSessionStatus.COMPLETED,
                        ScheduledSessionStatus.CANCELLED,
                    )
                ),
                and_(
                    ScheduledSession.status == ScheduledSessionStatus.CONFIRMED,
                    ScheduledSession.scheduled_at < now,
                ),
            ),
        )
        .order_by(desc(ScheduledSession.scheduled_at))
        .limit(PAST_LIMIT_COACH if party is Party.COACH else PAST_LIMIT_MEMBER)
    )

    overview = SessionsOverview(
        requests=list(requests.scalars().all()),
        upcoming=list(upcoming.scalars().all()),
        past=list(past.scalars().all()),
    )

    if party is Party.COACH:
        members = await db.execute(
            select(CoachAssignment.member_id).where(
                CoachAssignment.coach_id == principal.id
            )
        )
        overview.member_ids = list(members.scalars().all())
    else:
        coach = await db.execute(
            select(CoachAssignment.coach_id).where(
                CoachAssignment.member_id == principal.id
            )
        )
        overview.coach_id = coach.scalar_one_or_none()

    return overview
