import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import UtcDateTime
from services.sessions_service.models.enums import (
    NegotiationTurn,
    Party,
    ProposalResponse,
    RequestStatus,
    ScheduledSessionStatus,
    SessionLocation,
    SessionType,
    enum_values,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

_ACTIVE_STATUS_CLAUSE = text("status IN ('pending', 'countered')")


def _enum(enum_cls, name: str) -> SAEnum:
    # Persist enum .value strings in DB.
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=enum_values,
        validate_strings=True,
    )


# ============================================================================
# COACH ASSIGNMENT
# ============================================================================


class CoachAssignment(Base):
    """A member's assigned coach. Negotiations only happen inside one."""

    __tablename__ = "coach_assignments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    coach_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, nullable=False, unique=True
    )  # One coach per member
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)

    def __repr__(self):
        return f"<CoachAssignment coach={self.coach_id} member={self.member_id}>"


# ============================================================================
# NEGOTIATION
# ============================================================================


class SessionRequest(Base):
    """An in-flight negotiation between one coach and one member.

    The currently live terms are mirrored from the newest proposal. ``turn``
    names the party allowed to act next; ``version`` guards every transition
    against concurrent writers.
    """

    __tablename__ = "session_requests"
    __table_args__ = (
        # At most one active negotiation per (coach, member) pair.
        Index(
            "uq_session_requests_active_pair",
            "coach_id",
            "member_id",
            unique=True,
            postgresql_where=_ACTIVE_STATUS_CLAUSE,
            sqlite_where=_ACTIVE_STATUS_CLAUSE,
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    coach_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    member_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # === Live terms ===
    session_type: Mapped[SessionType] = mapped_column(
        _enum(SessionType, "session_type_enum"), nullable=False
    )
    proposed_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes
    location: Mapped[SessionLocation] = mapped_column(
        _enum(SessionLocation, "session_location_enum"), nullable=False
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # === Negotiation state ===
    initiated_by: Mapped[Party] = mapped_column(
        _enum(Party, "negotiation_party_enum"), nullable=False
    )
    status: Mapped[RequestStatus] = mapped_column(
        _enum(RequestStatus, "session_request_status_enum"),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    turn: Mapped[NegotiationTurn] = mapped_column(
        _enum(NegotiationTurn, "negotiation_turn_enum"), nullable=False
    )
    counter_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_action_by: Mapped[Optional[Party]] = mapped_column(
        _enum(Party, "negotiation_party_enum"), nullable=True
    )
    last_action_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), nullable=False, default=utc_now
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utc_now, onupdate=utc_now
    )

    # Newest proposal first
    proposals: Mapped[list["SessionProposal"]] = relationship(
        back_populates="session_request",
        order_by="SessionProposal.sequence.desc()",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_active(self) -> bool:
        return self.status in (RequestStatus.PENDING, RequestStatus.COUNTERED)

    @property
    def latest_proposal(self) -> Optional["SessionProposal"]:
        return self.proposals[0] if self.proposals else None

    def __repr__(self):
        return (
            f"<SessionRequest {self.id} {self.status.value} "
            f"coach={self.coach_id} member={self.member_id}>"
        )


class SessionProposal(Base):
    """One entry in a negotiation's append-only history."""

    __tablename__ = "session_proposals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("session_requests.id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    proposed_by: Mapped[Party] = mapped_column(
        _enum(Party, "negotiation_party_enum"), nullable=False
    )
    proposed_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[SessionLocation] = mapped_column(
        _enum(SessionLocation, "session_location_enum"), nullable=False
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    response: Mapped[Optional[ProposalResponse]] = mapped_column(
        _enum(ProposalResponse, "proposal_response_enum"), nullable=True
    )
    response_at: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)

    session_request: Mapped[SessionRequest] = relationship(back_populates="proposals")

    def __repr__(self):
        return f"<SessionProposal #{self.sequence} by {self.proposed_by.value}>"


# ============================================================================
# CONFIRMED SESSIONS
# ============================================================================


class ScheduledSession(Base):
    """A confirmed appointment produced by an accepted negotiation."""

    __tablename__ = "scheduled_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    coach_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    member_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    session_type: Mapped[SessionType] = mapped_column(
        _enum(SessionType, "session_type_enum"), nullable=False
    )
    scheduled_at: Mapped[datetime] = mapped_column(UtcDateTime(), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[SessionLocation] = mapped_column(
        _enum(SessionLocation, "session_location_enum"), nullable=False
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ScheduledSessionStatus] = mapped_column(
        _enum(ScheduledSessionStatus, "scheduled_session_status_enum"),
        nullable=False,
        default=ScheduledSessionStatus.CONFIRMED,
    )
    # Unique: one request can only ever produce one session.
    original_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("session_requests.id"), nullable=True, unique=True
    )

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(), nullable=True
    )
    cancelled_by: Mapped[Optional[Party]] = mapped_column(
        _enum(Party, "negotiation_party_enum"), nullable=True
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utc_now, onupdate=utc_now
    )

    def __repr__(self):
        return f"<ScheduledSession {self.id} {self.status.value} at {self.scheduled_at}>"
