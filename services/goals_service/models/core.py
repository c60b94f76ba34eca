import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import UtcDateTime
from services.goals_service.models.enums import (
    ContributionSource,
    GoalStatus,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# GOAL
# ============================================================================


class Goal(Base):
    """Gym-wide poll that turns into a fundraiser for the winning option."""

    __tablename__ = "goals"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    gym_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[GoalStatus] = mapped_column(
        SAEnum(
            GoalStatus,
            name="goal_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=GoalStatus.DRAFT,
        index=True,
    )
    is_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # === Voting ===
    voting_ends_at: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(), nullable=True
    )
    voting_ended_at: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(), nullable=True
    )
    # Plain reference (no FK): goal_options already points back at goals.
    winning_option_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True
    )

    # === Fundraising (cents) ===
    current_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        UtcDateTime(), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utc_now, onupdate=utc_now
    )

    options: Mapped[list["GoalOption"]] = relationship(
        back_populates="goal",
        order_by="GoalOption.display_order",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("current_amount >= 0", name="ck_goals_current_amount"),
    )

    @property
    def winning_option(self) -> Optional["GoalOption"]:
        for option in self.options:
            if option.id == self.winning_option_id:
                return option
        return None

    def __repr__(self):
        return f"<Goal {self.name} ({self.status.value})>"


class GoalOption(Base):
    """One candidate a member can vote for."""

    __tablename__ = "goal_options"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    goal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    target_amount: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    # Denormalized tally of goal_votes rows pointing here.
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)

    goal: Mapped[Goal] = relationship(back_populates="options")

    __table_args__ = (
        CheckConstraint("vote_count >= 0", name="ck_goal_options_vote_count"),
        CheckConstraint("target_amount > 0", name="ck_goal_options_target_amount"),
    )

    def __repr__(self):
        return f"<GoalOption {self.name}: {self.vote_count} votes>"


# ============================================================================
# VOTES & CONTRIBUTIONS
# ============================================================================


class GoalVote(Base):
    """A member's current ballot. One row per (goal, member), overwritten on change."""

    __tablename__ = "goal_votes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    goal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    member_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    option_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("goal_options.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UtcDateTime(), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint("goal_id", "member_id", name="uq_goal_votes_goal_member"),
    )


class GoalContribution(Base):
    """Ledger entry toward a fundraising goal."""

    __tablename__ = "goal_contributions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    goal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # cents
    source: Mapped[ContributionSource] = mapped_column(
        SAEnum(
            ContributionSource,
            name="contribution_source_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    member_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    member_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_goal_contributions_amount"),
    )
