"""Gym subscription state read by the feature gate."""

import enum
import uuid
from datetime import datetime

from libs.billing.tiers import GymTier
from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.types import UtcDateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

_enum_values = lambda enum_cls: [member.value for member in enum_cls]


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    GRACE = "grace"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"


class Gym(Base):
    """A tenant. Billing owns these rows; this side only reads them."""

    __tablename__ = "gyms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    subscription_tier: Mapped[GymTier] = mapped_column(
        SAEnum(
            GymTier,
            name="gym_tier_enum",
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=GymTier.STARTER,
    )
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        SAEnum(
            SubscriptionStatus,
            name="gym_subscription_status_enum",
            values_callable=_enum_values,
            validate_strings=True,
        ),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(UtcDateTime(), default=utc_now)

    def __repr__(self):
        return f"<Gym {self.name} ({self.subscription_tier.value})>"
