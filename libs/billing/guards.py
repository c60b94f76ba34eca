"""Feature gating for tiered gym subscriptions."""

import uuid
from dataclasses import dataclass
from typing import Optional

from libs.billing.models import Gym, SubscriptionStatus
from libs.billing.tiers import (
    GymTier,
    TierFeature,
    is_feature_enabled,
    required_tier_for,
    tier_name,
)
from libs.common.errors import ErrorCode, ServiceResult
from libs.common.logging import get_logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

_ALLOWED_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.GRACE)


@dataclass
class FeatureCheckResult:
    allowed: bool
    tier: GymTier
    required_tier: Optional[GymTier] = None
    error: Optional[str] = None

    def as_denial(self, result_cls: type[ServiceResult] = ServiceResult):
        """Express a denied check as a failed engine result."""
        details = {"currentTier": self.tier.value}
        if self.required_tier is not None:
            details["requiredTier"] = self.required_tier.value
        return result_cls(
            success=False,
            error=ErrorCode.TIER_REQUIRED,
            message=self.error,
            details=details,
        )


async def check_feature_access(
    db: AsyncSession, gym_id: uuid.UUID, feature: TierFeature
) -> FeatureCheckResult:
    """Check whether a gym's subscription unlocks a feature."""
    result = await db.execute(select(Gym).where(Gym.id == gym_id))
    gym = result.scalar_one_or_none()

    if not gym:
        return FeatureCheckResult(
            allowed=False, tier=GymTier.STARTER, error="Gym not found"
        )

    if gym.subscription_status not in _ALLOWED_STATUSES:
        return FeatureCheckResult(
            allowed=False,
            tier=gym.subscription_tier,
            error="Subscription is not active",
        )

    if not is_feature_enabled(gym.subscription_tier, feature):
        required = required_tier_for(feature)
        logger.info(
            "Feature %s denied for gym %s on tier %s",
            feature.value,
            gym_id,
            gym.subscription_tier.value,
        )
        return FeatureCheckResult(
            allowed=False,
            tier=gym.subscription_tier,
            required_tier=required,
            error=f"This feature requires the {tier_name(required)} plan",
        )

    return FeatureCheckResult(allowed=True, tier=gym.subscription_tier)


async def is_feature_allowed(
    db: AsyncSession, gym_id: uuid.UUID, feature: TierFeature
) -> bool:
    return (await check_feature_access(db, gym_id, feature)).allowed
