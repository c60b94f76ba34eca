"""Gym subscription tier configuration.

Three tiers are available for gyms:
- Starter: basic features, limited capacity
- Pro: full engagement features (session scheduling, challenges, goals)
- Elite: everything, including custom branding
"""

import enum


class GymTier(str, enum.Enum):
    STARTER = "starter"
    PRO = "pro"
    ELITE = "elite"


class TierFeature(str, enum.Enum):
    SESSION_SCHEDULING = "sessionScheduling"
    CHALLENGES = "challenges"
    COACH_FEATURES = "coachFeatures"
    CUSTOM_BRANDING = "customBranding"


# Ordered lowest to highest.
TIER_ORDER = [GymTier.STARTER, GymTier.PRO, GymTier.ELITE]

TIER_NAMES = {
    GymTier.STARTER: "Starter",
    GymTier.PRO: "Pro",
    GymTier.ELITE: "Elite",
}

TIER_FEATURES: dict[GymTier, frozenset[TierFeature]] = {
    GymTier.STARTER: frozenset(),
    GymTier.PRO: frozenset(
        {
            TierFeature.SESSION_SCHEDULING,
            TierFeature.CHALLENGES,
            TierFeature.COACH_FEATURES,
        }
    ),
    GymTier.ELITE: frozenset(TierFeature),
}


def parse_tier(value) -> GymTier:
    """Unknown or missing tiers fall back to starter."""
    try:
        return GymTier(value)
    except ValueError:
        return GymTier.STARTER


def is_feature_enabled(tier: GymTier, feature: TierFeature) -> bool:
    return feature in TIER_FEATURES[tier]


def required_tier_for(feature: TierFeature) -> GymTier:
    """Return the lowest tier that unlocks a feature."""
    for tier in TIER_ORDER:
        if is_feature_enabled(tier, feature):
            return tier
    return GymTier.ELITE


def tier_name(tier: GymTier) -> str:
    return TIER_NAMES[tier]
