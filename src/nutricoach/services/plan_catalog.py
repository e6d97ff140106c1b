"""
Plan catalog lookups.

Static tier definitions assembled from the catalog constants. Everything else
reads tiers and features through the functions below.
"""

from functools import cache
from typing import Any, Dict, List, Optional

from nutricoach.constants.plan_catalog import (
    BASIC_DESCRIPTION, BASIC_FEATURES, BASIC_PRICE_ANNUAL, BASIC_PRICE_MONTHLY,
    CURRENCY, CURRENCY_SYMBOL, FEATURE_PACKS, FEATURE_TEXTS,
    PREMIUM_DESCRIPTION, PREMIUM_FEATURES, PREMIUM_PRICE_ANNUAL, PREMIUM_PRICE_MONTHLY,
    PRO_DESCRIPTION, PRO_FEATURES, PRO_PRICE_ANNUAL, PRO_PRICE_MONTHLY,
    TRIAL_DAYS,
)
from nutricoach.models.plan import (
    FeatureDescriptor, FeaturePack, Period, PlanPrice, PlanTier,
    SubscriptionTier, UnknownFeatureError, UnknownTierError,
)


def _build_features(limits: Dict[str, tuple]) -> Dict[str, FeatureDescriptor]:
    return {
        key: FeatureDescriptor(
            key=key,
            display_text=FEATURE_TEXTS.get(key, key),
            limit=limit,
            period=Period(period),
            available=available,
        )
        for key, (limit, period, available) in limits.items()
    }


@cache
def get_plans() -> Dict[SubscriptionTier, PlanTier]:
    """Return all tiers keyed by tier, built once per process."""
    return {
        SubscriptionTier.BASIC: PlanTier(
            key=SubscriptionTier.BASIC,
            name="Basic",
            description=BASIC_DESCRIPTION,
            price=PlanPrice(monthly=BASIC_PRICE_MONTHLY, annual=BASIC_PRICE_ANNUAL),
            features=_build_features(BASIC_FEATURES),
        ),
        SubscriptionTier.PRO: PlanTier(
            key=SubscriptionTier.PRO,
            name="Pro",
            description=PRO_DESCRIPTION,
            price=PlanPrice(monthly=PRO_PRICE_MONTHLY, annual=PRO_PRICE_ANNUAL),
            features=_build_features(PRO_FEATURES),
        ),
        SubscriptionTier.PREMIUM: PlanTier(
            key=SubscriptionTier.PREMIUM,
            name="Premium",
            description=PREMIUM_DESCRIPTION,
            price=PlanPrice(monthly=PREMIUM_PRICE_MONTHLY, annual=PREMIUM_PRICE_ANNUAL),
            features=_build_features(PREMIUM_FEATURES),
        ),
    }


def get_tier(tier_key: SubscriptionTier | str) -> PlanTier:
    """
    Get a plan tier by key

    Args:
        tier_key: Tier enum member or its string value ("basic", "pro", "premium")

    Returns:
        PlanTier: The static tier definition

    Raises:
        UnknownTierError: If the key is not part of the catalog
    """
    try:
        tier = SubscriptionTier(tier_key)
    except ValueError as exc:
        raise UnknownTierError(str(tier_key)) from exc
    return get_plans()[tier]


def get_feature(tier_key: SubscriptionTier | str, feature_key: str) -> Optional[FeatureDescriptor]:
    """Get a tier's descriptor for a feature, None when the tier does not define it."""
    return get_tier(tier_key).get_feature(feature_key)


def all_feature_keys() -> List[str]:
    """Every feature key defined by at least one tier, in catalog order."""
    keys: List[str] = []
    for plan in get_plans().values():
        for key in plan.features:
            if key not in keys:
                keys.append(key)
    return keys


def require_known_feature(feature_key: str) -> None:
    if feature_key not in all_feature_keys():
        raise UnknownFeatureError(feature_key)


def get_feature_text(feature_key: str) -> str:
    return FEATURE_TEXTS.get(feature_key, feature_key)


def get_default_period(feature_key: str) -> Period:
    """Period of a feature in the first tier that defines it, DAY if none does."""
    for plan in get_plans().values():
        feature = plan.get_feature(feature_key)
        if feature:
            return feature.period
    return Period.DAY


def get_feature_pack(feature_key: str) -> Optional[FeaturePack]:
    if feature_key not in FEATURE_PACKS:
        return None
    pack_size, price = FEATURE_PACKS[feature_key]
    return FeaturePack(feature_key=feature_key, pack_size=pack_size, price=price)


def get_pricing() -> Dict[str, Any]:
    """
    Get pricing tiers and feature comparison for the plans page
    """
    tiers = []
    for plan in get_plans().values():
        tiers.append({
            'key': plan.key.value,
            'name': plan.name,
            'description': plan.description,
            'price': {
                'monthly': plan.price.monthly,
                'annual': plan.price.annual,
            },
            'currency': CURRENCY,
            'features': {
                key: {
                    'text': feature.display_text,
                    'limit': feature.limit,
                    'period': feature.period.value,
                    'available': feature.available,
                    'unlimited': feature.unlimited,
                }
                for key, feature in plan.features.items()
            },
            'popular': plan.key == SubscriptionTier.PRO,
        })

    packs = {}
    for key in all_feature_keys():
        pack = get_feature_pack(key)
        if pack:
            packs[key] = {'pack_size': pack.pack_size, 'price': pack.price, 'text': get_feature_text(key)}

    return {
        'tiers': tiers,
        'feature_packs': packs,
        'currency': CURRENCY,
        'currency_symbol': CURRENCY_SYMBOL,
        'trial_days': TRIAL_DAYS,
    }
