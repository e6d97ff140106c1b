"""
Entitlement resolution.

Single place deciding which tier applies to a user at a given instant and what
that tier grants for a feature. Nothing here is cached: trial expiry and plan
changes can happen between two calls.
"""

import math
from datetime import datetime, timezone

from nutricoach.models.plan import SubscriptionTier
from nutricoach.models.profile import SubscriptionState
from nutricoach.models.quota import EntitlementStatus, ResolvedEntitlement
from nutricoach.services.plan_catalog import get_feature, get_feature_text, require_known_feature


def _aware(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def is_trial_active(subscription: SubscriptionState, now: datetime) -> bool:
    """True while a non-subscribed user is before the trial end date"""
    if subscription.is_subscribed or subscription.trial_end_date is None:
        return False
    return _aware(now) < subscription.trial_end_date


def is_trial_expired(subscription: SubscriptionState, now: datetime) -> bool:
    """True once a non-subscribed user's trial has ended (or never existed)"""
    return not subscription.is_subscribed and not is_trial_active(subscription, now)


def trial_days_remaining(subscription: SubscriptionState, now: datetime) -> int:
    if not is_trial_active(subscription, now):
        return 0
    seconds = (subscription.trial_end_date - _aware(now)).total_seconds()
    return math.ceil(seconds / 86400)


def effective_tier(subscription: SubscriptionState, now: datetime) -> SubscriptionTier:
    """
    Tier whose limits apply right now

    An active trial counts as Pro, a subscription uses its plan, everything
    else falls back to Basic.
    """
    if is_trial_active(subscription, now):
        return SubscriptionTier.PRO
    if subscription.is_subscribed and subscription.current_plan:
        return subscription.current_plan
    return SubscriptionTier.BASIC


def resolve_entitlement(
    subscription: SubscriptionState, feature_key: str, now: datetime
) -> ResolvedEntitlement:
    """
    Resolve a feature for the user's effective tier

    Args:
        subscription: The user's subscription state
        feature_key: Feature being requested
        now: Current instant

    Returns:
        ResolvedEntitlement: BLOCKED, UNLIMITED or METERED with the descriptor

    Raises:
        UnknownFeatureError: If no tier defines the feature key
    """
    require_known_feature(feature_key)

    tier = effective_tier(subscription, now)
    feature = get_feature(tier, feature_key)
    display_text = feature.display_text if feature else get_feature_text(feature_key)

    if feature is None or not feature.available:
        status = EntitlementStatus.BLOCKED
    elif feature.unlimited:
        status = EntitlementStatus.UNLIMITED
    else:
        status = EntitlementStatus.METERED

    return ResolvedEntitlement(
        feature_key=feature_key,
        effective_tier=tier,
        is_trial=is_trial_active(subscription, now),
        status=status,
        feature=feature,
        display_text=display_text,
    )
