from datetime import datetime, timedelta, timezone

import pytest

from nutricoach.models.plan import SubscriptionTier, UnknownFeatureError
from nutricoach.models.profile import SubscriptionState
from nutricoach.models.quota import EntitlementStatus
from nutricoach.services.entitlement_service import (
    effective_tier, is_trial_active, is_trial_expired, resolve_entitlement, trial_days_remaining,
)

NOW = datetime(2024, 1, 3, 12, 0, tzinfo=timezone.utc)


def test_no_trial_no_subscription_is_basic():
    subscription = SubscriptionState()
    assert effective_tier(subscription, NOW) == SubscriptionTier.BASIC
    assert is_trial_expired(subscription, NOW)


def test_trial_resolves_to_pro_until_it_ends():
    subscription = SubscriptionState(trial_end_date=NOW + timedelta(days=1))
    assert subscription.current_plan is None
    assert effective_tier(subscription, NOW) == SubscriptionTier.PRO
    assert resolve_entitlement(subscription, "chatInteractions", NOW).limit == 50

    later = NOW + timedelta(days=2)
    assert effective_tier(subscription, later) == SubscriptionTier.BASIC
    assert resolve_entitlement(subscription, "chatInteractions", later).limit == 10


def test_trial_end_is_exclusive():
    subscription = SubscriptionState(trial_end_date=NOW)
    assert not is_trial_active(subscription, NOW)


def test_subscription_plan_wins_over_trial():
    subscription = SubscriptionState(
        is_subscribed=True,
        current_plan=SubscriptionTier.PREMIUM,
        trial_end_date=NOW + timedelta(days=3),
    )
    assert not is_trial_active(subscription, NOW)
    assert not is_trial_expired(subscription, NOW)
    assert effective_tier(subscription, NOW) == SubscriptionTier.PREMIUM


def test_naive_trial_end_date_is_utc():
    subscription = SubscriptionState(trial_end_date="2024-01-05T00:00:00")
    assert subscription.trial_end_date.tzinfo is not None
    assert is_trial_active(subscription, NOW)


def test_trial_days_remaining_rounds_up():
    subscription = SubscriptionState(trial_end_date=NOW + timedelta(days=6, hours=1))
    assert trial_days_remaining(subscription, NOW) == 7
    assert trial_days_remaining(SubscriptionState(), NOW) == 0


def test_resolve_blocked_feature():
    entitlement = resolve_entitlement(SubscriptionState(), "imageGen", NOW)
    assert entitlement.status == EntitlementStatus.BLOCKED
    assert entitlement.limit == 0
    assert entitlement.display_text == "Geração de imagens de receitas"


def test_resolve_unlimited_feature():
    subscription = SubscriptionState(is_subscribed=True, current_plan="premium")
    entitlement = resolve_entitlement(subscription, "recipeSearches", NOW)
    assert entitlement.status == EntitlementStatus.UNLIMITED


def test_resolve_metered_feature():
    entitlement = resolve_entitlement(SubscriptionState(), "weeklyPlanGenerations", NOW)
    assert entitlement.status == EntitlementStatus.METERED
    assert entitlement.limit == 1
    assert entitlement.period.value == "week"
    assert entitlement.is_trial is False


def test_resolve_unknown_feature():
    with pytest.raises(UnknownFeatureError):
        resolve_entitlement(SubscriptionState(), "teleport", NOW)


def test_subscribed_without_plan_is_rejected():
    with pytest.raises(ValueError):
        SubscriptionState(is_subscribed=True)
