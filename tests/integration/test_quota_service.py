from datetime import timedelta

import pytest
from moto import mock_aws

from nutricoach.constants.plan_catalog import UNLIMITED
from nutricoach.models.plan import SubscriptionTier
from nutricoach.models.profile import (
    DailyUsageRecord, SubscriptionError, SubscriptionState, UserProfile, WeeklyUsageRecord,
)
from nutricoach.models.quota import DenialReason
from nutricoach.services.profile_store import ProfileStore
from nutricoach.services.quota_service import QuotaEnforcer
from tests.fixtures.ddb import FIXED_NOW, MutableClock, create_profiles_table, fixed_clock


def create_profile(store: ProfileStore, user_id: str = "u1", **fields) -> UserProfile:
    return store.create(UserProfile(user_id=user_id, **fields))


def premium() -> SubscriptionState:
    return SubscriptionState(is_subscribed=True, current_plan=SubscriptionTier.PREMIUM)


@mock_aws
def test_stale_daily_record_is_zeroed_on_next_check():
    create_profiles_table()
    store = ProfileStore()
    create_profile(
        store,
        daily_usage=DailyUsageRecord(date="2024-01-02", counts={"chatInteractions": 10, "itemSwaps": 3}),
    )
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    assert enforcer.get_remaining_uses("u1", "itemSwaps").remaining == 3
    assert enforcer.check("u1", "chatInteractions").allowed

    stored = store.load("u1")
    assert stored.daily_usage.date == "2024-01-03"
    assert stored.daily_usage.counts == {"chatInteractions": 1}


@mock_aws
def test_weekly_record_queried_on_sunday_rolls_to_this_monday():
    create_profiles_table()
    store = ProfileStore()
    create_profile(
        store, weekly_usage=WeeklyUsageRecord(week_start_date="2023-12-25", counts={"weeklyPlanGenerations": 1})
    )
    sunday = FIXED_NOW + timedelta(days=4)
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock(sunday))

    assert enforcer.check("u1", "weeklyPlanGenerations").allowed
    assert store.load("u1").weekly_usage.week_start_date == "2024-01-01"


@mock_aws
def test_limit_calls_allowed_then_denied():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store)
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    decisions = [enforcer.check("u1", "chatInteractions") for _ in range(11)]

    assert all(decision.allowed for decision in decisions[:10])
    assert decisions[10].allowed is False
    assert decisions[10].reason == DenialReason.LIMIT_EXCEEDED
    assert store.load("u1").daily_usage.count("chatInteractions") == 10


@mock_aws
def test_purchased_credits_extend_the_limit():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store)
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())
    enforcer.purchase_credits("u1", "mealAnalysesText", 2)

    results = [enforcer.check("u1", "mealAnalysesText").allowed for _ in range(6)]

    assert results == [True, True, True, True, True, False]
    # purchased uses are never consumed
    assert store.load("u1").purchased_uses == {"mealAnalysesText": 2}


@mock_aws
def test_unlimited_feature_is_not_tracked():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store, subscription=premium())
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    assert all(enforcer.check("u1", "chatInteractions").allowed for _ in range(1000))

    stored = store.load("u1")
    assert "chatInteractions" not in stored.daily_usage.counts
    assert stored.version == 1

    remaining = enforcer.get_remaining_uses("u1", "chatInteractions")
    assert remaining.remaining == UNLIMITED
    assert remaining.unlimited


@mock_aws
def test_trial_grants_pro_limits_until_it_expires():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store, subscription=SubscriptionState(trial_end_date=FIXED_NOW + timedelta(hours=1)))
    clock = MutableClock()
    enforcer = QuotaEnforcer(store=store, clock=clock)

    assert enforcer.get_remaining_uses("u1", "imageGen").limit == 10
    assert enforcer.check("u1", "imageGen").allowed

    clock.now = FIXED_NOW + timedelta(hours=2)
    decision = enforcer.check("u1", "imageGen")
    assert decision.allowed is False
    assert decision.reason == DenialReason.NOT_AVAILABLE
    assert enforcer.get_remaining_uses("u1", "chatInteractions").limit == 10


@mock_aws
def test_meal_image_analysis_resets_the_next_day():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store)
    clock = MutableClock()
    enforcer = QuotaEnforcer(store=store, clock=clock)

    assert enforcer.check("u1", "mealAnalysesImage").allowed
    assert store.load("u1").daily_usage.count("mealAnalysesImage") == 1

    denied = enforcer.check("u1", "mealAnalysesImage")
    assert denied.allowed is False
    assert denied.reason == DenialReason.LIMIT_EXCEEDED
    assert denied.feature_display_text == "Análise de imagem da refeição"

    clock.now = FIXED_NOW + timedelta(days=1)
    assert enforcer.check("u1", "mealAnalysesImage").allowed
    stored = store.load("u1")
    assert stored.daily_usage.date == "2024-01-04"
    assert stored.daily_usage.count("mealAnalysesImage") == 1


@mock_aws
def test_weekly_plan_generation_resets_the_next_monday():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store)
    monday = FIXED_NOW - timedelta(days=2)
    clock = MutableClock(monday)
    enforcer = QuotaEnforcer(store=store, clock=clock)

    assert enforcer.check("u1", "weeklyPlanGenerations").allowed
    clock.now = FIXED_NOW
    assert enforcer.check("u1", "weeklyPlanGenerations").allowed is False
    clock.now = monday + timedelta(days=7)
    assert enforcer.check("u1", "weeklyPlanGenerations").allowed
    assert store.load("u1").weekly_usage.week_start_date == "2024-01-08"


@mock_aws
def test_denied_check_does_not_write():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store, daily_usage=DailyUsageRecord(date="2024-01-02", counts={"itemSwaps": 3}))
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    assert enforcer.check("u1", "imageGen").reason == DenialReason.NOT_AVAILABLE

    stored = store.load("u1")
    assert stored.version == 1
    assert stored.daily_usage.date == "2024-01-02"


@mock_aws
def test_unknown_feature_is_not_available():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store)
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    decision = enforcer.check("u1", "teleport")
    assert decision.allowed is False
    assert decision.reason == DenialReason.NOT_AVAILABLE

    remaining = enforcer.get_remaining_uses("u1", "teleport")
    assert (remaining.remaining, remaining.limit, remaining.available) == (0, 0, False)


@mock_aws
def test_amount_larger_than_what_is_left_is_denied():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store)
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    assert enforcer.check("u1", "itemSwaps", amount=2).allowed
    assert enforcer.check("u1", "itemSwaps", amount=2).allowed is False
    assert enforcer.check("u1", "itemSwaps", amount=1).allowed
    with pytest.raises(ValueError):
        enforcer.check("u1", "itemSwaps", amount=0)


@mock_aws
def test_blocked_feature_reports_nothing_remaining():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store)
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    remaining = enforcer.get_remaining_uses("u1", "imageGen")
    assert (remaining.remaining, remaining.limit, remaining.available) == (0, 0, False)
    assert remaining.unlimited is False


class InterleavedStore(ProfileStore):
    """Runs a competing check between this store's first load and its save."""

    def __init__(self, competing_check, **kwargs):
        super().__init__(**kwargs)
        self.competing_check = competing_check

    def load(self, user_id):
        profile = super().load(user_id)
        if self.competing_check:
            competing_check, self.competing_check = self.competing_check, None
            competing_check()
        return profile


@mock_aws
def test_racing_checks_cannot_both_take_the_last_slot():
    create_profiles_table()
    plain = ProfileStore()
    create_profile(plain)
    rival = QuotaEnforcer(store=plain, clock=fixed_clock())
    rival_decisions = []

    store = InterleavedStore(lambda: rival_decisions.append(rival.check("u1", "mealAnalysesImage")))
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    decision = enforcer.check("u1", "mealAnalysesImage")

    assert rival_decisions[0].allowed
    assert decision.allowed is False
    assert decision.reason == DenialReason.LIMIT_EXCEEDED
    assert plain.load("u1").daily_usage.count("mealAnalysesImage") == 1


@mock_aws
def test_usage_summary_covers_every_feature():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store, daily_usage=DailyUsageRecord(date="2024-01-03", counts={"chatInteractions": 4}))
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    summary = enforcer.get_usage_summary("u1")

    assert len(summary) == 13
    assert summary["chatInteractions"].remaining == 6
    assert summary["chatInteractions"].used == 4
    assert summary["imageGen"].available is False
    assert store.load("u1").version == 1


@mock_aws
def test_purchase_feature_pack():
    create_profiles_table()
    store = ProfileStore()
    create_profile(store)
    enforcer = QuotaEnforcer(store=store, clock=fixed_clock())

    assert enforcer.purchase_feature_pack("u1", "chatInteractions") == 20
    assert enforcer.purchase_feature_pack("u1", "chatInteractions") == 40
    assert enforcer.get_remaining_uses("u1", "chatInteractions").remaining == 50

    with pytest.raises(SubscriptionError):
        enforcer.purchase_feature_pack("u1", "shoppingLists")
    with pytest.raises(ValueError):
        enforcer.purchase_credits("u1", "chatInteractions", 0)
