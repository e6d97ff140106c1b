"""
Quota Enforcer for NutriCoach AI features

Every AI-backed action goes through `check()` before calling the AI backend.
A granted check is charged immediately and is never refunded, even if the AI
call that follows fails.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from aws_lambda_powertools import Logger

from nutricoach.constants.plan_catalog import UNLIMITED
from nutricoach.models.plan import Period, UnknownFeatureError
from nutricoach.models.profile import SubscriptionError, UserProfile
from nutricoach.models.quota import DenialReason, EntitlementStatus, QuotaDecision, RemainingUses
from nutricoach.services.credit_store import PurchasedCredits
from nutricoach.services.entitlement_service import resolve_entitlement
from nutricoach.services.plan_catalog import (
    all_feature_keys, get_default_period, get_feature_pack, get_feature_text,
)
from nutricoach.services.profile_store import ProfileStore
from nutricoach.services.usage_ledger import UsageLedger

logger = Logger()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuotaEnforcer:
    """Allow/deny and metering of AI-backed features"""

    def __init__(
        self,
        store: Optional[ProfileStore] = None,
        ledger: Optional[UsageLedger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the enforcer

        Args:
            store: Profile Store, the only persistence boundary
            ledger: Usage ledger (timezone for period keys)
            clock: Returns the current instant, UTC now by default
        """
        self.store = store or ProfileStore()
        self.ledger = ledger or UsageLedger()
        self.clock = clock or utc_now

    def check(self, user_id: str, feature_key: str, amount: int = 1) -> QuotaDecision:
        """
        Check whether the user may use a feature and record the usage

        Args:
            user_id: Unique user identifier
            feature_key: Feature being used, e.g. "chatInteractions"
            amount: Uses to consume

        Returns:
            QuotaDecision: allowed, or denied with NOT_AVAILABLE / LIMIT_EXCEEDED
        """
        if amount < 1:
            raise ValueError(f"amount must be a positive integer, got {amount}")

        def decide(profile: UserProfile) -> QuotaDecision:
            now = self.clock()
            try:
                entitlement = resolve_entitlement(profile.subscription, feature_key, now)
            except UnknownFeatureError:
                logger.warning(f"Quota check for unknown feature {feature_key}, treating as not available")
                return QuotaDecision.deny(feature_key, DenialReason.NOT_AVAILABLE, get_feature_text(feature_key))

            if entitlement.status == EntitlementStatus.BLOCKED:
                return QuotaDecision.deny(feature_key, DenialReason.NOT_AVAILABLE, entitlement.display_text)

            if entitlement.status == EntitlementStatus.UNLIMITED:
                return QuotaDecision.allow(feature_key)

            current = self.ledger.peek_count(profile, feature_key, entitlement.period, now)
            purchased = PurchasedCredits(profile).get(feature_key)
            if current + amount > entitlement.limit + purchased:
                return QuotaDecision.deny(feature_key, DenialReason.LIMIT_EXCEEDED, entitlement.display_text)

            self.ledger.increment(profile, feature_key, amount, entitlement.period, now)
            return QuotaDecision.allow(feature_key)

        decision = self.store.update(user_id, decide)

        if decision.allowed:
            logger.info(f"Quota check passed for user {user_id}, feature: {feature_key}", extra={"amount": amount})
        else:
            logger.warning(
                f"Quota denied for user {user_id}, feature: {feature_key}",
                extra={"reason": decision.reason.value, "amount": amount},
            )
        return decision

    def remaining_for(self, profile: UserProfile, feature_key: str, now: datetime) -> RemainingUses:
        """Remaining uses computed from an already loaded profile, read only"""
        try:
            entitlement = resolve_entitlement(profile.subscription, feature_key, now)
        except UnknownFeatureError:
            return RemainingUses(feature_key=feature_key, remaining=0, limit=0, period=Period.DAY, available=False)

        if entitlement.status == EntitlementStatus.BLOCKED:
            return RemainingUses(
                feature_key=feature_key,
                remaining=0,
                limit=0,
                period=entitlement.feature.period if entitlement.feature else get_default_period(feature_key),
                available=False,
            )

        if entitlement.status == EntitlementStatus.UNLIMITED:
            return RemainingUses(
                feature_key=feature_key, remaining=UNLIMITED, limit=UNLIMITED, period=entitlement.period
            )

        used = self.ledger.peek_count(profile, feature_key, entitlement.period, now)
        purchased = PurchasedCredits(profile).get(feature_key)
        return RemainingUses(
            feature_key=feature_key,
            remaining=max(0, entitlement.limit - used + purchased),
            limit=entitlement.limit,
            period=entitlement.period,
            used=used,
            purchased=purchased,
        )

    def get_remaining_uses(self, user_id: str, feature_key: str) -> RemainingUses:
        """Quota badge data for one feature; never writes to the store"""
        profile = self.store.load(user_id)
        return self.remaining_for(profile, feature_key, self.clock())

    def get_usage_summary(self, user_id: str) -> Dict[str, RemainingUses]:
        """Remaining uses for every catalog feature from a single profile load"""
        profile = self.store.load(user_id)
        now = self.clock()
        return {key: self.remaining_for(profile, key, now) for key in all_feature_keys()}

    def purchase_credits(self, user_id: str, feature_key: str, pack_size: int) -> int:
        """
        Add purchased uses for a feature

        No payment validation happens here.

        Returns:
            int: The new purchased balance for the feature
        """
        if pack_size < 1:
            raise ValueError(f"pack_size must be a positive integer, got {pack_size}")

        balance = self.store.update(user_id, lambda profile: PurchasedCredits(profile).add(feature_key, pack_size))
        logger.info(f"Recorded {pack_size} purchased uses of {feature_key} for user {user_id}, balance: {balance}")
        return balance

    def purchase_feature_pack(self, user_id: str, feature_key: str) -> int:
        """Buy the catalog pack for a feature"""
        pack = get_feature_pack(feature_key)
        if pack is None:
            raise SubscriptionError(f"No feature pack is sold for {feature_key}")
        return self.purchase_credits(user_id, feature_key, pack.pack_size)
