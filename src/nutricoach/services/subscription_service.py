"""
Subscription Service for NutriCoach

Handles profile registration with the free trial, plan changes and the
subscription summary shown on the account page.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from aws_lambda_powertools import Logger

from nutricoach.constants.plan_catalog import TRIAL_DAYS
from nutricoach.models.plan import BillingCycle, SubscriptionTier
from nutricoach.models.profile import (
    ProfileAlreadyExistsError, ProfileNotFoundError, SubscriptionError, SubscriptionState, UserProfile,
)
from nutricoach.services.entitlement_service import (
    effective_tier, is_trial_active, is_trial_expired, trial_days_remaining,
)
from nutricoach.services.plan_catalog import all_feature_keys, get_tier
from nutricoach.services.profile_store import ProfileStore
from nutricoach.services.quota_service import QuotaEnforcer, utc_now
from nutricoach.services.usage_ledger import UsageLedger

logger = Logger()


class SubscriptionService:
    """Service for managing user subscriptions"""

    def __init__(
        self,
        store: Optional[ProfileStore] = None,
        ledger: Optional[UsageLedger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store or ProfileStore()
        self.ledger = ledger or UsageLedger()
        self.clock = clock or utc_now

    def register_profile(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> UserProfile:
        """
        Create a new profile starting a Pro-equivalent trial

        Args:
            user_id: Unique user identifier
            email: User email
            name: Display name

        Returns:
            UserProfile: Created profile

        Raises:
            ProfileAlreadyExistsError: If the user already has a profile
        """
        now = self.clock()
        profile = UserProfile(
            user_id=user_id,
            email=email,
            name=name,
            subscription=SubscriptionState(trial_end_date=now + timedelta(days=TRIAL_DAYS)),
            created_at=now,
            updated_at=now,
        )
        self.ledger.roll_over_all(profile, now)
        return self.store.create(profile)

    def get_or_register_profile(self, user_id: str, email: Optional[str] = None, name: Optional[str] = None) -> UserProfile:
        """
        Get existing profile or register a new one
        """
        try:
            return self.store.load(user_id)
        except ProfileNotFoundError:
            logger.info(f"No profile for user {user_id}, registering with a trial")

        try:
            return self.register_profile(user_id, email, name)
        except ProfileAlreadyExistsError:
            logger.info(f"Profile registered concurrently for user {user_id}, keeping it")
            return self.store.load(user_id)

    def subscribe(self, user_id: str, plan: SubscriptionTier, billing_cycle: BillingCycle) -> UserProfile:
        """Start a paid subscription (payment is handled elsewhere)"""
        get_tier(plan)

        def apply(profile: UserProfile) -> UserProfile:
            profile.subscription.is_subscribed = True
            profile.subscription.current_plan = plan
            profile.subscription.billing_cycle = billing_cycle
            return profile

        profile = self.store.update(user_id, apply)
        logger.info(f"User {user_id} subscribed to {plan.value} ({billing_cycle.value})")
        return profile

    def change_plan(self, user_id: str, new_plan: SubscriptionTier) -> str:
        """
        Move a subscriber to another tier

        Returns:
            str: "upgrade", "downgrade" or "unchanged"

        Raises:
            SubscriptionError: If the user is not subscribed
        """
        get_tier(new_plan)

        def apply(profile: UserProfile) -> str:
            subscription = profile.subscription
            if not subscription.is_subscribed or subscription.current_plan is None:
                raise SubscriptionError(f"User {user_id} has no active subscription to change")

            current = subscription.current_plan
            subscription.current_plan = new_plan
            if new_plan > current:
                return "upgrade"
            if new_plan < current:
                return "downgrade"
            return "unchanged"

        direction = self.store.update(user_id, apply)
        logger.info(f"Changed plan for user {user_id} to {new_plan.value}: {direction}")
        return direction

    def cancel_subscription(self, user_id: str) -> UserProfile:
        """Cancel the subscription; usage records and purchased uses are kept"""

        def apply(profile: UserProfile) -> UserProfile:
            profile.subscription.is_subscribed = False
            profile.subscription.current_plan = None
            profile.subscription.billing_cycle = None
            return profile

        profile = self.store.update(user_id, apply)
        logger.info(f"Canceled subscription for user {user_id}")
        return profile

    @staticmethod
    def _subscription_price(subscription: SubscriptionState) -> Optional[float]:
        """Price charged per billing cycle, None while not subscribed"""
        if not subscription.is_subscribed or subscription.current_plan is None:
            return None
        cycle = subscription.billing_cycle or BillingCycle.MONTHLY
        return get_tier(subscription.current_plan).price.for_cycle(cycle)

    def get_subscription_summary(self, user_id: str) -> Dict[str, Any]:
        """
        Get subscription information and usage for the account page

        Args:
            user_id: Unique user identifier

        Returns:
            Dict with subscription state, trial info and per-feature usage
        """
        profile = self.store.load(user_id)
        now = self.clock()
        subscription = profile.subscription
        enforcer = QuotaEnforcer(store=self.store, ledger=self.ledger, clock=lambda: now)

        return {
            'user_id': profile.user_id,
            'effective_tier': effective_tier(subscription, now).value,
            'is_subscribed': subscription.is_subscribed,
            'current_plan': subscription.current_plan.value if subscription.current_plan else None,
            'billing_cycle': subscription.billing_cycle.value if subscription.billing_cycle else None,
            'price': self._subscription_price(subscription),
            'trial': {
                'active': is_trial_active(subscription, now),
                'expired': is_trial_expired(subscription, now),
                'end_date': subscription.trial_end_date.isoformat() if subscription.trial_end_date else None,
                'days_remaining': trial_days_remaining(subscription, now),
            },
            'usage': {
                key: enforcer.remaining_for(profile, key, now).model_dump(mode="json")
                for key in all_feature_keys()
            },
            'purchased_uses': dict(profile.purchased_uses),
        }
