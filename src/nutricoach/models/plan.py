from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import Dict, Optional

from nutricoach.constants.plan_catalog import UNLIMITED


class UnknownTierError(KeyError):
    """Raised when a tier key is not part of the plan catalog"""

    def __init__(self, tier_key: str):
        self.tier_key = tier_key
        super().__init__(f"Unknown plan tier: {tier_key}")


class UnknownFeatureError(KeyError):
    """Raised when a feature key is not defined by any tier"""

    def __init__(self, feature_key: str):
        self.feature_key = feature_key
        super().__init__(f"Unknown feature: {feature_key}")


class SubscriptionTier(str, Enum):
    """Subscription tier enumeration, declared from lowest to highest"""
    BASIC = "basic"
    PRO = "pro"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return list(SubscriptionTier).index(self)

    def __lt__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank >= other.rank


class BillingCycle(str, Enum):
    """Billing cycle enumeration"""
    MONTHLY = "monthly"
    ANNUAL = "annual"


class Period(str, Enum):
    """Rollover cadence of a feature quota"""
    DAY = "day"
    WEEK = "week"


class FeatureDescriptor(BaseModel):
    """Limit of one meterable feature inside a tier"""
    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Feature key, e.g. chatInteractions")
    display_text: str = Field(default="", description="Human label used for upsell messages")
    limit: int = Field(ge=UNLIMITED, description="Uses allowed per period, -1 for unlimited")
    period: Period = Field(default=Period.DAY)
    available: bool = Field(default=True, description="Whether the tier grants the feature at all")

    @computed_field
    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED


class PlanPrice(BaseModel):
    model_config = ConfigDict(frozen=True)

    monthly: float
    annual: float

    def for_cycle(self, billing_cycle: BillingCycle) -> float:
        if billing_cycle == BillingCycle.ANNUAL:
            return self.annual
        return self.monthly


class PlanTier(BaseModel):
    """A subscription plan and the features it grants"""
    model_config = ConfigDict(frozen=True)

    key: SubscriptionTier
    name: str
    description: str = ""
    price: PlanPrice
    features: Dict[str, FeatureDescriptor] = Field(default_factory=dict)

    def get_feature(self, feature_key: str) -> Optional[FeatureDescriptor]:
        return self.features.get(feature_key)


class FeaturePack(BaseModel):
    """À la carte pack of extra uses for a single feature"""
    model_config = ConfigDict(frozen=True)

    feature_key: str
    pack_size: int = Field(ge=1)
    price: float = Field(ge=0)
