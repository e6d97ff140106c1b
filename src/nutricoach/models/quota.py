from enum import Enum
from pydantic import BaseModel, Field, computed_field
from typing import Optional

from nutricoach.constants.plan_catalog import UNLIMITED
from nutricoach.models.plan import FeatureDescriptor, Period, SubscriptionTier


class DenialReason(str, Enum):
    """Why a quota check was refused"""
    NOT_AVAILABLE = "NOT_AVAILABLE"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"


class EntitlementStatus(str, Enum):
    BLOCKED = "blocked"
    UNLIMITED = "unlimited"
    METERED = "metered"


class ResolvedEntitlement(BaseModel):
    """Outcome of resolving a feature against the user's effective tier"""
    feature_key: str
    effective_tier: SubscriptionTier
    is_trial: bool = False
    status: EntitlementStatus
    feature: Optional[FeatureDescriptor] = None
    display_text: str = ""

    @property
    def limit(self) -> int:
        if self.status == EntitlementStatus.BLOCKED:
            return 0
        return self.feature.limit

    @property
    def period(self) -> Period:
        return self.feature.period if self.feature else Period.DAY


class QuotaDecision(BaseModel):
    """Result of QuotaEnforcer.check"""
    allowed: bool
    feature_key: str
    reason: Optional[DenialReason] = Field(default=None)
    feature_display_text: Optional[str] = Field(default=None)

    @classmethod
    def allow(cls, feature_key: str) -> "QuotaDecision":
        return cls(allowed=True, feature_key=feature_key)

    @classmethod
    def deny(cls, feature_key: str, reason: DenialReason, display_text: str) -> "QuotaDecision":
        return cls(
            allowed=False,
            feature_key=feature_key,
            reason=reason,
            feature_display_text=display_text,
        )


class RemainingUses(BaseModel):
    """Quota badge data for one feature, -1 meaning unlimited"""
    feature_key: str
    remaining: int
    limit: int
    period: Period
    available: bool = True
    used: int = 0
    purchased: int = 0

    @computed_field
    @property
    def unlimited(self) -> bool:
        return self.limit == UNLIMITED
