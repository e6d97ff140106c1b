from datetime import datetime, timezone
from decimal import Decimal
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, Optional

from nutricoach.models.plan import BillingCycle, SubscriptionTier


class ProfileStoreError(Exception):
    """Base exception for profile persistence failures"""

    pass


class ProfileNotFoundError(ProfileStoreError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No profile found for user {user_id}")


class ProfileAlreadyExistsError(ProfileStoreError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Profile already exists for user {user_id}")


class ProfileConflictError(ProfileStoreError):
    """The stored profile changed between load and save"""

    def __init__(self, user_id: str, expected_version: int):
        self.user_id = user_id
        self.expected_version = expected_version
        super().__init__(
            f"Profile for user {user_id} was modified concurrently (expected version {expected_version})"
        )


class SubscriptionError(Exception):
    """Invalid subscription or purchase operation"""

    pass


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _int_counts(counts: Dict[str, Any]) -> Dict[str, int]:
    # DynamoDB hands numbers back as Decimal
    return {key: int(value) for key, value in (counts or {}).items()}


class SubscriptionState(BaseModel):
    """Subscription part of the user profile"""
    is_subscribed: bool = Field(default=False)
    current_plan: Optional[SubscriptionTier] = Field(default=None)
    billing_cycle: Optional[BillingCycle] = Field(default=None)
    trial_end_date: Optional[datetime] = Field(
        default=None, description="While now < trial_end_date and not subscribed, Pro limits apply"
    )

    @field_validator("trial_end_date", mode="before")
    @classmethod
    def parse_trial_end_date(cls, v):
        """Accept ISO strings, empty strings and naive datetimes (assumed UTC)"""
        if v in ("", None):
            return None
        if isinstance(v, str):
            v = datetime.fromisoformat(v.replace("Z", "+00:00"))
        return _as_utc(v)

    @model_validator(mode="after")
    def check_plan_when_subscribed(self):
        if self.is_subscribed and self.current_plan is None:
            raise ValueError("current_plan is required when is_subscribed is true")
        return self


class UsageRecord(BaseModel):
    """Counts per feature key for one period"""
    counts: Dict[str, int] = Field(default_factory=dict)

    @field_validator("counts", mode="before")
    @classmethod
    def coerce_counts(cls, v):
        return _int_counts(v)

    def count(self, feature_key: str) -> int:
        return self.counts.get(feature_key, 0)


class DailyUsageRecord(UsageRecord):
    date: str = Field(default="", description="YYYY-MM-DD of the day the counts apply to")


class WeeklyUsageRecord(UsageRecord):
    week_start_date: str = Field(default="", description="YYYY-MM-DD of the Monday starting the week")


class UserProfile(BaseModel):
    """Persisted state the quota engine reads and writes for one user"""
    user_id: str = Field(description="Unique user identifier")
    email: Optional[str] = Field(default=None)
    name: Optional[str] = Field(default=None)

    subscription: SubscriptionState = Field(default_factory=SubscriptionState)
    daily_usage: DailyUsageRecord = Field(default_factory=DailyUsageRecord)
    weekly_usage: WeeklyUsageRecord = Field(default_factory=WeeklyUsageRecord)
    purchased_uses: Dict[str, int] = Field(
        default_factory=dict, description="Extra uses bought per feature key, never reset"
    )

    version: int = Field(default=0, description="Optimistic concurrency counter")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("purchased_uses", mode="before")
    @classmethod
    def coerce_purchased_uses(cls, v):
        return _int_counts(v)

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        return _as_utc(v)

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format."""
        subscription = self.subscription
        return {
            "PK": f"USER#{self.user_id}",
            "SK": "PROFILE",
            "user_id": self.user_id,
            "email": self.email,
            "name": self.name,
            "is_subscribed": subscription.is_subscribed,
            "current_plan": subscription.current_plan.value if subscription.current_plan else None,
            "billing_cycle": subscription.billing_cycle.value if subscription.billing_cycle else None,
            "trial_end_date": subscription.trial_end_date.isoformat() if subscription.trial_end_date else None,
            "daily_usage": {
                "date": self.daily_usage.date,
                "counts": dict(self.daily_usage.counts),
            },
            "weekly_usage": {
                "week_start_date": self.weekly_usage.week_start_date,
                "counts": dict(self.weekly_usage.counts),
            },
            "purchased_uses": dict(self.purchased_uses),
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dynamodb_item(cls, item: Dict[str, Any]) -> "UserProfile":
        """Create instance from DynamoDB item."""
        daily = item.get("daily_usage") or {}
        weekly = item.get("weekly_usage") or {}
        return cls(
            user_id=item["user_id"],
            email=item.get("email"),
            name=item.get("name"),
            subscription=SubscriptionState(
                is_subscribed=bool(item.get("is_subscribed", False)),
                current_plan=item.get("current_plan"),
                billing_cycle=item.get("billing_cycle"),
                trial_end_date=item.get("trial_end_date"),
            ),
            daily_usage=DailyUsageRecord(date=daily.get("date", ""), counts=daily.get("counts", {})),
            weekly_usage=WeeklyUsageRecord(
                week_start_date=weekly.get("week_start_date", ""), counts=weekly.get("counts", {})
            ),
            purchased_uses=item.get("purchased_uses", {}),
            version=int(item.get("version", Decimal(0))),
            created_at=datetime.fromisoformat(item["created_at"]),
            updated_at=datetime.fromisoformat(item["updated_at"]),
        )
