"""
Usage ledger with lazy period rollover.

Daily counts are keyed by calendar date, weekly counts by the Monday that
starts the ISO week. A record whose key no longer matches the current period
is replaced by an empty one before it is read or incremented.
"""

import os
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from aws_lambda_powertools import Logger

from nutricoach.models.plan import Period
from nutricoach.models.profile import DailyUsageRecord, UsageRecord, UserProfile, WeeklyUsageRecord

logger = Logger()


def week_start(day: date) -> date:
    """Monday on or before the given day (a Sunday maps to six days earlier)."""
    return day - timedelta(days=day.weekday())


class UsageLedger:
    """Per-period usage counters stored on the user profile"""

    def __init__(self, timezone_name: Optional[str] = None):
        self.timezone_name = timezone_name or os.environ.get("USAGE_TIMEZONE", "UTC")
        self.tz = ZoneInfo(self.timezone_name)

    def local_date(self, now: datetime) -> date:
        """Calendar day of `now` in the ledger timezone (naive datetimes are UTC)"""
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz).date()

    def period_key_for(self, now: datetime, period: Period) -> str:
        today = self.local_date(now)
        if period == Period.WEEK:
            return week_start(today).isoformat()
        return today.isoformat()

    def fresh_record(self, period: Period, now: datetime) -> UsageRecord:
        if period == Period.WEEK:
            return WeeklyUsageRecord(week_start_date=self.period_key_for(now, period))
        return DailyUsageRecord(date=self.period_key_for(now, period))

    def current_record(self, profile: UserProfile, period: Period, now: datetime) -> UsageRecord:
        """
        Record valid for the current period, without touching the profile

        Returns the stored record when its key matches, otherwise a new empty
        record stamped with the current key.
        """
        if self.stored_key(profile, period) == self.period_key_for(now, period):
            return profile.weekly_usage if period == Period.WEEK else profile.daily_usage
        return self.fresh_record(period, now)

    @staticmethod
    def stored_key(profile: UserProfile, period: Period) -> str:
        """Period key the profile's stored record was stamped with ("" if never used)"""
        if period == Period.WEEK:
            return profile.weekly_usage.week_start_date
        return profile.daily_usage.date

    def roll_over(self, profile: UserProfile, period: Period, now: datetime) -> UsageRecord:
        """Replace a stale record on the profile and return the current one."""
        previous_key = self.stored_key(profile, period)
        current_key = self.period_key_for(now, period)
        if previous_key == current_key:
            return self.current_record(profile, period, now)

        record = self.fresh_record(period, now)
        if period == Period.WEEK:
            profile.weekly_usage = record
        else:
            profile.daily_usage = record
        logger.debug(
            f"{period.value.capitalize()} usage rolled over for user {profile.user_id}: "
            f"{previous_key or '-'} -> {current_key}"
        )
        return record

    def roll_over_all(self, profile: UserProfile, now: datetime) -> None:
        self.roll_over(profile, Period.DAY, now)
        self.roll_over(profile, Period.WEEK, now)

    def peek_count(self, profile: UserProfile, feature_key: str, period: Period, now: datetime) -> int:
        """Rollover-aware count that leaves the profile as it is"""
        return self.current_record(profile, period, now).count(feature_key)

    def get_current_count(self, profile: UserProfile, feature_key: str, period: Period, now: datetime) -> int:
        """Roll the record over if stale, then return the feature's count (0 when absent)"""
        return self.roll_over(profile, period, now).count(feature_key)

    def increment(
        self, profile: UserProfile, feature_key: str, amount: int, period: Period, now: datetime
    ) -> int:
        """
        Add `amount` to the feature's count for the current period

        The caller persists the profile; the store's conditional write makes the
        read-modify-write atomic.

        Returns:
            int: The new count
        """
        if amount < 1:
            raise ValueError(f"amount must be a positive integer, got {amount}")
        record = self.roll_over(profile, period, now)
        record.counts[feature_key] = record.count(feature_key) + amount
        return record.counts[feature_key]
