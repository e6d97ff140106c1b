"""Purchased credit balances kept on the user profile."""

from nutricoach.models.profile import UserProfile


class PurchasedCredits:
    """À la carte uses bought per feature. Balances only grow, nothing expires."""

    def __init__(self, profile: UserProfile):
        self.profile = profile

    def get(self, feature_key: str) -> int:
        return self.profile.purchased_uses.get(feature_key, 0)

    def add(self, feature_key: str, amount: int) -> int:
        if amount < 1:
            raise ValueError(f"amount must be a positive integer, got {amount}")
        self.profile.purchased_uses[feature_key] = self.get(feature_key) + amount
        return self.profile.purchased_uses[feature_key]
