"""Subscription plan catalog."""

from __future__ import annotations

from enum import Enum

FREE_TIER = "free"


class SubscriptionPlan(str, Enum):
    """Purchasable plans, each mapping to a store product and an image quota."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def product_id(self) -> str:
        return _PRODUCT_IDS[self]

    @property
    def image_quota(self) -> int:
        return _IMAGE_QUOTAS[self]

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_product_id(cls, product_id: str) -> SubscriptionPlan:
        """Resolve a plan from its store product identifier.

        Raises:
            ValueError: If no plan uses ``product_id``.
        """
        for plan, known_id in _PRODUCT_IDS.items():
            if known_id == product_id:
                return plan
        raise ValueError(f"Unknown product id: {product_id}")


_PRODUCT_IDS: dict[SubscriptionPlan, str] = {
    SubscriptionPlan.WEEKLY: "com.theswiftvision.aiitalianbrainrotgenerator.weekly",
    SubscriptionPlan.MONTHLY: "com.theswiftvision.aiitalianbrainrotgenerator.Monthly",
}

_IMAGE_QUOTAS: dict[SubscriptionPlan, int] = {
    SubscriptionPlan.WEEKLY: 50,
    SubscriptionPlan.MONTHLY: 160,
}
