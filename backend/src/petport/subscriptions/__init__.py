"""Subscriber lifecycle: checkout verification, status polling and grace periods."""

from petport.subscriptions.models import (
    BASE_PET_SLOTS,
    PlanInterval,
    Subscriber,
    SubscriptionSnapshot,
    SubscriptionStatus,
)
from petport.subscriptions.service import (
    CHECKOUT_TIER_THRESHOLDS,
    STATUS_TIER_THRESHOLDS,
    SubscriptionService,
    classify_tier,
    count_additional_pets,
    subscription_service,
)

__all__ = [
    "BASE_PET_SLOTS",
    "PlanInterval",
    "Subscriber",
    "SubscriptionSnapshot",
    "SubscriptionStatus",
    "CHECKOUT_TIER_THRESHOLDS",
    "STATUS_TIER_THRESHOLDS",
    "SubscriptionService",
    "classify_tier",
    "count_additional_pets",
    "subscription_service",
]
