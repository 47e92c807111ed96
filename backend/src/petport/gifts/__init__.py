"""Gift memberships: prepaid twelve-month plans redeemable once by code."""

from petport.gifts.models import GiftMembership, GiftStatus, ScheduledGift, ScheduledGiftStatus
from petport.gifts.service import GiftService, add_one_year, gift_service

__all__ = [
    "GiftMembership",
    "GiftStatus",
    "ScheduledGift",
    "ScheduledGiftStatus",
    "GiftService",
    "add_one_year",
    "gift_service",
]
