"""Referral module for PetPort.

Yearly-plan referral commissions:
- A referrer's code is linked to one referred yearly subscriber
- The commission is approved 38 days after the seven-day trial ends
- Approved commissions are paid out through Stripe Connect transfers
"""

from petport.referral.models import CommissionStatus, OnboardingStatus, Referral, ReferralVisit, UserPayout
from petport.referral.payouts import PayoutService, payout_service
from petport.referral.service import ReferralService, referral_service

__all__ = [
    "CommissionStatus",
    "OnboardingStatus",
    "Referral",
    "ReferralVisit",
    "UserPayout",
    "ReferralService",
    "referral_service",
    "PayoutService",
    "payout_service",
]
