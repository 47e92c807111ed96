"""Scheduled job endpoints, triggered by cron or by an admin."""

from fastapi import APIRouter, Depends

from petport.auth.middleware import require_job_caller
from petport.gifts.service import gift_service
from petport.logging_config import get_logger
from petport.referral.payouts import payout_service
from petport.referral.service import referral_service
from petport.subscriptions.service import subscription_service

logger = get_logger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/approve-referrals")
async def approve_referrals(caller: str = Depends(require_job_caller)):
    """Approve pending referral commissions past the tenure window."""
    logger.info("job_triggered", job="approve_referrals", caller=caller)
    return referral_service.approve_pending()


@router.post("/process-payouts")
async def process_payouts(caller: str = Depends(require_job_caller)):
    """Transfer approved commissions to referrers."""
    logger.info("job_triggered", job="process_payouts", caller=caller)
    return payout_service.process_payouts()


@router.post("/send-scheduled-gifts")
async def send_scheduled_gifts(caller: str = Depends(require_job_caller)):
    """Deliver gifts scheduled for today."""
    logger.info("job_triggered", job="send_scheduled_gifts", caller=caller)
    return await gift_service.send_scheduled_gifts()


@router.post("/gift-reminders")
async def gift_reminders(caller: str = Depends(require_job_caller)):
    """Send gift renewal reminders and expire lapsed gifts."""
    logger.info("job_triggered", job="gift_reminders", caller=caller)
    return await gift_service.send_renewal_reminders()


@router.post("/grace-reminders")
async def grace_reminders(caller: str = Depends(require_job_caller)):
    """Remind subscribers whose grace period is about to end."""
    logger.info("job_triggered", job="grace_reminders", caller=caller)
    return await subscription_service.send_grace_reminders()


@router.post("/suspend-expired-grace")
async def suspend_expired_grace(caller: str = Depends(require_job_caller)):
    """Suspend subscribers whose grace period has ended."""
    logger.info("job_triggered", job="suspend_expired_grace", caller=caller)
    return subscription_service.suspend_expired_grace()
