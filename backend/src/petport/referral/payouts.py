"""Referral payouts through Stripe Connect."""

from collections import defaultdict
from datetime import datetime
from typing import Any

from petport.auth.models import UserAccount
from petport.logging_config import get_logger
from petport.payments import stripe_service
from petport.referral.models import CommissionStatus, OnboardingStatus, Referral, UserPayout
from petport.settings import settings
from petport.storage.db import db

logger = get_logger(__name__)


def payout_description(referral_count: int) -> str:
    plural = "s" if referral_count > 1 else ""
    return f"PetPort referral commission - {referral_count} referral{plural}"


class PayoutService:
    """Service for referrer Connect accounts and commission transfers."""

    def __init__(self):
        """Initialize payout service."""
        self.logger = get_logger(__name__)

    def start_onboarding(self, user: UserAccount) -> dict[str, Any]:
        """Create the referrer's Express account (once) and an onboarding link.

        Returns:
            Dict with onboarding ``url`` and ``account_id``
        """
        with db.session() as session:
            payout = session.query(UserPayout).filter(UserPayout.user_id == user.id).first()
            account_id = payout.stripe_connect_id if payout else None

            if not account_id:
                account = stripe_service.create_connect_account(user.email)
                account_id = account["id"]
                self.logger.info("connect_account_created", user_id=user.id, account_id=account_id)

                if payout is None:
                    payout = UserPayout(user_id=user.id)
                    session.add(payout)
                payout.stripe_connect_id = account_id

            payout.onboarding_status = OnboardingStatus.PENDING.value
            payout.updated_at = datetime.utcnow()

        link = stripe_service.create_account_link(
            account_id,
            refresh_url=f"{settings.app_origin}/referrals?stripe=refresh",
            return_url=f"{settings.app_origin}/referrals?stripe=success",
        )
        return {"url": link.get("url"), "account_id": account_id}

    def refresh_status(self, user: UserAccount) -> dict[str, Any]:
        """Sync onboarding status from the connected account."""
        with db.session() as session:
            payout = session.query(UserPayout).filter(UserPayout.user_id == user.id).first()
            if payout is None or not payout.stripe_connect_id:
                return {
                    "status": OnboardingStatus.NOT_STARTED.value,
                    "details_submitted": False,
                    "charges_enabled": False,
                    "payouts_enabled": False,
                }

            account = stripe_service.retrieve_account(payout.stripe_connect_id)
            details_submitted = bool(account.get("details_submitted"))
            payouts_enabled = bool(account.get("payouts_enabled"))

            status = OnboardingStatus.PENDING.value
            if details_submitted and payouts_enabled:
                status = OnboardingStatus.COMPLETED.value

            payout.onboarding_status = status
            payout.updated_at = datetime.utcnow()

        self.logger.info("connect_status_refreshed", user_id=user.id, status=status)
        return {
            "status": status,
            "details_submitted": details_submitted,
            "charges_enabled": bool(account.get("charges_enabled")),
            "payouts_enabled": payouts_enabled,
        }

    def process_payouts(self, now: datetime | None = None) -> dict[str, Any]:
        """Pay every approved, unpaid commission with one transfer per referrer.

        Referrers without a completed Connect account are reported and left
        approved. When a transfer succeeds but the referrals cannot be marked
        paid, the transfer id is reported for manual reconciliation; nothing
        is retried.

        Returns:
            Summary with total_approved, successful_payouts, failed_payouts,
            unique_referrers, errors, error_details
        """
        now = now or datetime.utcnow()

        with db.session() as session:
            approved = session.query(Referral).filter(
                Referral.commission_status == CommissionStatus.APPROVED.value,
                Referral.paid_at.is_(None),
            ).order_by(Referral.id).all()

            by_referrer: dict[str, list[tuple[int, int]]] = defaultdict(list)
            for referral in approved:
                by_referrer[referral.referrer_user_id].append((referral.id, referral.commission_amount or 0))

            payout_rows = {
                p.user_id: (p.stripe_connect_id, p.onboarding_status)
                for p in session.query(UserPayout).filter(UserPayout.user_id.in_(list(by_referrer))).all()
            }

        self.logger.info("payouts_started", approved=len(approved), referrers=len(by_referrer))

        successful = 0
        failed = 0
        errors: list[dict[str, Any]] = []

        for user_id, referrals in by_referrer.items():
            referral_ids = [referral_id for referral_id, _ in referrals]
            connect_id, onboarding_status = payout_rows.get(user_id, (None, None))

            if user_id not in payout_rows:
                problem = "No payout info found"
            elif not connect_id:
                problem = "Stripe not connected"
            elif onboarding_status != OnboardingStatus.COMPLETED.value:
                problem = "Stripe onboarding not completed"
            else:
                problem = None

            if problem:
                self.logger.warning("payout_skipped", user_id=user_id, reason=problem)
                errors.append({"user_id": user_id, "error": problem})
                failed += len(referrals)
                continue

            total_amount = sum(amount for _, amount in referrals)
            try:
                transfer = stripe_service.create_transfer(
                    amount=total_amount,
                    destination=connect_id,
                    description=payout_description(len(referrals)),
                    metadata={
                        "user_id": user_id,
                        "referral_count": str(len(referrals)),
                        "referral_ids": ",".join(str(i) for i in referral_ids),
                    },
                )
            except Exception as e:
                self.logger.error("payout_transfer_failed", user_id=user_id, error=str(e))
                errors.append({"user_id": user_id, "error": str(e)})
                failed += len(referrals)
                continue

            transfer_id = transfer.get("id")
            try:
                self._mark_paid(user_id, referral_ids, total_amount, transfer_id, now)
            except Exception as e:
                self.logger.error(
                    "payout_db_update_failed",
                    user_id=user_id,
                    transfer_id=transfer_id,
                    error=str(e),
                )
                errors.append({
                    "user_id": user_id,
                    "transfer_id": transfer_id,
                    "error": "Transfer succeeded but DB update failed",
                    "details": str(e),
                })
                continue

            successful += len(referrals)
            self.logger.info("payout_completed", user_id=user_id, amount=total_amount, transfer_id=transfer_id)

        summary = {
            "total_approved": len(approved),
            "successful_payouts": successful,
            "failed_payouts": failed,
            "unique_referrers": len(by_referrer),
            "errors": len(errors),
            "error_details": errors,
        }
        self.logger.info("payouts_completed", successful=successful, failed=failed, errors=len(errors))
        return summary

    def _mark_paid(
        self,
        user_id: str,
        referral_ids: list[int],
        amount: int,
        transfer_id: str | None,
        now: datetime,
    ) -> None:
        with db.session() as session:
            session.query(Referral).filter(Referral.id.in_(referral_ids)).update(
                {
                    Referral.commission_status: CommissionStatus.PAID.value,
                    Referral.paid_at: now,
                    Referral.transfer_id: transfer_id,
                    Referral.updated_at: now,
                },
                synchronize_session=False,
            )
            payout = session.query(UserPayout).filter(UserPayout.user_id == user_id).first()
            payout.yearly_earnings = (payout.yearly_earnings or 0) + amount
            payout.updated_at = now


# Singleton instance
payout_service = PayoutService()
