"""Referral service for referral codes, visit tracking and commission approval."""

import secrets
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func

from petport.auth.models import UserAccount
from petport.errors import InvalidRequestError, NotFoundError
from petport.logging_config import get_logger
from petport.referral.models import CommissionStatus, Referral, ReferralVisit
from petport.settings import settings
from petport.storage.db import db
from petport.subscriptions.models import ACCESS_STATUSES, PlanInterval, Subscriber

logger = get_logger(__name__)

CODE_LENGTH = 8


def _generate_unique_code(length: int = CODE_LENGTH) -> str:
    """Generate a readable referral code.

    Uses uppercase letters and digits, avoiding confusing characters.
    Format: ABC12XYZ (8 chars by default)
    """
    # Exclude confusing characters: 0, O, I, L, 1
    alphabet = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def normalize_code(code: str | None) -> str:
    return (code or "").upper().strip()


def referral_link(code: str) -> str:
    """Public sign-up link carrying the code."""
    return f"{settings.app_origin}/?ref={code}"


class ReferralService:
    """Service for managing referral codes and commissions."""

    def __init__(self):
        """Initialize referral service."""
        self.logger = get_logger(__name__)

    # ==================== CODES ====================

    def get_or_create_code(self, user_id: str) -> Referral:
        """Get the user's open referral code or mint a new one.

        A code is linked to at most one referred user, so once the open code
        is used a fresh one is created.

        Args:
            user_id: Referrer user ID

        Returns:
            Unlinked Referral row
        """
        with db.session() as session:
            existing = session.query(Referral).filter(
                Referral.referrer_user_id == user_id,
                Referral.referred_user_id.is_(None),
            ).order_by(Referral.created_at.desc()).first()

            if existing:
                return existing

            code = _generate_unique_code()
            attempts = 0
            while attempts < 10:
                taken = session.query(Referral).filter(Referral.referral_code == code).first()
                if not taken:
                    break
                code = _generate_unique_code()
                attempts += 1

            referral = Referral(
                referral_code=code,
                referrer_user_id=user_id,
                commission_amount=settings.referral_commission_cents,
                commission_status=CommissionStatus.PENDING.value,
            )
            session.add(referral)
            session.commit()
            session.refresh(referral)

            self.logger.info("referral_code_created", user_id=user_id, code=code)
            return referral

    def open_code_owner(self, code: str | None) -> str | None:
        """Referrer of an unlinked code, or None for unknown and used codes."""
        code = normalize_code(code)
        if not code:
            return None
        with db.session() as session:
            referral = session.query(Referral).filter(
                Referral.referral_code == code,
                Referral.referred_user_id.is_(None),
            ).first()
            return referral.referrer_user_id if referral else None

    def track_visit(self, code: str, ip_address: str | None, user_agent: str | None) -> ReferralVisit:
        """Record a visit to a referral link.

        Raises:
            InvalidRequestError: Missing code
            NotFoundError: Unknown code or code already used
        """
        code = normalize_code(code)
        if not code:
            raise InvalidRequestError("Missing referral_code")

        with db.session() as session:
            referral = session.query(Referral).filter(
                Referral.referral_code == code,
                Referral.referred_user_id.is_(None),
            ).first()
            if not referral:
                self.logger.info("referral_visit_rejected", code=code)
                raise NotFoundError("Invalid referral code")

            visit = ReferralVisit(
                referral_code=code,
                ip_address=ip_address or "unknown",
                user_agent=(user_agent or "unknown")[:500],
            )
            session.add(visit)
            session.flush()

            self.logger.info("referral_visit_tracked", code=code, ip_prefix=(ip_address or "")[:10])
            return visit

    # ==================== LINKING ====================

    def link_referral(self, code: str, referred_email: str) -> dict[str, Any]:
        """Link a referral code to a yearly subscriber (admin operation).

        The trial is taken to end seven days after the referred user signed up.

        Raises:
            InvalidRequestError: Missing input or user not on a yearly plan
            NotFoundError: Unknown user or code not available
        """
        code = normalize_code(code)
        if not code or not referred_email:
            raise InvalidRequestError("Missing referral_code or referred_user_email")

        with db.session() as session:
            user = session.query(UserAccount).filter(
                UserAccount.email == referred_email.strip().lower()
            ).first()
            if not user:
                raise NotFoundError(f"User not found: {referred_email}")

            subscriber = session.query(Subscriber).filter(Subscriber.user_id == user.id).first()
            if not subscriber or subscriber.plan_interval != PlanInterval.YEAR.value:
                raise InvalidRequestError("User does not have a yearly subscription")

            referral = session.query(Referral).filter(
                Referral.referral_code == code,
                Referral.referred_user_id.is_(None),
            ).first()
            if not referral:
                raise NotFoundError(f"Referral code not found or already linked: {code}")

            trial_completed_at = (user.created_at or datetime.utcnow()) + timedelta(days=settings.trial_days)
            referral.referred_user_id = user.id
            referral.referred_plan_interval = PlanInterval.YEAR.value
            referral.trial_completed_at = trial_completed_at
            referral.updated_at = datetime.utcnow()
            referral_id = referral.id

        approval_date = trial_completed_at + timedelta(days=settings.referral_approval_days)
        self.logger.info(
            "referral_linked",
            code=code,
            referred_user_id=user.id,
            trial_completed_at=trial_completed_at.isoformat(),
        )

        return {
            "success": True,
            "referral_id": referral_id,
            "referral_code": code,
            "referred_user_id": user.id,
            "trial_completed_at": trial_completed_at,
            "approval_date": approval_date,
        }

    def link_from_visit(
        self,
        user_id: str,
        code: str | None = None,
        trial_completed_at: datetime | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Link a newly subscribed yearly user to the referral that brought them.

        Uses ``code`` when the client still carries it, otherwise the most
        recent unconverted visit. Returns True when a referral was linked.
        """
        now = now or datetime.utcnow()
        trial_completed_at = trial_completed_at or now + timedelta(days=settings.trial_days)

        with db.session() as session:
            if session.query(Referral).filter(Referral.referred_user_id == user_id).first():
                return False

            visits = session.query(ReferralVisit).filter(ReferralVisit.converted_user_id.is_(None))
            if code:
                visits = visits.filter(ReferralVisit.referral_code == normalize_code(code))
            visit = visits.order_by(ReferralVisit.visited_at.desc()).first()

            referral_code = normalize_code(code) if code else (visit.referral_code if visit else None)
            if not referral_code:
                return False

            referral = session.query(Referral).filter(
                Referral.referral_code == referral_code,
                Referral.referred_user_id.is_(None),
            ).first()
            if not referral or referral.referrer_user_id == user_id:
                self.logger.info("referral_link_skipped", user_id=user_id, code=referral_code)
                return False

            referral.referred_user_id = user_id
            referral.referred_plan_interval = PlanInterval.YEAR.value
            referral.trial_completed_at = trial_completed_at
            referral.updated_at = now

            if visit:
                visit.converted_user_id = user_id
                visit.converted_at = now
                visit.plan_type = PlanInterval.YEAR.value

            self.logger.info("referral_linked_from_visit", user_id=user_id, code=referral_code)
            return True

    # ==================== APPROVAL ====================

    def approve_pending(self, now: datetime | None = None) -> dict[str, Any]:
        """Approve pending yearly referrals whose tenure window has passed.

        A referral qualifies once ``trial_completed_at`` is at least
        ``referral_approval_days`` in the past. It is approved only while the
        referred subscriber is active or in grace on a yearly plan, and
        skipped otherwise.

        Returns:
            Summary with total_pending, approved, skipped, errors, error_details
        """
        now = now or datetime.utcnow()
        cutoff = now - timedelta(days=settings.referral_approval_days)

        with db.session() as session:
            pending = session.query(Referral).filter(
                Referral.commission_status == CommissionStatus.PENDING.value,
                Referral.referred_plan_interval == PlanInterval.YEAR.value,
                Referral.referred_user_id.isnot(None),
                Referral.trial_completed_at.isnot(None),
                Referral.trial_completed_at <= cutoff,
            ).all()
            candidates = [(r.id, r.referral_code, r.referred_user_id) for r in pending]

        self.logger.info("referral_approval_started", pending=len(candidates))

        approved = 0
        skipped = 0
        errors: list[dict[str, Any]] = []

        for referral_id, code, referred_user_id in candidates:
            try:
                with db.session() as session:
                    subscriber = session.query(Subscriber).filter(
                        Subscriber.user_id == referred_user_id
                    ).first()

                    if (
                        subscriber is not None
                        and subscriber.status in ACCESS_STATUSES
                        and subscriber.plan_interval == PlanInterval.YEAR.value
                    ):
                        session.query(Referral).filter(Referral.id == referral_id).update(
                            {
                                Referral.commission_status: CommissionStatus.APPROVED.value,
                                Referral.approved_at: now,
                                Referral.updated_at: now,
                            },
                            synchronize_session=False,
                        )
                        approved += 1
                        self.logger.info("referral_approved", referral_id=referral_id, code=code)
                    else:
                        skipped += 1
                        self.logger.info(
                            "referral_skipped",
                            referral_id=referral_id,
                            status=subscriber.status if subscriber else None,
                            interval=subscriber.plan_interval if subscriber else None,
                        )
            except Exception as e:
                self.logger.error("referral_approval_failed", referral_id=referral_id, error=str(e))
                errors.append({"referral_id": referral_id, "error": str(e)})
                skipped += 1

        summary = {
            "total_pending": len(candidates),
            "approved": approved,
            "skipped": skipped,
            "errors": len(errors),
            "error_details": errors,
        }
        self.logger.info("referral_approval_completed", **{k: v for k, v in summary.items() if k != "error_details"})
        return summary

    # ==================== STATS ====================

    def get_stats(self, user_id: str) -> dict[str, Any]:
        """Get referral statistics for a referrer.

        Returns:
            Dict with open code, link, visits, conversions and commission
            totals (cents) per status
        """
        open_code = self.get_or_create_code(user_id)

        with db.session() as session:
            referrals = session.query(Referral).filter(Referral.referrer_user_id == user_id).all()
            codes = [r.referral_code for r in referrals]

            visits = 0
            if codes:
                visits = session.query(func.count(ReferralVisit.id)).filter(
                    ReferralVisit.referral_code.in_(codes)
                ).scalar() or 0

            linked = [r for r in referrals if r.referred_user_id]
            totals = {status.value: 0 for status in CommissionStatus}
            for referral in linked:
                totals[referral.commission_status] = totals.get(referral.commission_status, 0) + (
                    referral.commission_amount or 0
                )

        return {
            "code": open_code.referral_code,
            "link": referral_link(open_code.referral_code),
            "visits": visits,
            "conversions": len(linked),
            "pending_cents": totals[CommissionStatus.PENDING.value],
            "approved_cents": totals[CommissionStatus.APPROVED.value],
            "paid_cents": totals[CommissionStatus.PAID.value],
        }


# Singleton instance
referral_service = ReferralService()
