"""Gift membership service: purchase, scheduled delivery, redemption and expiry."""

import uuid
from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import update

from petport.auth.models import UserAccount
from petport.email.service import EmailService, email_service
from petport.errors import InvalidRequestError, NotFoundError
from petport.gifts.models import (
    GiftMembership,
    GiftPurchaseRequest,
    GiftStatus,
    ScheduledGift,
    ScheduledGiftStatus,
)
from petport.logging_config import get_logger
from petport.payments import stripe_service
from petport.settings import settings
from petport.storage.db import db
from petport.subscriptions.models import BASE_PET_SLOTS, PlanInterval, Subscriber, SubscriptionStatus
from petport.subscriptions.service import get_subscriber, purchased_addons, upsert_subscriber

logger = get_logger(__name__)

GIFT_CHECKOUT_TYPE = "gift_membership"
REMINDER_DAYS = (60, 30, 7)
DEFAULT_SENDER_NAME = "A PetPort supporter"


def generate_gift_code() -> str:
    """Eight uppercase hex characters."""
    return uuid.uuid4().hex[:8].upper()


def add_one_year(value: datetime) -> datetime:
    """Same calendar day next year (Feb 29 becomes Feb 28)."""
    try:
        return value.replace(year=value.year + 1)
    except ValueError:
        return value.replace(year=value.year + 1, day=28)


def gift_price_cents(additional_pets: int) -> int:
    return settings.gift_base_price_cents + additional_pets * settings.gift_addon_price_cents


def _parse_send_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise InvalidRequestError(f"Invalid scheduled_send_date: {value}")


class GiftService:
    """Service for gift memberships."""

    def __init__(self, mailer: EmailService | None = None):
        """Initialize gift service."""
        self.logger = get_logger(__name__)
        self.mailer = mailer or email_service

    # ==================== PURCHASE ====================

    def create_checkout(self, request: GiftPurchaseRequest) -> dict[str, Any]:
        """Create a one-time checkout for a twelve-month gift.

        Returns:
            Dict with checkout ``url`` and ``session_id``

        Raises:
            InvalidRequestError: Bad recipient email or add-on count
        """
        recipient_email = (request.recipient_email or "").strip()
        if "@" not in recipient_email:
            raise InvalidRequestError("Valid recipient email is required")

        additional_pets = request.additional_pets or 0
        if not 0 <= additional_pets <= settings.gift_max_additional_pets:
            raise InvalidRequestError(
                f"additional_pets must be between 0 and {settings.gift_max_additional_pets}"
            )

        pet_count = BASE_PET_SLOTS + additional_pets
        line_items: list[dict[str, Any]] = [
            {
                "price_data": {
                    "currency": "usd",
                    "product_data": {
                        "name": "PetPort Gift Membership - 12 Months",
                        "description": (
                            f"Gift membership for {recipient_email} "
                            f"({pet_count} pet account{'s' if pet_count > 1 else ''})"
                        ),
                    },
                    "unit_amount": settings.gift_base_price_cents,
                },
                "quantity": 1,
            }
        ]
        if additional_pets > 0:
            line_items.append({
                "price_data": {
                    "currency": "usd",
                    "product_data": {
                        "name": "Additional Pet Accounts",
                        "description": (
                            f"{additional_pets} additional pet account{'s' if additional_pets > 1 else ''} "
                            "for 12-month gift period"
                        ),
                    },
                    "unit_amount": settings.gift_addon_price_cents,
                },
                "quantity": additional_pets,
            })

        checkout = stripe_service.create_checkout_session(
            line_items=line_items,
            mode="payment",
            success_url=f"{settings.app_origin}/gift-sent?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.app_origin}/gift",
            metadata={
                "type": GIFT_CHECKOUT_TYPE,
                "recipient_email": recipient_email,
                "sender_name": request.sender_name or "",
                "gift_message": request.gift_message or "",
                "purchaser_email": request.purchaser_email or "",
                "scheduled_send_date": request.scheduled_send_date.isoformat() if request.scheduled_send_date else "",
                "additional_pets": str(additional_pets),
                "theme": request.theme or "standard",
            },
            customer_email=request.purchaser_email or None,
        )

        self.logger.info(
            "gift_checkout_created",
            session_id=checkout.get("id"),
            additional_pets=additional_pets,
            total_cents=gift_price_cents(additional_pets),
        )
        return {"url": checkout.get("url"), "session_id": checkout.get("id")}

    async def fulfill_purchase(self, checkout: dict[str, Any], today: date | None = None) -> dict[str, Any]:
        """Record a paid gift checkout.

        A future send date produces a ScheduledGift; otherwise a pending
        GiftMembership is created and both emails go out. Calling this twice
        for the same session returns the existing record.
        """
        today = today or datetime.utcnow().date()
        session_id = checkout.get("id")
        metadata = checkout.get("metadata") or {}

        recipient_email = (metadata.get("recipient_email") or "").strip()
        if not recipient_email:
            raise InvalidRequestError("No recipient email in session metadata")

        existing = self._find_by_session(session_id)
        if existing:
            self.logger.info("gift_already_recorded", session_id=session_id, gift_code=existing["gift_code"])
            return {**existing, "already_exists": True}

        purchaser_email = metadata.get("purchaser_email") or checkout.get("customer_email") or None
        send_date = _parse_send_date(metadata.get("scheduled_send_date"))
        fields = dict(
            gift_code=generate_gift_code(),
            purchaser_email=purchaser_email,
            recipient_email=recipient_email,
            sender_name=metadata.get("sender_name") or DEFAULT_SENDER_NAME,
            gift_message=metadata.get("gift_message") or "",
            theme=metadata.get("theme") or "standard",
            amount_paid=checkout.get("amount_total") or settings.gift_base_price_cents,
            additional_pets=int(metadata.get("additional_pets") or 0),
            stripe_checkout_session_id=session_id,
            stripe_payment_intent_id=checkout.get("payment_intent"),
        )

        if send_date and send_date > today:
            with db.session() as session:
                scheduled = ScheduledGift(
                    scheduled_send_date=send_date,
                    status=ScheduledGiftStatus.SCHEDULED.value,
                    **fields,
                )
                session.add(scheduled)

            self.logger.info("gift_scheduled", gift_code=fields["gift_code"], send_date=send_date.isoformat())
            return {
                "success": True,
                "gift_code": fields["gift_code"],
                "scheduled": True,
                "scheduled_send_date": send_date,
            }

        with db.session() as session:
            gift = GiftMembership(status=GiftStatus.PENDING.value, purchased_at=datetime.utcnow(), **fields)
            session.add(gift)
            session.flush()
            session.expunge(gift)

        self.logger.info("gift_created", gift_code=gift.gift_code, additional_pets=gift.additional_pets)

        await self.mailer.send_gift_purchase_confirmation(gift)
        await self.mailer.send_gift_notification(gift)

        return {"success": True, "gift_code": gift.gift_code, "scheduled": False}

    def _find_by_session(self, session_id: str | None) -> dict[str, Any] | None:
        if not session_id:
            return None
        with db.session() as session:
            gift = session.query(GiftMembership).filter(
                GiftMembership.stripe_checkout_session_id == session_id
            ).first()
            if gift:
                return {"success": True, "gift_code": gift.gift_code, "scheduled": False}

            scheduled = session.query(ScheduledGift).filter(
                ScheduledGift.stripe_checkout_session_id == session_id
            ).first()
            if scheduled:
                return {
                    "success": True,
                    "gift_code": scheduled.gift_code,
                    "scheduled": True,
                    "scheduled_send_date": scheduled.scheduled_send_date,
                }
        return None

    async def recover_gift(self, checkout_session_id: str) -> dict[str, Any]:
        """Rebuild a gift from a paid checkout session that was never recorded.

        Raises:
            InvalidRequestError: Missing id or unpaid session
        """
        if not checkout_session_id:
            raise InvalidRequestError("Missing checkout_session_id")

        checkout = stripe_service.retrieve_checkout_session(checkout_session_id)
        if checkout.get("payment_status") != "paid":
            raise InvalidRequestError(f"Payment not completed: {checkout.get('payment_status')}")

        self.logger.info("gift_recovery_started", session_id=checkout_session_id)
        return await self.fulfill_purchase(checkout)

    async def resend_emails(self, gift_code: str) -> dict[str, Any]:
        """Send the purchaser confirmation and recipient notification again.

        A scheduled gift whose delivery failed is turned into a pending
        membership first and marked ``sent`` once the recipient email goes out.

        Raises:
            InvalidRequestError: Missing code
            NotFoundError: No gift with this code
        """
        code = (gift_code or "").strip().upper()
        if not code:
            raise InvalidRequestError("Gift code is required")

        with db.session() as session:
            gift = session.query(GiftMembership).filter(GiftMembership.gift_code == code).first()
            if gift is not None:
                session.expunge(gift)
            failed = session.query(ScheduledGift).filter(
                ScheduledGift.gift_code == code,
                ScheduledGift.status == ScheduledGiftStatus.FAILED.value,
            ).first()
            if failed is not None:
                session.expunge(failed)

        if gift is None and failed is not None:
            gift = self._materialize(failed)
        if gift is None:
            raise NotFoundError("Gift membership not found with this code")

        emails_sent = {"purchaser": False, "recipient": False}
        if gift.purchaser_email:
            emails_sent["purchaser"] = await self.mailer.send_gift_purchase_confirmation(gift)
        emails_sent["recipient"] = await self.mailer.send_gift_notification(gift)

        if failed is not None and emails_sent["recipient"]:
            self._mark_scheduled(failed.id, ScheduledGiftStatus.SENT, None)

        self.logger.info("gift_emails_resent", gift_code=code, **emails_sent)
        return {"success": True, "gift_code": code, "emails_sent": emails_sent}

    # ==================== REDEMPTION ====================

    async def redeem(self, gift_code: str, user: UserAccount, now: datetime | None = None) -> dict[str, Any]:
        """Redeem a gift code for the user.

        The pending -> active transition is one conditional UPDATE, so of two
        concurrent redemptions exactly one succeeds.

        Raises:
            InvalidRequestError: Missing code or gift not pending
            NotFoundError: Unknown code
        """
        now = now or datetime.utcnow()
        code = (gift_code or "").strip().upper()
        if not code:
            raise InvalidRequestError("Gift code is required")

        expires_at = add_one_year(now)

        with db.session() as session:
            result = session.execute(
                update(GiftMembership)
                .where(
                    GiftMembership.gift_code == code,
                    GiftMembership.status == GiftStatus.PENDING.value,
                )
                .values(
                    status=GiftStatus.ACTIVE.value,
                    recipient_user_id=user.id,
                    activated_at=now,
                    expires_at=expires_at,
                    updated_at=now,
                )
            )

            if result.rowcount == 0:
                gift = session.query(GiftMembership).filter(GiftMembership.gift_code == code).first()
                if gift is None:
                    raise NotFoundError("Invalid gift code")
                raise InvalidRequestError(f"Gift already {gift.status}")

            gift = session.query(GiftMembership).filter(GiftMembership.gift_code == code).one()
            session.expunge(gift)

        self.logger.info("gift_redeemed", gift_code=code, user_id=user.id)

        with db.session() as session:
            purchased = purchased_addons(get_subscriber(session, user.email))
            subscriber = upsert_subscriber(
                session,
                user.email,
                user_id=user.id,
                subscribed=True,
                status=SubscriptionStatus.ACTIVE.value,
                plan_interval=PlanInterval.YEAR.value,
                subscription_end=expires_at,
                pet_limit=BASE_PET_SLOTS,
                additional_pets=(gift.additional_pets or 0) + purchased,
                stripe_subscription_id=gift.stripe_subscription_id,
                grace_period_end=None,
                payment_failed_at=None,
                suspended_at=None,
            )
            pet_capacity = subscriber.pet_capacity

        sent = await self.mailer.send_gift_activated(gift, to_email=user.email, recipient_name=user.display_name)
        if not sent:
            self.logger.warning("gift_activation_email_failed", gift_code=code)

        return {
            "success": True,
            "gift_code": code,
            "expires_at": expires_at,
            "additional_pets": gift.additional_pets or 0,
            "pet_capacity": pet_capacity,
            "sender_name": gift.sender_name,
        }

    # ==================== SCHEDULED JOBS ====================

    async def send_scheduled_gifts(self, today: date | None = None) -> dict[str, Any]:
        """Deliver every scheduled gift whose send date is today.

        Each row becomes a pending GiftMembership and is marked ``sent``; a
        failure marks it ``failed`` with the error message and the batch
        continues.
        """
        today = today or datetime.utcnow().date()

        with db.session() as session:
            due = session.query(ScheduledGift).filter(
                ScheduledGift.status == ScheduledGiftStatus.SCHEDULED.value,
                ScheduledGift.scheduled_send_date == today,
            ).all()
            for row in due:
                session.expunge(row)

        self.logger.info("scheduled_gifts_due", count=len(due), date=today.isoformat())

        results = []
        for scheduled in due:
            try:
                gift = self._materialize(scheduled)

                if not await self.mailer.send_gift_notification(gift):
                    raise RuntimeError("Recipient email failed to send")

                if gift.purchaser_email and not await self.mailer.send_gift_purchase_confirmation(gift):
                    self.logger.warning("scheduled_gift_purchaser_email_failed", gift_code=gift.gift_code)

                self._mark_scheduled(scheduled.id, ScheduledGiftStatus.SENT, None)
                results.append({"id": scheduled.id, "gift_code": scheduled.gift_code, "success": True})
            except Exception as e:
                self.logger.error("scheduled_gift_failed", gift_code=scheduled.gift_code, error=str(e))
                self._mark_scheduled(scheduled.id, ScheduledGiftStatus.FAILED, str(e))
                results.append({
                    "id": scheduled.id,
                    "gift_code": scheduled.gift_code,
                    "success": False,
                    "error": str(e),
                })

        return {
            "success": True,
            "processed": len(results),
            "sent": sum(1 for r in results if r["success"]),
            "failed": sum(1 for r in results if not r["success"]),
            "results": results,
        }

    def _materialize(self, scheduled: ScheduledGift) -> GiftMembership:
        with db.session() as session:
            gift = session.query(GiftMembership).filter(
                GiftMembership.gift_code == scheduled.gift_code
            ).first()
            if gift is None:
                gift = GiftMembership(
                    gift_code=scheduled.gift_code,
                    purchaser_email=scheduled.purchaser_email,
                    recipient_email=scheduled.recipient_email,
                    sender_name=scheduled.sender_name,
                    gift_message=scheduled.gift_message,
                    theme=scheduled.theme,
                    amount_paid=scheduled.amount_paid,
                    additional_pets=scheduled.additional_pets or 0,
                    status=GiftStatus.PENDING.value,
                    purchased_at=scheduled.created_at or datetime.utcnow(),
                    stripe_payment_intent_id=scheduled.stripe_payment_intent_id,
                )
                session.add(gift)
                session.flush()
            session.expunge(gift)
        return gift

    def _mark_scheduled(self, scheduled_id: int, status: ScheduledGiftStatus, error: str | None) -> None:
        with db.session() as session:
            row = session.query(ScheduledGift).filter(ScheduledGift.id == scheduled_id).one()
            row.status = status.value
            row.error_message = error
            if status == ScheduledGiftStatus.SENT:
                row.sent_at = datetime.utcnow()

    async def send_renewal_reminders(self, now: datetime | None = None) -> dict[str, Any]:
        """Send 60/30/7-day renewal reminders and expire lapsed gifts.

        Expired gifts suspend the recipient's subscriber row.
        """
        now = now or datetime.utcnow()
        reminders_sent = 0

        for days in REMINDER_DAYS:
            window_start = now + timedelta(days=days)
            window_end = window_start + timedelta(days=1)
            stamp = getattr(GiftMembership, f"reminder_{days}_sent_at")

            with db.session() as session:
                gifts = session.query(GiftMembership).filter(
                    GiftMembership.status == GiftStatus.ACTIVE.value,
                    stamp.is_(None),
                    GiftMembership.expires_at >= window_start,
                    GiftMembership.expires_at < window_end,
                ).all()
                for gift in gifts:
                    session.expunge(gift)

            for gift in gifts:
                if await self.mailer.send_gift_renewal_reminder(gift, days):
                    with db.session() as session:
                        session.query(GiftMembership).filter(GiftMembership.id == gift.id).update(
                            {stamp: now}, synchronize_session=False
                        )
                    reminders_sent += 1
                    self.logger.info("gift_reminder_sent", gift_code=gift.gift_code, days=days)

        with db.session() as session:
            expired = session.query(GiftMembership).filter(
                GiftMembership.status == GiftStatus.ACTIVE.value,
                GiftMembership.expires_at < now,
            ).all()
            for gift in expired:
                session.expunge(gift)

        for gift in expired:
            await self.mailer.send_gift_expired(gift)
            with db.session() as session:
                session.query(GiftMembership).filter(GiftMembership.id == gift.id).update(
                    {GiftMembership.status: GiftStatus.EXPIRED.value, GiftMembership.updated_at: now},
                    synchronize_session=False,
                )
                if gift.recipient_user_id:
                    session.query(Subscriber).filter(Subscriber.user_id == gift.recipient_user_id).update(
                        {
                            Subscriber.status: SubscriptionStatus.SUSPENDED.value,
                            Subscriber.subscribed: False,
                            Subscriber.suspended_at: now,
                            Subscriber.updated_at: now,
                        },
                        synchronize_session=False,
                    )
            self.logger.info("gift_expired", gift_code=gift.gift_code, user_id=gift.recipient_user_id)

        return {
            "success": True,
            "reminders_sent": reminders_sent,
            "gifts_expired": len(expired),
        }


# Singleton instance
gift_service = GiftService()
